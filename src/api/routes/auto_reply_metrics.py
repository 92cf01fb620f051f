"""API route for auto-reply decision metrics.

Summarizes an agent's decision log over the last 24 hours or 7 days:
counts per decision, the most frequent skip reasons and the latest
entries.
"""

from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.api.schemas import MetricsRange, MetricsResponse
from src.db.connection import get_db
from src.db.models import to_iso
from src.services.reply_decision_log import DecisionLogService
from src.services.reply_settings_service import ReplySettingsService

router = APIRouter(prefix="/agents/{agent_id}/auto-reply", tags=["auto-reply"])

_RANGE_WINDOWS = {
    MetricsRange.last_24h: timedelta(hours=24),
    MetricsRange.last_7d: timedelta(days=7),
}


@router.get("/metrics", response_model=MetricsResponse)
def get_reply_metrics(
    agent_id: str,
    range_: MetricsRange = Query(MetricsRange.last_24h, alias="range"),
    db: Session = Depends(get_db),
) -> MetricsResponse:
    """Get decision metrics for an agent.

    Args:
        agent_id: Agent to report on.
        range_: '24h' (default) or '7d'.
        db: Database session dependency.

    Returns:
        MetricsResponse with counts, top skip reasons and recent entries.
    """
    since = datetime.now(UTC) - _RANGE_WINDOWS[range_]
    summary = DecisionLogService(db).summarize(agent_id, since)
    settings = ReplySettingsService(db).get_settings(agent_id)
    return MetricsResponse(
        range=range_,
        since=to_iso(since),
        enabled=settings.enabled,
        **summary,
    )

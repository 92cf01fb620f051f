"""API routes for per-agent auto-reply settings.

Provides GET/PUT for an agent's settings. A GET for an agent that never
configured auto-reply creates the default row (disabled).
All endpoints use /api/v1/agents/{agent_id}/auto-reply prefix.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from src.api.schemas import ReplySettingsResponse, ReplySettingsUpdate
from src.db.connection import get_db
from src.errors.domain import ValidationError
from src.services.auto_reply_types import ReplySettings
from src.services.reply_settings_service import ReplySettingsService
from src.services.schedule_resolver import is_unavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents/{agent_id}/auto-reply", tags=["auto-reply"])


def _get_service(db: Session = Depends(get_db)) -> ReplySettingsService:
    """Dependency injector for ReplySettingsService."""
    return ReplySettingsService(db)


def _to_response(settings: ReplySettings) -> ReplySettingsResponse:
    return ReplySettingsResponse(
        **settings.to_dict(),
        currently_unavailable=is_unavailable(
            datetime.now(UTC), settings.timezone, settings.week_schedule
        ),
    )


@router.get("/settings", response_model=ReplySettingsResponse)
def get_reply_settings(
    agent_id: str,
    service: ReplySettingsService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> ReplySettingsResponse:
    """Get an agent's auto-reply settings, creating defaults if absent."""
    try:
        settings = service.get_or_create(agent_id)
        db.commit()
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return _to_response(settings)


@router.put("/settings", response_model=ReplySettingsResponse)
def update_reply_settings(
    agent_id: str,
    data: ReplySettingsUpdate,
    service: ReplySettingsService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> ReplySettingsResponse:
    """Validate, clamp and store an agent's auto-reply settings.

    Fields left out of the body keep their current value.
    """
    updates = {k: v for k, v in data.model_dump().items() if v is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    try:
        settings = service.upsert_settings(agent_id, updates)
        db.commit()
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return _to_response(settings)

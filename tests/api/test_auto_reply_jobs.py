"""Tests for the enqueue and job worker routes."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from src.db.models import ChatMessage, MessageSource, ReplyDecisionLog
from src.services.auto_reply_types import DAY_KEYS
from src.services.reply_job_ledger import ReplyJobLedger
from tests.helpers import add_message, enable_agent, make_conversation

# Every day off: the agent is unavailable whenever the test runs.
ALWAYS_OFFLINE = {
    day: {"enabled": False, "start": "09:00", "end": "18:00"} for day in DAY_KEYS
}


@pytest.fixture
def offline_conversation(test_db: Session):
    enable_agent(test_db, week_schedule=ALWAYS_OFFLINE)
    return make_conversation(test_db)


def _inbound(db: Session, conversation, content: str = "Is it still available?"):
    return add_message(
        db, conversation, content, at=datetime.now(UTC) - timedelta(seconds=30)
    )


def _enqueue_url(conversation_id: str, message_id: str) -> str:
    return f"/api/v1/conversations/{conversation_id}/messages/{message_id}/auto-reply"


class TestEnqueue:
    def test_enqueue_processes_in_background(
        self, client: TestClient, test_db: Session, offline_conversation, api_backend
    ):
        msg = _inbound(test_db, offline_conversation)

        response = client.post(_enqueue_url(offline_conversation.id, msg.id))

        assert response.status_code == 200
        assert response.json() == {"enqueued": True, "reason": None}
        test_db.expire_all()
        assert ReplyJobLedger(test_db).get(msg.id).status == "SENT"
        automated = (
            test_db.query(ChatMessage)
            .filter(ChatMessage.source == MessageSource.AUTOMATED.value)
            .all()
        )
        assert len(automated) == 1
        assert len(api_backend.calls) == 1

    def test_duplicate_enqueue(
        self, client: TestClient, test_db: Session, offline_conversation
    ):
        msg = _inbound(test_db, offline_conversation)
        client.post(_enqueue_url(offline_conversation.id, msg.id))

        response = client.post(_enqueue_url(offline_conversation.id, msg.id))

        assert response.json() == {"enqueued": False, "reason": "DUPLICATE"}
        assert test_db.query(ReplyDecisionLog).count() == 1

    def test_disabled_agent_not_enqueued(self, client: TestClient, test_db: Session):
        conversation = make_conversation(test_db, agent_id="agent-off")
        msg = _inbound(test_db, conversation)

        response = client.post(_enqueue_url(conversation.id, msg.id))

        assert response.json() == {"enqueued": False, "reason": "DISABLED"}
        assert ReplyJobLedger(test_db).get(msg.id) is None


class TestWorkerRoutes:
    def test_process_single_job(
        self, client: TestClient, test_db: Session, offline_conversation
    ):
        msg = _inbound(test_db, offline_conversation)
        ReplyJobLedger(test_db).enqueue(offline_conversation.id, msg.id)

        response = client.post(f"/api/v1/auto-reply/jobs/{msg.id}/process")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "SENT"
        assert data["claimed"] is True
        assert data["generated_message_id"]

    def test_process_unknown_job(self, client: TestClient):
        data = client.post("/api/v1/auto-reply/jobs/missing/process").json()

        assert data == {
            "status": "SKIPPED",
            "reason": "JOB_NOT_FOUND",
            "claimed": False,
            "generated_message_id": None,
        }

    def test_run_drains_pending(
        self, client: TestClient, test_db: Session, offline_conversation
    ):
        ledger = ReplyJobLedger(test_db)
        first = add_message(
            test_db, offline_conversation, "first",
            at=datetime.now(UTC) - timedelta(minutes=2),
        )
        latest = _inbound(test_db, offline_conversation, "second")
        ledger.enqueue(offline_conversation.id, first.id)
        ledger.enqueue(offline_conversation.id, latest.id)

        response = client.post("/api/v1/auto-reply/jobs/run", params={"limit": 10})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "processed": 2,
            "sent": 1,
            "skipped": 1,
            "failed": 0,
        }

    def test_status_counts(
        self, client: TestClient, test_db: Session, offline_conversation
    ):
        ledger = ReplyJobLedger(test_db)
        for i in range(2):
            msg = _inbound(test_db, offline_conversation, f"m{i}")
            ledger.enqueue(offline_conversation.id, msg.id)
        ledger.claim(msg.id)

        response = client.get("/api/v1/auto-reply/jobs/status")

        assert response.json() == {"success": True, "pending": 1, "processing": 1}

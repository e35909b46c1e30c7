import json
import os
import sys
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

SECRET = "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CRON_SECRET", SECRET)

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from receipt_reminders.api import deps
from receipt_reminders.api.notifications import router as notifications_router
from receipt_reminders.api.preferences import router as preferences_router
from receipt_reminders.config import Settings
from receipt_reminders.database import Base
from receipt_reminders.models.preference import UserPreference
from receipt_reminders.models.receipt import Receipt
from receipt_reminders.services.channels import ChannelError, ChannelRegistry, DeliveryResult

AUTH = {"Authorization": f"Bearer {SECRET}"}


class RecordingEmail:
    def __init__(self):
        self.sent = []

    def send(self, to, subject, html):
        if to.endswith("@bounce.example.com"):
            raise ChannelError("Email failed: mailbox unavailable")
        self.sent.append((to, subject))
        return DeliveryResult(id=f"msg-{len(self.sent)}")


def _today():
    return datetime.now(timezone.utc).date()


def _build_test_client(tables=None):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=tables)

    app = FastAPI()
    app.include_router(notifications_router, prefix="/api")
    app.include_router(preferences_router, prefix="/api")

    email = RecordingEmail()

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_settings] = lambda: Settings(cron_secret=SECRET, database_url="sqlite://")
    app.dependency_overrides[deps.get_channels] = lambda: ChannelRegistry(email=email)
    return TestClient(app), TestingSessionLocal, email


def _seed(session_factory, user_id="user-1", lead_times=(0,), email="one@example.com", due_in_days=0):
    db = session_factory()
    db.add(
        UserPreference(
            user_id=user_id,
            lead_times=json.dumps(list(lead_times)),
            channels=json.dumps(["email"]),
            email_address=email,
        )
    )
    receipt = Receipt(
        user_id=user_id,
        vendor="Acme Power",
        amount=84.2,
        due_date=(_today() + timedelta(days=due_in_days)).isoformat(),
    )
    db.add(receipt)
    db.commit()
    receipt_id = receipt.id
    db.close()
    return receipt_id


def test_engine_endpoints_require_service_token():
    client, _, _ = _build_test_client()

    assert client.post("/api/notifications/run").status_code == 401
    assert client.post("/api/notifications/run", headers={"Authorization": "Bearer nope"}).status_code == 401
    assert client.get("/api/preferences/user-1").status_code == 401


def test_run_returns_summary_in_camel_case():
    client, session_factory, email = _build_test_client()
    _seed(session_factory)

    response = client.post("/api/notifications/run", headers=AUTH, json={"trigger": "manual"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["totalNotificationsSent"] == 1
    assert data["totalUsers"] == 1
    assert data["scheduledCount"] == 1
    assert data["errors"] == []
    assert data["manual"] is True
    assert data["timestamp"]
    assert email.sent[0][0] == "one@example.com"


def test_run_without_body_is_a_scheduled_trigger():
    client, _, _ = _build_test_client()

    response = client.post("/api/notifications/run", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["manual"] is False
    assert response.json()["totalUsers"] == 0


def test_run_reports_errors_and_still_succeeds():
    client, session_factory, _ = _build_test_client()
    receipt_id = _seed(session_factory, email="gone@bounce.example.com")

    data = client.post("/api/notifications/run", headers=AUTH).json()

    assert data["success"] is True
    assert data["totalNotificationsSent"] == 0
    assert data["errors"] == [f"Receipt {receipt_id} (email): Email failed: mailbox unavailable"]


def test_run_fails_when_preferences_cannot_be_read():
    client, session_factory, email = _build_test_client()
    db = session_factory()
    db.add(UserPreference(user_id="user-1", lead_times="{broken", channels="[]"))
    db.commit()
    db.close()

    response = client.post("/api/notifications/run", headers=AUTH)

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert "preference" in data["error"]
    assert email.sent == []


def test_process_dispatches_without_scheduling():
    client, session_factory, email = _build_test_client()
    _seed(session_factory)

    data = client.post("/api/notifications/process", headers=AUTH).json()

    assert data["sentCount"] == 0
    assert data["failedCount"] == 0
    assert email.sent == []


def test_preferences_round_trip():
    client, _, _ = _build_test_client()

    assert client.get("/api/preferences/user-1", headers=AUTH).status_code == 404

    response = client.put(
        "/api/preferences/user-1",
        headers=AUTH,
        json={"lead_times": [7, 1, 1], "channels": ["EMAIL"], "email_address": "one@example.com"},
    )
    assert response.status_code == 200
    assert response.json()["lead_times"] == [1, 7]
    assert response.json()["channels"] == ["email"]

    fetched = client.get("/api/preferences/user-1", headers=AUTH).json()
    assert fetched["email_address"] == "one@example.com"


def test_preferences_reject_invalid_configuration():
    client, _, _ = _build_test_client()

    def put(body):
        return client.put("/api/preferences/user-1", headers=AUTH, json=body).status_code

    assert put({"lead_times": [-1], "channels": ["email"], "email_address": "a@example.com"}) == 422
    assert put({"lead_times": [1], "channels": ["pager"], "email_address": "a@example.com"}) == 422
    assert put({"lead_times": [1], "channels": ["sms"]}) == 422
    assert put({"lead_times": [], "channels": ["email"], "email_address": "a@example.com"}) == 422


def test_schedule_for_next_receipt():
    client, session_factory, _ = _build_test_client()
    receipt_id = _seed(session_factory, due_in_days=10)

    response = client.post(
        "/api/notifications/schedule",
        headers=AUTH,
        json={"user_id": "user-1", "email": "one@example.com", "scheduleDays": [1, 3]},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["scheduledCount"] == 2
    assert data["skippedDays"] == []
    assert data["receiptDetails"]["id"] == receipt_id
    assert data["receiptDetails"]["dueDate"] == (_today() + timedelta(days=10)).isoformat()

    listed = client.get(
        "/api/notifications/scheduled",
        headers=AUTH,
        params={"user_id": "user-1", "status": "scheduled"},
    ).json()
    assert [n["lead_time_days"] for n in listed] == [3, 1]
    assert listed[0]["content"]["vendor"] == "Acme Power"


def test_schedule_without_upcoming_receipt_is_rejected():
    client, _, _ = _build_test_client()

    response = client.post(
        "/api/notifications/schedule",
        headers=AUTH,
        json={"user_id": "user-1", "email": "one@example.com", "scheduleDays": [1]},
    )

    assert response.status_code == 400
    assert "No upcoming receipts" in response.json()["detail"]


def test_schedule_requires_a_contact():
    client, _, _ = _build_test_client()

    response = client.post(
        "/api/notifications/schedule",
        headers=AUTH,
        json={"user_id": "user-1", "scheduleDays": [1]},
    )

    assert response.status_code == 422


def test_history_lists_ledger_entries():
    client, session_factory, _ = _build_test_client()
    receipt_id = _seed(session_factory)
    client.post("/api/notifications/run", headers=AUTH)

    history = client.get("/api/notifications/history", headers=AUTH, params={"user_id": "user-1"}).json()

    assert len(history) == 1
    assert history[0]["receipt_id"] == receipt_id
    assert history[0]["status"] == "sent"
    assert history[0]["content"]["providerId"] == "msg-1"


def test_send_test_notification():
    client, _, email = _build_test_client()

    ok = client.post("/api/notifications/test", headers=AUTH, json={"channel": "email", "to": "ops@example.com"})
    unconfigured = client.post("/api/notifications/test", headers=AUTH, json={"channel": "sms", "to": "+15550000001"})

    assert ok.json() == {"success": True, "message": "Test email sent", "providerId": "msg-1"}
    assert email.sent[0][0] == "ops@example.com"
    assert unconfigured.json()["success"] is False
    assert "No sms channel is configured" in unconfigured.json()["message"]
    assert client.post("/api/notifications/test", headers=AUTH, json={"channel": "fax", "to": "x"}).status_code == 422


def test_health_check():
    from receipt_reminders.main import app

    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_database_failure_during_dispatch_returns_error_body():
    # Preferences are readable but the notification tables are missing
    client, _, _ = _build_test_client(tables=[UserPreference.__table__])

    for path in ("/api/notifications/run", "/api/notifications/process"):
        response = client.post(path, headers=AUTH)

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert "scheduled_notifications" in data["error"]
        assert data["timestamp"]


def test_lead_times_are_capped_at_one_year():
    client, _, _ = _build_test_client()

    preference = client.put(
        "/api/preferences/user-1",
        headers=AUTH,
        json={"lead_times": [366], "channels": ["email"], "email_address": "a@example.com"},
    )
    schedule = client.post(
        "/api/notifications/schedule",
        headers=AUTH,
        json={"user_id": "user-1", "email": "a@example.com", "scheduleDays": [10**6]},
    )
    accepted = client.put(
        "/api/preferences/user-1",
        headers=AUTH,
        json={"lead_times": [365], "channels": ["email"], "email_address": "a@example.com"},
    )

    assert preference.status_code == 422
    assert schedule.status_code == 422
    assert accepted.status_code == 200

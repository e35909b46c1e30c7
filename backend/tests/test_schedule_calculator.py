import os
import sys
from datetime import date, datetime, timedelta

import pytest

os.environ.setdefault("CRON_SECRET", "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from receipt_reminders.models.receipt import Receipt
from receipt_reminders.services.preferences import ReminderPreference
from receipt_reminders.services.schedule_calculator import (
    ScheduleDecision,
    build_drafts,
    calculate_send_time,
    end_of_day,
    start_of_day,
)

TODAY = date(2024, 6, 3)
NOW = datetime(2024, 6, 3, 9, 30)


def test_future_send_is_start_of_lead_day():
    result = calculate_send_time(TODAY + timedelta(days=10), 3, NOW, TODAY)

    assert result.decision is ScheduleDecision.SCHEDULE_FUTURE
    assert result.send_at == start_of_day(TODAY + timedelta(days=7))


def test_lead_day_equal_to_today_is_future_not_catchup():
    result = calculate_send_time(TODAY + timedelta(days=7), 7, NOW, TODAY)

    assert result.decision is ScheduleDecision.SCHEDULE_FUTURE
    assert result.send_at == start_of_day(TODAY)


def test_lapsed_window_catches_up_immediately():
    now = start_of_day(TODAY)
    result = calculate_send_time(TODAY, 7, now, TODAY)

    assert result.decision is ScheduleDecision.SCHEDULE_CATCHUP
    assert result.send_at == now


def test_catchup_still_applies_late_on_due_date():
    now = datetime(2024, 6, 3, 23, 59, 59)
    result = calculate_send_time(TODAY, 2, now, TODAY)

    assert result.decision is ScheduleDecision.SCHEDULE_CATCHUP
    assert result.send_at == now


def test_past_due_date_is_skipped():
    result = calculate_send_time(TODAY - timedelta(days=1), 0, NOW, TODAY)

    assert result.decision is ScheduleDecision.SKIP_EXPIRED
    assert result.send_at is None
    assert not result.is_scheduled


def test_no_silent_drop_while_due_date_not_passed():
    for offset in range(0, 15):
        due = TODAY + timedelta(days=offset)
        for lead in range(0, 15):
            result = calculate_send_time(due, lead, NOW, TODAY)
            assert result.decision is not ScheduleDecision.SKIP_EXPIRED, (offset, lead)


def test_send_time_never_after_due_date():
    for offset in range(-3, 15):
        due = TODAY + timedelta(days=offset)
        for lead in range(0, 15):
            result = calculate_send_time(due, lead, NOW, TODAY)
            if result.is_scheduled:
                assert result.send_at <= end_of_day(due), (offset, lead)


def test_today_defaults_to_now_date():
    result = calculate_send_time(date(2024, 6, 5), 2, NOW)

    assert result.decision is ScheduleDecision.SCHEDULE_FUTURE
    assert result.send_at == datetime(2024, 6, 3)


def test_negative_lead_time_rejected():
    with pytest.raises(ValueError, match="non-negative"):
        calculate_send_time(TODAY, -1, NOW, TODAY)


def test_build_drafts_one_per_enabled_channel_sharing_send_time():
    preference = ReminderPreference(
        user_id="user-1",
        lead_times=frozenset({2}),
        channels=frozenset({"sms", "email"}),
        email_address="user@example.com",
        phone_number="+15550001111",
    )
    receipt = Receipt(id="r-1", user_id="user-1", vendor="Acme", amount=12.5, category="Utilities", due_date="2024-06-10")

    drafts = build_drafts(preference, receipt, 2, NOW, TODAY)

    assert [d.channel for d in drafts] == ["email", "sms"]
    assert [d.recipient for d in drafts] == ["user@example.com", "+15550001111"]
    assert {d.scheduled_send_at for d in drafts} == {datetime(2024, 6, 8)}
    assert drafts[0].content["vendor"] == "Acme"
    assert drafts[0].content["daysBefore"] == 2
    assert drafts[0].content["catchUp"] is False


def test_build_drafts_marks_catchup_and_skips_expired():
    preference = ReminderPreference(
        user_id="user-1",
        lead_times=frozenset({5}),
        channels=frozenset({"email"}),
        email_address="user@example.com",
    )
    due_soon = Receipt(id="r-1", user_id="user-1", vendor="Acme", amount=1.0, due_date="2024-06-04")
    overdue = Receipt(id="r-2", user_id="user-1", vendor="Acme", amount=1.0, due_date="2024-06-01")

    catchup = build_drafts(preference, due_soon, 5, NOW, TODAY)

    assert len(catchup) == 1
    assert catchup[0].scheduled_send_at == NOW
    assert catchup[0].content["catchUp"] is True
    assert build_drafts(preference, overdue, 5, NOW, TODAY) == []


def test_build_drafts_keeps_channel_without_contact():
    preference = ReminderPreference(
        user_id="user-1",
        lead_times=frozenset({1}),
        channels=frozenset({"sms"}),
    )
    receipt = Receipt(id="r-1", user_id="user-1", vendor="Acme", amount=1.0, due_date="2024-06-10")

    drafts = build_drafts(preference, receipt, 1, NOW, TODAY)

    assert len(drafts) == 1
    assert drafts[0].recipient == ""
    assert preference.missing_contacts() == ["sms"]

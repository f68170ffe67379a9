"""Unit tests for call merge rules and outcome derivation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import CALL_SID
from src.nodal_point.calls.merge import derive_outcome, merge_call
from src.nodal_point.calls.schemas import CallRecord, CallUpsert

BUSINESS = ["8325550199"]
NOW = datetime(2025, 7, 15, 20, 0, tzinfo=timezone.utc)


def _upsert(**fields) -> CallUpsert:
    return CallUpsert.model_validate(fields)


class TestDeriveOutcome:
    @pytest.mark.parametrize(
        "status,duration,answered_by,expected",
        [
            ("completed", 42, None, "Connected"),
            ("completed", 0, None, "No Answer"),
            ("completed", 30, "machine_end_beep", "Voicemail"),
            ("completed", 30, "human", "Connected"),
            ("no-answer", 0, None, "No Answer"),
            ("busy", 0, None, "Busy"),
            ("failed", 0, None, "Failed"),
            ("cancelled", 0, None, "Canceled"),
            ("ringing", 0, None, "Ringing"),
            ("", 0, None, ""),
        ],
    )
    def test_from_status(self, status, duration, answered_by, expected):
        assert derive_outcome(status, duration, answered_by) == expected

    def test_explicit_outcome_wins(self):
        assert derive_outcome("completed", 0, None, "Left message") == "Left message"


class TestMergeCall:
    def test_first_write_fills_defaults(self):
        payload = _upsert(callSid=CALL_SID, to="+17135550100", **{"from": "+18325550199"})
        call = merge_call(CALL_SID, payload, None, BUSINESS, now=NOW)

        assert call.id == CALL_SID
        assert call.status == "initiated"
        assert call.direction == "outbound"
        assert call.business_phone == "8325550199"
        assert call.target_phone == "7135550100"
        assert call.timestamp == NOW
        assert call.created_at == NOW
        assert call.owner_id == "unassigned"
        assert call.source == "unknown"

    def test_duration_only_grows(self):
        current = CallRecord(id=CALL_SID, duration=95, status="completed", timestamp=NOW)
        payload = _upsert(duration=10, durationSec=60)
        merged = merge_call(CALL_SID, payload, current, BUSINESS, now=NOW)
        assert merged.duration == 95

        merged = merge_call(CALL_SID, _upsert(durationSec=120), current, BUSINESS, now=NOW)
        assert merged.duration == 120

    def test_timestamp_and_created_at_never_move(self):
        earlier = NOW - timedelta(hours=1)
        current = CallRecord(id=CALL_SID, timestamp=earlier, created_at=earlier)
        merged = merge_call(
            CALL_SID, _upsert(timestamp=NOW.isoformat()), current, BUSINESS, now=NOW
        )
        assert merged.timestamp == earlier
        assert merged.created_at == earlier
        assert merged.updated_at == NOW

    def test_direction_fixed_by_first_write(self):
        current = CallRecord(id=CALL_SID, direction="inbound")
        merged = merge_call(
            CALL_SID, _upsert(direction="outbound"), current, BUSINESS, now=NOW
        )
        assert merged.direction == "inbound"

    def test_inbound_detected_from_business_number(self):
        payload = _upsert(to="+18325550199", **{"from": "+17135550100"})
        merged = merge_call(CALL_SID, payload, None, BUSINESS, now=NOW)
        assert merged.direction == "inbound"
        assert merged.target_phone == "7135550100"

    def test_provided_fields_replace_absent_fields_keep(self):
        current = CallRecord(
            id=CALL_SID,
            transcript="hello",
            account_id="acct-1",
            recording_url="https://api.twilio.com/rec.mp3",
        )
        merged = merge_call(
            CALL_SID, _upsert(transcript="", status="completed"), current, BUSINESS, now=NOW
        )
        assert merged.transcript == ""
        assert merged.account_id == "acct-1"
        assert merged.recording_url == "https://api.twilio.com/rec.mp3"

    def test_outcome_rederived_from_merged_state(self):
        current = CallRecord(id=CALL_SID, status="in-progress", duration=75, outcome="In-progress")
        merged = merge_call(CALL_SID, _upsert(status="completed"), current, BUSINESS, now=NOW)
        assert merged.outcome == "Connected"

    def test_summary_falls_back_to_insights(self):
        payload = _upsert(aiInsights={"summary": "Renewal due in March", "sentiment": "positive"})
        merged = merge_call(CALL_SID, payload, None, BUSINESS, now=NOW)
        assert merged.ai_summary == "Renewal due in March"
        assert merged.ai_insights["sentiment"] == "positive"

    def test_owner_from_posting_user(self):
        current = CallRecord(id=CALL_SID, owner_id="old@nodalpoint.io", created_by="old@nodalpoint.io")
        merged = merge_call(
            CALL_SID, _upsert(userEmail="Rep@NodalPoint.io"), current, BUSINESS, now=NOW
        )
        assert merged.owner_id == "rep@nodalpoint.io"
        assert merged.assigned_to == "rep@nodalpoint.io"
        assert merged.created_by == "old@nodalpoint.io"

    def test_owner_kept_without_user(self):
        current = CallRecord(id=CALL_SID, owner_id="rep@nodalpoint.io")
        merged = merge_call(CALL_SID, _upsert(status="busy"), current, BUSINESS, now=NOW)
        assert merged.owner_id == "rep@nodalpoint.io"


def test_response_carries_legacy_aliases():
    call = CallRecord(id=CALL_SID, duration=30, recording_url="https://api.twilio.com/r.mp3")
    body = call.to_response()

    assert body["callSid"] == CALL_SID
    assert body["twilioSid"] == CALL_SID
    assert body["durationSec"] == 30
    assert body["audioUrl"] == "https://api.twilio.com/r.mp3"
    assert body["from"] == ""
    assert "recordingUrl" in body

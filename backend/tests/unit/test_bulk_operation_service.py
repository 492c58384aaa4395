# backend/tests/unit/test_bulk_operation_service.py
"""
Unit tests for BulkOperationService.bulk_transition.
"""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
import pytz

from tutorsched.core.constants import MAX_BULK_SESSION_IDS
from tutorsched.core.enums import CancelReasonCode, SessionStatus
from tutorsched.core.exceptions import (
    ForbiddenOperationException,
    PersistenceException,
    RepositoryException,
    ValidationException,
)
from tutorsched.models.audit_log import AuditLog
from tutorsched.repositories.session_repository import SessionRepository
from tutorsched.services.bulk_operation_service import (
    BulkOperationService,
    normalize_session_ids,
    parse_reason_code,
)

T0 = datetime(2026, 3, 4, 1, 30, tzinfo=pytz.UTC)
NOW = datetime(2026, 3, 3, 15, 0, tzinfo=pytz.UTC)


@pytest.fixture
def four_sessions(make_session):
    scheduled = [make_session(T0 + timedelta(days=7 * week)) for week in range(3)]
    cancelled = make_session(T0 + timedelta(days=21), status=SessionStatus.CANCELLED.value)
    return scheduled, cancelled


class TestBulkTransition:
    def test_weather_cancel_skips_already_cancelled(self, unit_db, four_sessions):
        scheduled, cancelled = four_sessions
        ids = [s.id for s in scheduled] + [cancelled.id]

        result = BulkOperationService(unit_db).bulk_transition(
            "tenant-mmc", ids, "WEATHER", "staging", actor_id="ops-1", now=NOW
        )

        assert result.transitioned_count == 3
        for session in scheduled:
            unit_db.refresh(session)
            assert session.status == SessionStatus.CANCELLED.value
            assert session.cancel_reason_code == CancelReasonCode.WEATHER.value

    def test_audit_row_records_counts_and_range(self, unit_db, four_sessions):
        scheduled, cancelled = four_sessions

        BulkOperationService(unit_db).bulk_transition(
            "tenant-mmc", [s.id for s in scheduled] + [cancelled.id, "missing"], CancelReasonCode.WEATHER, "staging"
        )

        audit = unit_db.query(AuditLog).filter_by(action="session.bulk_cancel").one()
        assert audit.result == "SUCCESS"
        assert audit.details["transitioned_count"] == 3
        assert audit.details["requested_count"] == 5
        assert audit.details["reason_code"] == "WEATHER"
        assert audit.details["date_range_from"].startswith("2026-03-04T01:30")
        assert audit.details["date_range_to"].startswith("2026-03-18T01:30")

    def test_other_tenant_sessions_are_untouched(self, unit_db, make_session):
        foreign = make_session(T0, tenant_id="tenant-other")

        result = BulkOperationService(unit_db).bulk_transition("tenant-mmc", [foreign.id], "HOLIDAY", "staging")

        assert result.transitioned_count == 0
        unit_db.refresh(foreign)
        assert foreign.status == SessionStatus.SCHEDULED.value

    def test_gate_runs_before_validation(self, unit_db):
        repo = Mock(spec=SessionRepository)
        service = BulkOperationService(unit_db, session_repository=repo, audit_service=Mock())

        with pytest.raises(ForbiddenOperationException):
            service.bulk_transition("tenant-mmc", [], "NOT_A_REASON", "production")
        repo.update_sessions_status.assert_not_called()

    def test_production_with_confirmation_is_allowed(self, unit_db, four_sessions):
        scheduled, _ = four_sessions

        result = BulkOperationService(unit_db).bulk_transition(
            "tenant-mmc", [scheduled[0].id], "TUTOR_UNAVAILABLE", "production", confirm_production=True
        )

        assert result.transitioned_count == 1

    def test_repository_failure(self, unit_db):
        repo = Mock(spec=SessionRepository)
        repo.update_sessions_status.side_effect = RepositoryException("deadlock")
        service = BulkOperationService(unit_db, session_repository=repo, audit_service=Mock())

        with pytest.raises(PersistenceException) as exc_info:
            service.bulk_transition("tenant-mmc", ["s-1"], "OTHER", "staging")
        assert exc_info.value.code == "BULK_TRANSITION_FAILED"


class TestSelectionValidation:
    @pytest.mark.parametrize("ids", [[], ["", "  "], [None]])
    def test_empty_selection(self, ids):
        with pytest.raises(ValidationException) as exc_info:
            normalize_session_ids(ids)
        assert exc_info.value.code == "EMPTY_SELECTION"

    def test_duplicates_are_collapsed_in_order(self):
        assert normalize_session_ids(["b", "a", " b ", "a"]) == ["b", "a"]

    def test_selection_limit(self):
        with pytest.raises(ValidationException) as exc_info:
            normalize_session_ids([f"s-{i}" for i in range(MAX_BULK_SESSION_IDS + 1)])
        assert exc_info.value.code == "SELECTION_TOO_LARGE"

    @pytest.mark.parametrize("raw", ["RAIN", "", "cancelled"])
    def test_unknown_reason(self, raw):
        with pytest.raises(ValidationException) as exc_info:
            parse_reason_code(raw)
        assert exc_info.value.code == "INVALID_REASON_CODE"

    def test_reason_is_case_insensitive(self):
        assert parse_reason_code(" weather ") is CancelReasonCode.WEATHER

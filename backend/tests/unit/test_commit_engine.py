# backend/tests/unit/test_commit_engine.py
"""
Unit tests for the idempotent commit engine.

Uses the in-memory sqlite session for the real skip-duplicates path and small
writer doubles for the dry-run and failure paths.
"""

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from tutorsched.core.exceptions import PersistenceException, RepositoryException
from tutorsched.domain.scheduling import RecurrenceRule, RuleBinding
from tutorsched.models.session import TutoringSession
from tutorsched.services.commit_engine import (
    DryRunWriter,
    SessionRepositoryWriter,
    candidate_to_row,
    commit,
    commit_with_breakdown,
)
from tutorsched.services.conflict_resolver import query_scope, resolve
from tutorsched.services.occurrence_generator import generate_for_bindings

TENANT = "tenant-mmc"


def _existing(session_repo, candidates):
    scope = query_scope(candidates)
    return session_repo.find_bindings(TENANT, scope.tutor_ids, scope.center_ids, scope.window)


class TestCommitAgainstStore:
    def test_second_run_creates_nothing(self, unit_db, session_repo, spring_term, g4_binding):
        candidates = generate_for_bindings(spring_term, [g4_binding])
        writer = SessionRepositoryWriter(session_repo, TENANT, spring_term.time_zone)

        first = commit(resolve(candidates, _existing(session_repo, candidates)), writer)
        second = commit(resolve(candidates, _existing(session_repo, candidates)), writer)

        assert (first.created_count, first.skipped_count) == (18, 0)
        assert (second.created_count, second.skipped_count) == (0, 18)
        assert unit_db.query(TutoringSession).filter_by(tenant_id=TENANT).count() == 18

    def test_concurrent_insert_is_counted_as_skipped(self, unit_db, session_repo, spring_term, g4_binding):
        candidates = generate_for_bindings(spring_term, [g4_binding])
        stale_snapshot = _existing(session_repo, candidates)
        # Another run lands 5 of the same sessions after the snapshot was taken
        session_repo.create_sessions([candidate_to_row(c, TENANT, spring_term.time_zone) for c in candidates[:5]])

        summary, outcomes = commit_with_breakdown(
            resolve(candidates, stale_snapshot),
            SessionRepositoryWriter(session_repo, TENANT, spring_term.time_zone),
        )

        assert (summary.created_count, summary.skipped_count) == (13, 5)
        assert outcomes[0].created_count == 13
        assert outcomes[0].skipped_count == 5
        assert unit_db.query(TutoringSession).filter_by(tenant_id=TENANT).count() == 18

    def test_per_rule_breakdown(self, session_repo, spring_term, g4_binding):
        thursday = RuleBinding(
            rule=RecurrenceRule(weekday=4, start_time_local="16:00", duration_minutes=90),
            tutor_id="tutor-2",
            center_id="center-1",
            label="Chemistry G9",
            group_id="group-g9",
        )
        candidates = generate_for_bindings(spring_term, [g4_binding, thursday])
        writer = SessionRepositoryWriter(session_repo, TENANT, spring_term.time_zone)
        commit(resolve(candidates[:18], set()), writer)

        summary, outcomes = commit_with_breakdown(resolve(candidates, _existing(session_repo, candidates)), writer)

        by_label = {o.label: o for o in outcomes}
        assert by_label["Singapore Math G4"].created_count == 0
        assert by_label["Singapore Math G4"].skipped_count == 18
        assert by_label["Chemistry G9"].group_id == "group-g9"
        assert by_label["Chemistry G9"].created_count == summary.created_count


class TestDryRun:
    def test_dry_run_writes_nothing(self, unit_db, spring_term, g4_binding):
        candidates = generate_for_bindings(spring_term, [g4_binding])
        writer = DryRunWriter()

        summary = commit(resolve(candidates, set()), writer)

        assert summary.created_count == 18
        assert len(writer.would_write) == 18
        assert unit_db.query(TutoringSession).count() == 0


class TestFailures:
    @pytest.mark.parametrize(
        "error",
        [RepositoryException("disk full"), OperationalError("INSERT", {}, Exception("gone away"))],
    )
    def test_write_failure_becomes_persistence_error(self, spring_term, g4_binding, error):
        writer = Mock(dry_run=False)
        writer.write.side_effect = error
        candidates = generate_for_bindings(spring_term, [g4_binding])

        with pytest.raises(PersistenceException) as exc_info:
            commit(resolve(candidates, set()), writer)
        assert exc_info.value.code == "SESSION_WRITE_FAILED"
        assert exc_info.value.details["intended"] == 18

    def test_writer_reporting_more_than_requested_is_capped(self, spring_term, g4_binding):
        writer = Mock(dry_run=True)
        writer.write.return_value = 99
        candidates = generate_for_bindings(spring_term, [g4_binding])

        summary = commit(resolve(candidates, set()), writer)

        assert summary.created_count == 18
        assert summary.skipped_count == 0

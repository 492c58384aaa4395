# backend/tutorsched/repositories/session_repository.py
"""
Session Repository for the scheduling engine.

The persistence collaborator behind generation, reset and bulk transitions.
Every query is scoped by tenant, and conflict lookups are further narrowed to
the tutors, centers and time window of the batch being resolved.

Datetimes are written and compared as UTC; SQLite hands them back naive, so
callers normalize with ``to_utc`` before comparing.
"""

from datetime import datetime, timezone
import logging
from typing import AbstractSet, Any, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import false, insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.enums import TERMINAL_SESSION_STATUSES, CancelReasonCode, SessionStatus, SessionType
from ..core.exceptions import RepositoryException
from ..core.timezone_utils import to_utc
from ..core.ulid_helper import generate_ulid
from ..domain.scheduling import ResourceBindingKey, TimeWindow
from ..models.session import TutoringSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Keeps multi-row INSERT statements under driver bind-parameter limits.
INSERT_CHUNK_SIZE = 500

_UNIQUE_KEY_COLUMNS = ("tenant_id", "tutor_id", "center_id", "start_at")


class SessionRepository(BaseRepository[TutoringSession]):
    """Data access for persisted sessions."""

    def __init__(self, db: Session):
        super().__init__(db, TutoringSession)
        self.logger = logging.getLogger(__name__)

    # Conflict lookups

    def find_bindings(
        self,
        tenant_id: str,
        tutor_ids: AbstractSet[str],
        center_ids: AbstractSet[str],
        window: TimeWindow,
    ) -> Set[ResourceBindingKey]:
        """
        Binding keys already stored for the given tutors/centers inside ``window``.

        Cancelled rows are included: they still occupy the unique key.
        """
        if not tutor_ids or not center_ids:
            return set()
        try:
            rows = (
                self.db.query(
                    TutoringSession.tutor_id,
                    TutoringSession.center_id,
                    TutoringSession.start_at,
                )
                .filter(
                    TutoringSession.tenant_id == tenant_id,
                    TutoringSession.tutor_id.in_(sorted(tutor_ids)),
                    TutoringSession.center_id.in_(sorted(center_ids)),
                    TutoringSession.start_at >= to_utc(window.start),
                    TutoringSession.start_at < to_utc(window.end),
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading existing bindings for tenant {tenant_id}: {str(e)}")
            raise RepositoryException(f"Failed to load existing bindings: {str(e)}")

        return {ResourceBindingKey.of(tutor_id, center_id, start_at) for tutor_id, center_id, start_at in rows}

    # Creation

    def create_sessions(self, rows: Sequence[Dict[str, Any]], skip_duplicates: bool = True) -> int:
        """
        Insert session rows and return how many were actually persisted.

        With ``skip_duplicates`` a row whose (tenant, tutor, center, start) key
        already exists is silently skipped, so the return value may be smaller
        than ``len(rows)``. Without it, a duplicate raises RepositoryException.
        """
        if not rows:
            return 0

        prepared = [self._prepare_row(row) for row in rows]
        try:
            if not skip_duplicates:
                self.db.execute(insert(TutoringSession), prepared)
                self.db.flush()
                return len(prepared)

            dialect = self.dialect_name
            if dialect in ("postgresql", "sqlite"):
                return self._insert_on_conflict_do_nothing(dialect, prepared)
            return self._insert_with_savepoints(prepared)
        except IntegrityError as e:
            self.logger.error(f"Integrity error creating sessions: {str(e)}")
            raise RepositoryException(f"Integrity constraint violated: {str(e)}") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating sessions: {str(e)}")
            raise RepositoryException(f"Failed to create sessions: {str(e)}") from e

    def _insert_on_conflict_do_nothing(self, dialect: str, rows: List[Dict[str, Any]]) -> int:
        dialect_insert = pg_insert if dialect == "postgresql" else sqlite_insert
        inserted = 0
        for start in range(0, len(rows), INSERT_CHUNK_SIZE):
            chunk = rows[start : start + INSERT_CHUNK_SIZE]
            stmt = (
                dialect_insert(TutoringSession)
                .values(chunk)
                .on_conflict_do_nothing(index_elements=list(_UNIQUE_KEY_COLUMNS))
            )
            result = self.db.execute(stmt)
            inserted += max(result.rowcount or 0, 0)
        return inserted

    def _insert_with_savepoints(self, rows: List[Dict[str, Any]]) -> int:
        inserted = 0
        for row in rows:
            try:
                with self.db.begin_nested():
                    self.db.add(TutoringSession(**row))
            except IntegrityError:
                self.logger.debug(f"Skipping duplicate session for tutor {row['tutor_id']} at {row['start_at']}")
                continue
            inserted += 1
        return inserted

    @staticmethod
    def _prepare_row(row: Dict[str, Any]) -> Dict[str, Any]:
        prepared = dict(row)
        prepared.setdefault("id", generate_ulid())
        prepared.setdefault("status", SessionStatus.SCHEDULED.value)
        prepared["start_at"] = to_utc(prepared["start_at"])
        prepared["end_at"] = to_utc(prepared["end_at"])
        prepared.setdefault("created_at", datetime.now(timezone.utc))
        for column in ("session_type", "status"):
            value = prepared.get(column)
            if isinstance(value, (SessionType, SessionStatus)):
                prepared[column] = value.value
        return prepared

    # Scoped reset

    def _window_query(
        self,
        tenant_id: str,
        kinds: Iterable[SessionType],
        window: TimeWindow,
        center_ids: Optional[AbstractSet[str]],
        group_ids: Optional[AbstractSet[str]],
    ) -> Query:
        query = self._build_query().filter(
            TutoringSession.tenant_id == tenant_id,
            TutoringSession.session_type.in_([kind.value for kind in kinds]),
            TutoringSession.status != SessionStatus.CANCELLED.value,
            TutoringSession.start_at >= to_utc(window.start),
            TutoringSession.start_at < to_utc(window.end),
        )
        # None leaves a dimension unfiltered; an empty set matches nothing.
        for column, ids in ((TutoringSession.center_id, center_ids), (TutoringSession.group_id, group_ids)):
            if ids is None:
                continue
            query = query.filter(column.in_(sorted(ids)) if ids else false())
        return query

    def delete_sessions(
        self,
        tenant_id: str,
        kinds: Iterable[SessionType],
        window: TimeWindow,
        center_ids: Optional[AbstractSet[str]] = None,
        group_ids: Optional[AbstractSet[str]] = None,
    ) -> int:
        """Delete non-cancelled sessions of ``kinds`` starting inside the half-open window."""
        try:
            deleted = self._window_query(tenant_id, kinds, window, center_ids, group_ids).delete(
                synchronize_session=False
            )
            self.db.flush()
            return int(deleted or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting sessions for tenant {tenant_id}: {str(e)}")
            raise RepositoryException(f"Failed to delete sessions: {str(e)}")

    def find_resettable_bindings(
        self,
        tenant_id: str,
        kinds: Iterable[SessionType],
        window: TimeWindow,
        center_ids: Optional[AbstractSet[str]] = None,
        group_ids: Optional[AbstractSet[str]] = None,
    ) -> Set[ResourceBindingKey]:
        """Binding keys of the rows ``delete_sessions`` would remove with the same arguments."""
        try:
            rows = (
                self._window_query(tenant_id, kinds, window, center_ids, group_ids)
                .with_entities(
                    TutoringSession.tutor_id,
                    TutoringSession.center_id,
                    TutoringSession.start_at,
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading resettable sessions for tenant {tenant_id}: {str(e)}")
            raise RepositoryException(f"Failed to load resettable sessions: {str(e)}")
        return {ResourceBindingKey.of(tutor_id, center_id, start_at) for tutor_id, center_id, start_at in rows}

    def count_sessions(
        self,
        tenant_id: str,
        kinds: Iterable[SessionType],
        window: TimeWindow,
        center_ids: Optional[AbstractSet[str]] = None,
        group_ids: Optional[AbstractSet[str]] = None,
    ) -> int:
        """Count what ``delete_sessions`` would remove with the same arguments."""
        try:
            return int(self._window_query(tenant_id, kinds, window, center_ids, group_ids).count())
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting sessions for tenant {tenant_id}: {str(e)}")
            raise RepositoryException(f"Failed to count sessions: {str(e)}")

    # Bulk transitions

    def update_sessions_status(
        self,
        tenant_id: str,
        ids: Sequence[str],
        status: SessionStatus,
        reason_code: Optional[CancelReasonCode],
        changed_at: datetime,
    ) -> List[TutoringSession]:
        """
        Move the selected non-terminal sessions of a tenant to ``status``.

        Ids that do not exist, belong to another tenant, or are already
        terminal are left untouched. Returns the rows that changed.
        """
        if not ids:
            return []
        try:
            query = self._build_query().filter(
                TutoringSession.tenant_id == tenant_id,
                TutoringSession.id.in_(list(ids)),
                TutoringSession.status.notin_([s.value for s in TERMINAL_SESSION_STATUSES]),
            )
            if self.dialect_name == "postgresql":
                query = query.with_for_update()
            rows: List[TutoringSession] = query.order_by(TutoringSession.start_at).all()

            for row in rows:
                row.status = status.value
                if status == SessionStatus.CANCELLED:
                    row.canceled_at = changed_at
                    row.cancel_reason_code = reason_code.value if reason_code else None
                row.updated_at = changed_at
            self.db.flush()
            return rows
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating session status for tenant {tenant_id}: {str(e)}")
            raise RepositoryException(f"Failed to update sessions: {str(e)}")

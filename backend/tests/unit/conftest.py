from datetime import date

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tutorsched.core.enums import SessionStatus, SessionType
from tutorsched.database import Base
from tutorsched.domain.scheduling import RecurrenceRule, RuleBinding, Term

# Import models so Base.metadata is populated for create_all.
import tutorsched.models  # noqa: F401
from tutorsched.models.session import TutoringSession
from tutorsched.repositories.session_repository import SessionRepository

TENANT_ID = "tenant-mmc"


@pytest.fixture(scope="session")
def _unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's legacy transaction handling breaks SAVEPOINT isolation;
    # let SQLAlchemy emit BEGIN itself (SQLAlchemy's documented recipe).
    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def unit_db(_unit_engine) -> Session:
    """
    Provide a transactional session bound to the shared in-memory engine.

    Service-level commits release a savepoint; everything is rolled back when
    the test ends.
    """
    connection = _unit_engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, expire_on_commit=False, future=True)
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess, trans):
        if trans.nested and not trans._parent.nested:
            sess.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def session_repo(unit_db) -> SessionRepository:
    return SessionRepository(unit_db)


@pytest.fixture
def spring_term() -> Term:
    """Spring term in Edmonton; DST starts on Sunday 2026-03-08."""
    return Term(start_date=date(2026, 2, 9), end_date=date(2026, 6, 13), time_zone="America/Edmonton")


@pytest.fixture
def tuesday_rule() -> RecurrenceRule:
    return RecurrenceRule(weekday=2, start_time_local="18:30", duration_minutes=60)


@pytest.fixture
def g4_binding(tuesday_rule) -> RuleBinding:
    return RuleBinding(
        rule=tuesday_rule,
        tutor_id="tutor-1",
        center_id="center-1",
        label="Singapore Math G4",
        group_id="group-g4",
    )


@pytest.fixture
def make_session(unit_db):
    """Insert a session row directly, bypassing the engine."""

    def _make(start_at, end_at=None, **overrides) -> TutoringSession:
        values = {
            "tenant_id": TENANT_ID,
            "center_id": "center-1",
            "tutor_id": "tutor-1",
            "session_type": SessionType.GROUP.value,
            "group_id": "group-g4",
            "start_at": start_at,
            "end_at": end_at or start_at,
            "timezone": "America/Edmonton",
            "status": SessionStatus.SCHEDULED.value,
        }
        values.update(overrides)
        row = TutoringSession(**values)
        unit_db.add(row)
        unit_db.flush()
        return row

    return _make

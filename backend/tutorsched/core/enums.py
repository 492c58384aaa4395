# backend/tutorsched/core/enums.py
"""
Core enums for the scheduling engine.

Session-level values are persisted as plain strings (see models/session.py);
the deployment environment and capability flags only travel through the
safety gate and are never stored.
"""

from enum import Enum


class SessionType(str, Enum):
    """Kinds of persisted sessions."""

    ONE_ON_ONE = "ONE_ON_ONE"
    GROUP = "GROUP"
    CLASS = "CLASS"


# Session kinds produced by recurrence expansion; the only kinds a scoped reset may delete.
GENERATED_SESSION_TYPES = frozenset({SessionType.GROUP, SessionType.CLASS})


class SessionStatus(str, Enum):
    """Session lifecycle statuses."""

    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


TERMINAL_SESSION_STATUSES = frozenset({SessionStatus.CANCELLED, SessionStatus.COMPLETED})


class CancelReasonCode(str, Enum):
    """Closed set of reasons an operator may give for a bulk cancel."""

    WEATHER = "WEATHER"
    TUTOR_UNAVAILABLE = "TUTOR_UNAVAILABLE"
    HOLIDAY = "HOLIDAY"
    LOW_ENROLLMENT = "LOW_ENROLLMENT"
    OTHER = "OTHER"


class DeploymentEnvironment(str, Enum):
    """Target environment named explicitly by the operator."""

    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, raw: str | None) -> "DeploymentEnvironment":
        normalized = (raw or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown environment '{raw}'. Expected one of: staging, production")


class CapabilityFlag(str, Enum):
    """Capabilities requested from the safety gate."""

    GENERATE = "generate"
    BULK_TRANSITION = "bulk_transition"
    RESET_IN_RANGE = "reset_in_range"
    SEED_TEST_DATA = "seed_test_data"
    FORBIDDEN = "forbidden"

    @property
    def is_destructive(self) -> bool:
        return self in DESTRUCTIVE_CAPABILITIES


DESTRUCTIVE_CAPABILITIES = frozenset(
    {CapabilityFlag.RESET_IN_RANGE, CapabilityFlag.SEED_TEST_DATA, CapabilityFlag.FORBIDDEN}
)


class AuditResult(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"

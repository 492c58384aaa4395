# backend/tutorsched/core/constants.py
"""Shared constants for the scheduling engine."""

import re

BRAND_NAME = "tutorsched"

# Wall-clock start time for recurrence rules: 00:00 through 23:59.
LOCAL_TIME_PATTERN = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")

MINUTES_PER_DAY = 24 * 60

ISO_WEEKDAY_LABELS = {
    1: "Mon",
    2: "Tue",
    3: "Wed",
    4: "Thu",
    5: "Fri",
    6: "Sat",
    7: "Sun",
}

# Raw command-line switches that are never accepted by operator tooling.
FORBIDDEN_CLI_FLAGS = frozenset({"--reset", "--truncate", "--delete", "--drop", "--wipe"})

AUDIT_ENTITY_SESSION = "session"
AUDIT_ENTITY_SCHEDULE = "schedule"

MAX_BULK_SESSION_IDS = 500

# backend/tests/unit/test_occurrence_generator.py
"""
Unit tests for weekly occurrence expansion.

Covers weekday alignment, exclusions, DST offsets in America/Edmonton and
rule validation.
"""

from datetime import date, datetime

import pytest
import pytz

from tutorsched.core.exceptions import ValidationException
from tutorsched.domain.scheduling import RecurrenceRule, RuleBinding, Term
from tutorsched.services import occurrence_generator
from tutorsched.services.occurrence_generator import generate, generate_for_bindings, validate_rule


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=pytz.UTC)


class TestGenerate:
    def test_spring_term_has_eighteen_tuesdays(self, spring_term, tuesday_rule):
        occurrences = generate(spring_term, tuesday_rule)

        assert len(occurrences) == 18
        assert occurrences[0].local_date == date(2026, 2, 10)
        assert occurrences[-1].local_date == date(2026, 6, 9)
        assert all(occ.local_date.isoweekday() == 2 for occ in occurrences)

    def test_wall_clock_is_kept_across_dst_start(self, spring_term, tuesday_rule):
        by_date = {occ.local_date: occ for occ in generate(spring_term, tuesday_rule)}

        # MST (UTC-7) before 2026-03-08, MDT (UTC-6) after
        assert by_date[date(2026, 3, 3)].start_at_utc == utc(2026, 3, 4, 1, 30)
        assert by_date[date(2026, 3, 3)].end_at_utc == utc(2026, 3, 4, 2, 30)
        assert by_date[date(2026, 3, 10)].start_at_utc == utc(2026, 3, 11, 0, 30)
        assert by_date[date(2026, 3, 10)].end_at_utc == utc(2026, 3, 11, 1, 30)

    def test_results_are_sorted_and_deterministic(self, spring_term, tuesday_rule):
        first = generate(spring_term, tuesday_rule)
        second = generate(spring_term, tuesday_rule)

        assert first == second
        starts = [occ.start_at_utc for occ in first]
        assert starts == sorted(starts)

    def test_excluded_dates_are_skipped(self, spring_term, tuesday_rule):
        exclusions = frozenset({date(2026, 2, 17), date(2026, 4, 7), date(2026, 4, 8)})

        occurrences = generate(spring_term, tuesday_rule, exclusions)

        assert len(occurrences) == 16
        local_dates = {occ.local_date for occ in occurrences}
        assert date(2026, 2, 17) not in local_dates
        assert date(2026, 4, 7) not in local_dates

    def test_single_day_term(self):
        term = Term(start_date=date(2026, 3, 3), end_date=date(2026, 3, 3), time_zone="America/Edmonton")

        assert len(generate(term, RecurrenceRule(2, "09:00", 45))) == 1
        assert generate(term, RecurrenceRule(3, "09:00", 45)) == []

    def test_term_with_no_matching_weekday_is_empty(self):
        term = Term(start_date=date(2026, 3, 2), end_date=date(2026, 3, 4), time_zone="America/Edmonton")

        assert generate(term, RecurrenceRule(weekday=6, start_time_local="10:00", duration_minutes=30)) == []

    def test_start_in_dst_gap_moves_forward(self):
        term = Term(start_date=date(2026, 3, 8), end_date=date(2026, 3, 8), time_zone="America/Edmonton")

        (occurrence,) = generate(term, RecurrenceRule(weekday=7, start_time_local="02:30", duration_minutes=30))

        # 02:30 does not exist on 2026-03-08; it becomes 03:30 MDT
        assert occurrence.start_at_utc == utc(2026, 3, 8, 9, 30)
        assert occurrence.end_at_utc == utc(2026, 3, 8, 10, 0)

    def test_ambiguous_start_uses_first_occurrence(self):
        term = Term(start_date=date(2026, 11, 1), end_date=date(2026, 11, 1), time_zone="America/Edmonton")

        (occurrence,) = generate(term, RecurrenceRule(weekday=7, start_time_local="01:30", duration_minutes=20))

        # 01:30 happens twice on 2026-11-01; the MDT one comes first
        assert occurrence.start_at_utc == utc(2026, 11, 1, 7, 30)

    def test_unknown_time_zone(self, tuesday_rule):
        term = Term(start_date=date(2026, 2, 9), end_date=date(2026, 6, 13), time_zone="Mars/Olympus")

        with pytest.raises(ValidationException) as exc_info:
            generate(term, tuesday_rule)
        assert exc_info.value.code == "INVALID_TIME_ZONE"

    def test_reversed_term(self, tuesday_rule):
        term = Term(start_date=date(2026, 6, 13), end_date=date(2026, 2, 9), time_zone="America/Edmonton")

        with pytest.raises(ValidationException) as exc_info:
            generate(term, tuesday_rule)
        assert exc_info.value.code == "INVALID_TERM"


class TestValidateRule:
    @pytest.mark.parametrize(
        "rule,code",
        [
            (RecurrenceRule(0, "18:30", 60), "INVALID_WEEKDAY"),
            (RecurrenceRule(8, "18:30", 60), "INVALID_WEEKDAY"),
            (RecurrenceRule(2, "24:00", 60), "INVALID_START_TIME"),
            (RecurrenceRule(2, "6:30", 60), "INVALID_START_TIME"),
            (RecurrenceRule(2, "18:60", 60), "INVALID_START_TIME"),
            (RecurrenceRule(2, "18:30", 0), "INVALID_DURATION"),
            (RecurrenceRule(2, "18:30", -15), "INVALID_DURATION"),
            (RecurrenceRule(2, "23:30", 60), "CROSSES_MIDNIGHT"),
            (RecurrenceRule(2, "23:00", 60), "CROSSES_MIDNIGHT"),
        ],
    )
    def test_invalid_rules(self, rule, code):
        with pytest.raises(ValidationException) as exc_info:
            validate_rule(rule)
        assert exc_info.value.code == code

    def test_session_ending_one_minute_before_midnight_is_valid(self):
        validate_rule(RecurrenceRule(weekday=5, start_time_local="22:59", duration_minutes=60))

    def test_bool_is_not_a_weekday(self):
        with pytest.raises(ValidationException):
            validate_rule(RecurrenceRule(weekday=True, start_time_local="18:30", duration_minutes=60))


class TestGenerateForBindings:
    def test_candidates_carry_binding_context(self, spring_term, g4_binding):
        candidates = generate_for_bindings(spring_term, [g4_binding])

        assert len(candidates) == 18
        first = candidates[0]
        assert first.tutor_id == "tutor-1"
        assert first.center_id == "center-1"
        assert first.group_id == "group-g4"
        assert first.rule_label == "Singapore Math G4"

    def test_invalid_rule_fails_before_any_expansion(self, spring_term, g4_binding, monkeypatch):
        calls = []
        monkeypatch.setattr(
            occurrence_generator, "generate", lambda *args, **kwargs: calls.append(args) or []
        )
        bad = RuleBinding(
            rule=RecurrenceRule(weekday=4, start_time_local="23:30", duration_minutes=45),
            tutor_id="tutor-2",
            center_id="center-1",
            label="Late class",
        )

        with pytest.raises(ValidationException):
            generate_for_bindings(spring_term, [g4_binding, bad])
        assert calls == []

    def test_no_bindings_is_rejected(self, spring_term):
        with pytest.raises(ValidationException) as exc_info:
            generate_for_bindings(spring_term, [])
        assert exc_info.value.code == "NO_RULES"

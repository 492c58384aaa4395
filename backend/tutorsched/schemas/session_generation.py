# backend/tutorsched/schemas/session_generation.py
"""
Request/response DTOs for schedule generation and bulk cancel.

Requests carry only shape validation; the domain layer owns the scheduling
rules (weekday range, HH:mm format, midnight crossing, known zones) and
reports violations as ValidationException.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from ..core.enums import CancelReasonCode, DeploymentEnvironment, SessionType
from ..domain.scheduling import RecurrenceRule, RuleBinding, Term, describe_rule
from ..services.schedule_generation_service import (
    GenerationResult,
    OccurrenceSample,
    PreviewResult,
)
from ._strict_base import StrictModel, StrictRequestModel


class TermIn(StrictRequestModel):
    start_date: date
    end_date: date
    time_zone: str = Field(..., min_length=1, examples=["America/Edmonton"])

    def to_domain(self) -> Term:
        return Term(start_date=self.start_date, end_date=self.end_date, time_zone=self.time_zone)


class RecurrenceRuleIn(StrictRequestModel):
    """A weekly rule bound to one tutor, center and (optionally) group."""

    weekday: int = Field(..., description="ISO weekday, 1 = Monday ... 7 = Sunday")
    start_time_local: str = Field(..., examples=["18:30"])
    duration_minutes: int
    tutor_id: str = Field(..., min_length=1)
    center_id: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    session_type: SessionType = SessionType.GROUP
    label: Optional[str] = Field(default=None, max_length=200)

    def to_binding(self) -> RuleBinding:
        rule = RecurrenceRule(
            weekday=self.weekday,
            start_time_local=self.start_time_local,
            duration_minutes=self.duration_minutes,
        )
        return RuleBinding(
            rule=rule,
            tutor_id=self.tutor_id,
            center_id=self.center_id,
            label=self.label or f"{self.group_id or self.tutor_id} {describe_rule(rule)}",
            group_id=self.group_id,
            session_type=self.session_type,
        )


class GenerateScheduleRequest(StrictRequestModel):
    term: TermIn
    rules: List[RecurrenceRuleIn] = Field(..., min_length=1)
    exclude_dates: List[date] = Field(default_factory=list)
    dry_run: bool = False
    replace_existing_in_range: bool = False
    environment: DeploymentEnvironment
    confirm_production: bool = False


class CommitSummaryResponse(StrictModel):
    created_count: int
    skipped_count: int
    deleted_count: int
    conflicts: List[str]


class RuleOutcomeResponse(StrictModel):
    label: str
    group_id: Optional[str]
    created_count: int
    skipped_count: int


class GenerateScheduleResponse(StrictModel):
    summary: CommitSummaryResponse
    rules: List[RuleOutcomeResponse]
    environment: DeploymentEnvironment
    dry_run: bool
    occurrence_count: int
    range_from: Optional[datetime]
    range_to: Optional[datetime]

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerateScheduleResponse":
        return cls(
            summary=CommitSummaryResponse(
                created_count=result.summary.created_count,
                skipped_count=result.summary.skipped_count,
                deleted_count=result.summary.deleted_count,
                conflicts=list(result.summary.conflicts),
            ),
            rules=[
                RuleOutcomeResponse(
                    label=outcome.label,
                    group_id=outcome.group_id,
                    created_count=outcome.created_count,
                    skipped_count=outcome.skipped_count,
                )
                for outcome in result.rule_outcomes
            ],
            environment=result.environment,
            dry_run=result.dry_run,
            occurrence_count=result.occurrence_count,
            range_from=result.range_from,
            range_to=result.range_to,
        )


class OccurrenceSampleResponse(StrictModel):
    rule_label: str
    tutor_id: str
    center_id: str
    start_at_utc: datetime
    end_at_utc: datetime
    start_at_local: datetime

    @classmethod
    def from_sample(cls, sample: OccurrenceSample) -> "OccurrenceSampleResponse":
        return cls(
            rule_label=sample.rule_label,
            tutor_id=sample.tutor_id,
            center_id=sample.center_id,
            start_at_utc=sample.start_at_utc,
            end_at_utc=sample.end_at_utc,
            start_at_local=sample.start_at_local,
        )


class PreviewScheduleResponse(GenerateScheduleResponse):
    samples: List[OccurrenceSampleResponse]

    @classmethod
    def from_preview(cls, preview: PreviewResult) -> "PreviewScheduleResponse":
        base = GenerateScheduleResponse.from_result(preview.result)
        return cls(
            **base.model_dump(),
            samples=[OccurrenceSampleResponse.from_sample(sample) for sample in preview.samples],
        )


class BulkCancelRequest(StrictRequestModel):
    session_ids: List[str] = Field(..., min_length=1)
    reason_code: CancelReasonCode
    environment: DeploymentEnvironment
    confirm_production: bool = False


class BulkCancelResponse(StrictModel):
    transitioned_count: int

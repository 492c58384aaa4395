"""Pydantic bases for request and response DTOs; unknown fields are rejected."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Response base."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request base; a stray field such as ``wipe`` is a 422, never silently dropped."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, str_strip_whitespace=True)

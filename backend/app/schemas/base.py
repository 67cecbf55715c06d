"""
Base schemas shared by the settlement API.
"""

from pydantic import BaseModel, ConfigDict


class StandardizedModel(BaseModel):  # type: ignore[misc]
    """Response base: reads ORM objects and serializes enums as values."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True, from_attributes=True)


class StrictRequestModel(BaseModel):  # type: ignore[misc]
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, use_enum_values=True)

"""Common Pydantic schemas."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"


class CamelModel(BaseModel):
    """Base for the booking contract: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response with the booking error contract fields."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    success: bool = Field(False, description="Always false for errors")
    error: str = Field(..., description="Machine readable error code")
    message: str = Field(..., description="Human-readable message")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    details: Optional[Any] = Field(None, description="Structured context for the error")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


class TimeSlot(CamelModel):
    """A booked time-of-day range."""

    start_time: str = Field(..., description="Start time (HH:MM:SS.mmm)")
    end_time: str = Field(..., description="End time (HH:MM:SS.mmm)")

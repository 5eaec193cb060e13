"""Availability-related Pydantic schemas."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field, model_validator

from .common import CamelModel, TimeSlot


class AvailabilityAction(str, Enum):
    """What to do after checking a package."""
    CHECK = "check"
    HOLD = "hold"
    RELEASE = "release"


class AvailabilityCheckRequest(CamelModel):
    """Request schema for checking, holding or releasing a package."""

    facility_id: str = Field(..., min_length=1, description="Public facility identifier")
    session_id: str = Field(..., min_length=1, description="Browser session identifier")
    action: AvailabilityAction = Field(AvailabilityAction.CHECK, description="check, hold or release")
    package_type: Optional[str] = Field(None, description="HOURLY, HALF_DAY, FULL_DAY or MULTI_DAY")
    start_date: Optional[str] = Field(None, description="First day (YYYY-MM-DD)")
    end_date: Optional[str] = Field(None, description="Last day (YYYY-MM-DD), defaults to start date")
    start_time: Optional[str] = Field(None, description="Start time for HOURLY packages")
    end_time: Optional[str] = Field(None, description="End time for HOURLY packages")
    half_day_period: Optional[str] = Field(None, description="morning or afternoon for HALF_DAY")

    @model_validator(mode="after")
    def require_package_for_check(self) -> "AvailabilityCheckRequest":
        if self.action is not AvailabilityAction.RELEASE:
            missing = [
                alias
                for alias, value in (("packageType", self.package_type), ("startDate", self.start_date))
                if not value
            ]
            if missing:
                raise ValueError(f"Missing required parameters: {', '.join(missing)}")
        return self


class PackageOut(CamelModel):
    """Resolved package window."""

    type: str = Field(..., description="Package type")
    start_date: str = Field(..., description="First day")
    end_date: str = Field(..., description="Last day")
    start_time: str = Field(..., description="Start time (HH:MM:SS.mmm)")
    end_time: str = Field(..., description="End time (HH:MM:SS.mmm)")


class AlternativeSlot(CamelModel):
    """Free hourly slot suggested instead of an unavailable package."""

    type: str = Field("HOURLY", description="Always HOURLY")
    start_time: str = Field(..., description="Slot start (HH:MM:SS.mmm)")
    end_time: str = Field(..., description="Slot end (HH:MM:SS.mmm)")
    available: bool = Field(True, description="Always true")
    display_time: str = Field(..., description="Human readable range, e.g. 9:00 - 10:00")


class AvailabilityCheckResponse(CamelModel):
    """Response schema for an availability check."""

    available: bool = Field(..., description="Whether the package is free")
    package: PackageOut = Field(..., description="Package that was checked")
    conflict_reason: Optional[str] = Field(None, description="existing_booking, temporary_hold or null")
    alternatives: List[AlternativeSlot] = Field(default_factory=list, description="Free hourly slots")
    hold_expiry: Optional[datetime] = Field(None, description="Expiry of the hold placed, if any")


class HoldReleaseResponse(CamelModel):
    """Response schema for releasing a hold."""

    success: bool = Field(True, description="Always true")
    message: str = Field("Hold released", description="Outcome message")


class DayAvailability(CamelModel):
    """Availability of one calendar date."""

    available: bool = Field(..., description="False when the whole day is booked")
    partially_available: bool = Field(..., description="True when some slots are booked")
    booked_time_slots: List[TimeSlot] = Field(default_factory=list, description="Booked ranges")


class MonthAvailabilityResponse(CamelModel):
    """Per-date availability for a calendar month."""

    dates: Dict[str, DayAvailability] = Field(..., description="Keyed by YYYY-MM-DD")

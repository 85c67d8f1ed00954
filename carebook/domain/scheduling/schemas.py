"""Scheduling domain schemas - Pydantic models for validation"""

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import parse_time_string, validate_time_string


class ScheduleDay(BaseModel):
    """Operating hours for one weekday (0 = Monday ... 6 = Sunday)"""

    dayOfWeek: int = Field(ge=0, le=6)
    openTime: str = "09:00"
    closeTime: str = "17:00"
    isClosed: bool = False

    @field_validator("openTime", "closeTime")
    @classmethod
    def validate_time(cls, v):
        return validate_time_string(v)

    @model_validator(mode="after")
    def validate_window(self):
        if not self.isClosed and parse_time_string(self.closeTime) <= parse_time_string(
            self.openTime
        ):
            raise ValueError("Closing time must be after opening time")
        return self


class ScheduleUpdate(BaseModel):
    """Full weekly schedule replacement"""

    days: list[ScheduleDay] = Field(min_length=1, max_length=7)

    @field_validator("days")
    @classmethod
    def validate_unique_days(cls, v):
        weekdays = [day.dayOfWeek for day in v]
        if len(weekdays) != len(set(weekdays)):
            raise ValueError("Each weekday may appear only once")
        return v


class ScheduleDayResponse(BaseModel):
    dayOfWeek: int
    openTime: str
    closeTime: str
    isClosed: bool


from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, StrictInt, field_validator, model_validator
from pydantic.alias_generators import to_camel


class AgeRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: StrictInt
    max: StrictInt

    @model_validator(mode="after")
    def _check_order(self):
        if self.min > self.max:
            raise ValueError("ageRange.min must not exceed ageRange.max")
        return self


class DateRange(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    start_date: str  # ISO 8601: yyyy-MM-dd
    end_date: str

    @field_validator("start_date", "end_date")
    @classmethod
    def _iso_date(cls, value: str) -> str:
        date.fromisoformat(value)
        return value

    @model_validator(mode="after")
    def _check_order(self):
        if date.fromisoformat(self.start_date) > date.fromisoformat(self.end_date):
            raise ValueError("dateRange.startDate must not be after dateRange.endDate")
        return self

    @property
    def year(self) -> str:
        return self.start_date[:4]


class SearchQuery(BaseModel):
    """Inbound activity search. Blank queries are rejected by the orchestrator,
    not here, so they can be reported with their own message."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    query: str = ""
    location: Optional[str] = None
    age_range: Optional[AgeRange] = None
    date_range: Optional[DateRange] = None

    @field_validator("query", mode="before")
    @classmethod
    def _null_query_is_blank(cls, value):
        return "" if value is None else value

    @property
    def is_blank(self) -> bool:
        return not self.query.strip()

# schoolsout/models/entities.py
from typing import List

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel


class Activity(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = ""
    title: str = ""
    description: str = ""
    category: str = ""
    location: str = ""
    age_range: str = ""
    date: str = ""
    price: str = ""
    image_url: str = ""
    booking_url: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        # models emit null for unknown fields despite being asked for ""
        return "" if value is None else value


ActivityList = TypeAdapter(List[Activity])


class SearchResponse(BaseModel):
    success: bool
    activities: List[Activity] = Field(default_factory=list)
    message: str = ""

    def to_payload(self) -> dict:
        return {
            "success": self.success,
            "activities": [a.model_dump(by_alias=True) for a in self.activities],
            "message": self.message,
        }


class ErrorResponse(BaseModel):
    success: bool = False
    error: str

from typing import List
from pydantic import BaseModel, Field
from schoolsout.models.entities import Activity
from schoolsout.models.search_query import SearchQuery


class RunState(BaseModel):
    query: SearchQuery
    search_results: str = ""
    activities: List[Activity] = Field(default_factory=list)
    logs: List[dict] = Field(default_factory=list)

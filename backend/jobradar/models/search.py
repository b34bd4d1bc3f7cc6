"""Search query and discovered job models (queries and jobs tables)."""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from jobradar.constants import WORK_TYPES


def _validate_work_types(value: list[int]) -> list[int]:
    unknown = sorted(set(value) - set(WORK_TYPES))
    if unknown:
        raise ValueError(f"Unknown work type ids: {unknown}")
    return sorted(set(value))


WorkTypeIds = Annotated[list[int], AfterValidator(_validate_work_types)]


class State(BaseModel):
    id: int
    name: str
    code: str


class City(BaseModel):
    id: int
    city: str
    state_name: str | None = None
    state_id: int | None = None


class Query(BaseModel):
    """A user-owned job search."""

    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: str
    keywords: str
    work_types: list[int] = Field(default_factory=list)
    city_id: int | None = None
    location_string: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    us_cities: City | None = None


class CreateQueryRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    keywords: str = Field(min_length=1, max_length=500)
    work_types: WorkTypeIds = Field(default_factory=list)
    city_id: int | None = None
    location_string: str | None = None


class UpdateQueryRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    keywords: str | None = Field(default=None, min_length=1, max_length=500)
    work_types: WorkTypeIds | None = None
    city_id: int | None = None
    location_string: str | None = None
    is_active: bool | None = None


class QuerySummary(BaseModel):
    id: int
    keywords: str
    location_string: str | None = None


class Job(BaseModel):
    """A discovered posting."""

    model_config = ConfigDict(extra="ignore")

    id: int
    query_id: int | None = None
    user_id: str
    title: str
    company: str
    link: str
    location: str | None = None
    posted: datetime | None = None
    scraped_at: datetime | None = None
    is_deleted: bool = False
    applied: bool = False
    description: str | None = None
    salary: str | None = None
    created_at: datetime | None = None
    queries: QuerySummary | None = None


class JobFilters(BaseModel):
    """Listing filters for GET /jobs."""

    search: str | None = None
    query_id: int | None = None
    posted_from: datetime | None = None
    posted_to: datetime | None = None
    applied_only: bool = False
    show_applied: bool = True
    sort_by: Literal["posted", "company", "title"] = "posted"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int | None = Field(default=None, ge=1, le=500)
    offset: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _date_range_order(self) -> "JobFilters":
        if self.posted_from and self.posted_to and self.posted_from > self.posted_to:
            raise ValueError("posted_from must not be after posted_to")
        return self


class JobStats(BaseModel):
    total_jobs: int
    today_jobs: int
    week_jobs: int
    unique_queries: int


class AppliedUpdate(BaseModel):
    applied: bool

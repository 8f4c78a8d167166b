from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Request bodies ---
class JobCreate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    salary: Optional[int] = Field(default=None, ge=0)
    equity: Optional[Decimal] = Field(default=None, ge=0, le=1)
    company_handle: str = Field(min_length=1, max_length=25)


class JobUpdate(CamelModel):
    """Any subset of the mutable fields; an explicit null clears salary/equity."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1)
    salary: Optional[int] = Field(default=None, ge=0)
    equity: Optional[Decimal] = Field(default=None, ge=0, le=1)

    @field_validator("title")
    @classmethod
    def title_not_null(cls, value):
        if value is None:
            raise ValueError("title cannot be null")
        return value


# --- Responses ---
class CompanyOut(CamelModel):
    handle: str
    name: str
    description: Optional[str] = None
    num_employees: Optional[int] = None
    logo_url: Optional[str] = None


class JobSummary(CamelModel):
    id: int
    title: str
    salary: Optional[int] = None
    equity: Optional[Decimal] = None


class JobOut(JobSummary):
    company_handle: str


class JobDetailOut(JobSummary):
    company: CompanyOut


class CompanyDetailOut(CompanyOut):
    jobs: List[JobSummary] = []


class JobResponse(BaseModel):
    job: JobOut


class JobDetailResponse(BaseModel):
    job: JobDetailOut


class JobsResponse(BaseModel):
    jobs: List[JobOut]


class CompanyResponse(BaseModel):
    company: CompanyDetailOut


class CompaniesResponse(BaseModel):
    companies: List[CompanyOut]


class DeletedResponse(BaseModel):
    deleted: int

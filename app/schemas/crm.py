"""
Schemas for CRM tracking.

The job reference passed to the tracker is an explicit tagged variant:
FromStore when the posting is already persisted, FromCandidate when the caller
carries descriptive data for a posting that may not be stored yet.
"""
from dataclasses import dataclass
from typing import Optional, List, Dict, Union
from datetime import datetime
from pydantic import BaseModel, Field

from app.db.models.crm_application import ApplicationStatus, PriorityLevel
from app.schemas.job_posting import JobPostingData


@dataclass(frozen=True)
class FromStore:
    job_id: str


@dataclass(frozen=True)
class FromCandidate:
    job_id: str
    data: JobPostingData


JobReference = Union[FromStore, FromCandidate]


@dataclass
class TrackJobInput:
    job: JobReference
    initial_status: Optional[ApplicationStatus] = None
    priority: Optional[PriorityLevel] = None
    notes: Optional[str] = None

    @property
    def external_job_id(self) -> str:
        return self.job.job_id


class TrackJobRequest(BaseModel):
    """Request body for POST /crm/track."""
    external_job_id: str = Field(..., min_length=1)
    job_data: Optional[JobPostingData] = Field(
        None, description="Pass for search results that are not stored yet"
    )
    initial_status: Optional[ApplicationStatus] = None
    priority: Optional[PriorityLevel] = None
    notes: Optional[str] = None

    def to_input(self) -> TrackJobInput:
        if self.job_data is not None:
            job = FromCandidate(job_id=self.external_job_id, data=self.job_data)
        else:
            job = FromStore(job_id=self.external_job_id)
        return TrackJobInput(
            job=job,
            initial_status=self.initial_status,
            priority=self.priority,
            notes=self.notes,
        )


class CrmCompanyResponse(BaseModel):
    id: int
    user_id: int
    name: str
    industry: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CrmApplicationResponse(BaseModel):
    id: int
    user_id: int
    company_id: int
    external_job_id: Optional[str] = None
    job_title: str
    job_url: Optional[str] = None
    job_description: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    salary_currency: str = "USD"
    location_type: Optional[str] = None
    work_location: Optional[str] = None
    application_date: Optional[datetime] = None
    source: Optional[str] = None
    status: ApplicationStatus
    priority: PriorityLevel
    notes: Optional[str] = None
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TrackingOutcomeResponse(BaseModel):
    id: int
    external_job_id: str
    application_id: Optional[int] = None
    company_id: Optional[int] = None
    company_created: bool
    steps_completed: List[str]
    mirror_status: str
    mirror_error: Optional[str] = None
    diverged: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TrackJobResponse(BaseModel):
    application: CrmApplicationResponse
    company: CrmCompanyResponse
    is_new_company: bool
    outcome: TrackingOutcomeResponse


class ApplicationWithCompanyResponse(BaseModel):
    application: CrmApplicationResponse
    company: CrmCompanyResponse


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus


class CrmStatsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    this_week: int
    from_external_jobs: int

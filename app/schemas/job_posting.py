"""
Pydantic schemas for job postings, manual import and interest state.
"""
from typing import Optional, Dict, Any, List
from datetime import datetime
from pydantic import BaseModel, Field

from app.db.models.job_posting import LocationType
from app.db.models.user_job_item import JobItemState


class JobPostingData(BaseModel):
    """
    Inline descriptive data for a posting the caller has in hand but that may
    not be persisted yet (e.g. a live search result).
    """
    title: Optional[str] = Field(None, max_length=255, description="Job title")
    company_name: Optional[str] = Field(None, max_length=255, description="Company name")
    location: Optional[str] = None
    location_type: Optional[LocationType] = None
    description_snippet: Optional[str] = None
    canonical_url: Optional[str] = None
    apply_url: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    salary_currency: Optional[str] = Field(None, max_length=3)
    provider: Optional[str] = Field(None, description="Origin tag (jooble, openai, ...)")
    provider_job_id: Optional[str] = None
    posted_at: Optional[datetime] = None
    raw: Optional[Dict[str, Any]] = None


class JobPostingCreate(BaseModel):
    """Schema for ingesting a posting directly."""
    id: Optional[str] = Field(None, description="Caller-assigned id; generated when omitted")
    provider: str = Field(..., min_length=1)
    provider_job_id: Optional[str] = None
    canonical_url: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=255)
    company_name: str = Field(..., min_length=1, max_length=255)
    location: Optional[str] = None
    location_type: Optional[LocationType] = None
    description_snippet: Optional[str] = None
    posted_at: Optional[datetime] = None
    apply_url: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    salary_currency: str = Field("USD", max_length=3)
    raw: Optional[Dict[str, Any]] = None


class JobPostingResponse(BaseModel):
    """Schema for a stored posting."""
    id: str
    provider: str
    provider_job_id: Optional[str] = None
    canonical_url: Optional[str] = None
    title: str
    company_name: str
    location: Optional[str] = None
    location_type: Optional[str] = None
    description_snippet: Optional[str] = None
    posted_at: Optional[datetime] = None
    apply_url: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    salary_currency: str = "USD"
    ingested_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ImportJobRequest(BaseModel):
    """
    Structured fields produced by the page-metadata extractor.

    url, title and company_name are required; they are validated by the
    service so a missing field yields the domain validation error.
    """
    url: Optional[str] = Field(None, description="URL of the job posting")
    title: Optional[str] = None
    company_name: Optional[str] = None
    location: Optional[str] = None
    location_type: Optional[LocationType] = None
    description_snippet: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    salary_currency: Optional[str] = Field(None, max_length=3)


class ImportJobResponse(BaseModel):
    job: JobPostingResponse
    existed: bool = Field(..., description="True when the URL was already known")


class JobStateRequest(BaseModel):
    state: JobItemState
    job_data: Optional[JobPostingData] = Field(
        None, description="Descriptive data for postings not yet stored"
    )


class JobItemResponse(BaseModel):
    user_id: int
    external_job_id: str
    state: JobItemState
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobWithStateResponse(JobPostingResponse):
    user_state: Optional[JobItemState] = None
    crm_application_id: Optional[int] = None


class JobStatesRequest(BaseModel):
    job_ids: List[str] = Field(default_factory=list, max_length=500)


class JobStatesResponse(BaseModel):
    states: Dict[str, JobItemState]

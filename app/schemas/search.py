"""
Pydantic schemas for the search provider collaborator.
"""
from typing import Optional, List
from pydantic import BaseModel, Field

from app.db.models.job_posting import LocationType
from app.schemas.job_posting import JobPostingCreate, JobPostingResponse


class JobSearchParams(BaseModel):
    keywords: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    radius: Optional[int] = Field(None, ge=0)
    salary: Optional[int] = Field(None, ge=0)
    page: int = Field(1, ge=1)
    location_type: Optional[LocationType] = None


class ProviderSearchResult(BaseModel):
    """Raw provider output. Postings here are candidates, not yet deduplicated."""
    jobs: List[JobPostingCreate] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    provider: str


class JobSearchResponse(BaseModel):
    """Search output after every posting went through the job store."""
    jobs: List[JobPostingResponse]
    total_count: int
    page: int
    provider: str

"""
JobPosting model: the canonical, deduplicated record of a job advertisement.

Postings are shared across users and immutable once ingested. Dedup keys are
enforced by the store so concurrent ingestion paths cannot create duplicates.
"""
import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, UniqueConstraint, Index
from sqlalchemy.sql import func
from app.db.base import Base


class JobProvider(str, enum.Enum):
    """Origin tags for postings."""
    JOOBLE = "jooble"
    MANUAL_URL = "manual_url"
    LEGACY = "legacy"
    OPENAI = "openai"
    PERPLEXITY = "perplexity"


class LocationType(str, enum.Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"


class JobPosting(Base):
    __tablename__ = "external_jobs"

    id = Column(String, primary_key=True)
    provider = Column(String, nullable=False, index=True)
    provider_job_id = Column(String, nullable=True)
    canonical_url = Column(String, nullable=True)

    # Descriptive fields (first write wins)
    title = Column(String, nullable=False)
    company_name = Column(String, nullable=False, index=True)
    location = Column(String, nullable=True)
    location_type = Column(String, nullable=True)
    description_snippet = Column(Text, nullable=True)
    posted_at = Column(DateTime(timezone=True), nullable=True)
    apply_url = Column(String, nullable=True)
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    salary_currency = Column(String(3), nullable=False, default="USD")
    raw = Column(JSON, nullable=True)  # Provider payload, kept for debugging

    ingested_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("canonical_url", name="uq_external_jobs_canonical_url"),
        UniqueConstraint("provider", "provider_job_id", name="uq_external_jobs_provider_job"),
        Index("idx_external_jobs_company_title", "company_name", "title"),
    )

    def __repr__(self):
        return f"<JobPosting(id='{self.id}', provider='{self.provider}', title='{self.title}')>"

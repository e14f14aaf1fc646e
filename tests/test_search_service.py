"""
Unit tests for search result ingestion and provider helpers.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.db.models  # noqa: F401
from app.db.base import Base
from app.db.models.job_posting import JobPosting, LocationType
from app.schemas.job_posting import JobPostingCreate
from app.schemas.search import JobSearchParams, ProviderSearchResult
from app.services.search_service import (
    JobSearchProvider,
    generate_job_id,
    normalize_candidate,
    detect_location_type,
    parse_salary_from_text,
    search_and_ingest,
)


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


class StaticProvider(JobSearchProvider):
    name = "jooble"

    def __init__(self, jobs):
        self.jobs = jobs

    def search(self, params: JobSearchParams) -> ProviderSearchResult:
        return ProviderSearchResult(jobs=self.jobs, total_count=len(self.jobs), page=params.page, provider=self.name)


def test_search_and_ingest_stores_and_collapses_duplicates(db):
    provider = StaticProvider([
        JobPostingCreate(id="j1", provider="jooble", provider_job_id="100", title="Engineer", company_name="Acme",
                         canonical_url="https://jobs.example.com/100"),
        JobPostingCreate(id="j2", provider="jooble", provider_job_id="101", title="Engineer", company_name="Acme",
                         canonical_url="https://jobs.example.com/100?utm_medium=email"),
        JobPostingCreate(id="j3", provider="jooble", provider_job_id="102", title="Analyst", company_name="Globex"),
    ])

    response = search_and_ingest(db, provider, JobSearchParams(keywords="engineer", location="Dubai"))

    assert [job.id for job in response.jobs] == ["j1", "j3"]
    assert response.provider == "jooble"
    assert response.total_count == 3
    assert db.query(JobPosting).count() == 2


def test_search_and_ingest_returns_stored_ids_on_repeat(db):
    jobs = [JobPostingCreate(id="j1", provider="jooble", provider_job_id="100", title="Engineer", company_name="Acme")]
    search_and_ingest(db, StaticProvider(jobs), JobSearchParams(keywords="engineer", location="Dubai"))

    renamed = [JobPostingCreate(id="other", provider="jooble", provider_job_id="100", title="Engineer", company_name="Acme")]
    response = search_and_ingest(db, StaticProvider(renamed), JobSearchParams(keywords="engineer", location="Dubai"))

    assert [job.id for job in response.jobs] == ["j1"]


def test_generate_job_id_is_deterministic():
    first = generate_job_id("Engineer", "Acme", "Dubai")

    assert first == generate_job_id("Engineer", "Acme", "Dubai")
    assert first != generate_job_id("Engineer", "Acme", "Doha")
    assert first.startswith("ai_")
    assert len(first) == len("ai_") + 16


@pytest.mark.parametrize("text,expected", [
    ("Remote (EMEA)", LocationType.REMOTE),
    ("Hybrid - Dubai", LocationType.HYBRID),
    ("On-site in Riyadh", LocationType.ONSITE),
    ("Abu Dhabi", None),
    (None, None),
])
def test_detect_location_type(text, expected):
    assert detect_location_type(text) == expected


def test_parse_salary_from_text():
    assert parse_salary_from_text("AED 28,000 - 40,000/month") == {"min": 28000, "max": 40000, "currency": "AED"}
    assert parse_salary_from_text("From £55,000") == {"min": 55000, "max": None, "currency": "GBP"}
    assert parse_salary_from_text("Competitive, 5 days a week") == {"min": None, "max": None, "currency": "USD"}


def test_search_and_ingest_fills_missing_id_location_type_and_salary(db):
    candidate = JobPostingCreate(
        provider="openai",
        title="Data Analyst",
        company_name="Emirates NBD",
        location="Dubai, UAE",
        raw={"salary": "AED 18,000 - 25,000/month", "work_type": "Hybrid"},
    )

    first = search_and_ingest(db, StaticProvider([candidate]), JobSearchParams(keywords="analyst", location="Dubai"))
    again = search_and_ingest(db, StaticProvider([candidate]), JobSearchParams(keywords="analyst", location="Dubai"))

    job = first.jobs[0]
    assert job.id == generate_job_id("Data Analyst", "Emirates NBD", "Dubai, UAE")
    assert job.location_type == LocationType.HYBRID.value
    assert (job.salary_min, job.salary_max, job.salary_currency) == (18000, 25000, "AED")
    assert again.jobs[0].id == job.id
    assert db.query(JobPosting).count() == 1


def test_normalize_candidate_keeps_provider_values():
    candidate = JobPostingCreate(
        id="j9",
        provider="jooble",
        title="Remote Engineer",
        company_name="Acme",
        location_type="onsite",
        salary_min=50000,
        raw={"salary": "AED 1,000 - 2,000"},
    )

    normalized = normalize_candidate(candidate)

    assert normalized.id == "j9"
    assert normalized.location_type == LocationType.ONSITE
    assert normalized.salary_min == 50000
    assert normalized.salary_max is None

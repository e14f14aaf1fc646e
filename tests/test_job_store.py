"""
Unit tests for the job record store.
Tests idempotent ingestion, dedup by URL / provider id, and manual import.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.db.models  # noqa: F401
from app.db.base import Base
from app.db.models.job_posting import JobPosting
from app.core.errors import TransientStoreError, ValidationError
from app.schemas.job_posting import JobPostingCreate, JobPostingData, ImportJobRequest
from app.services import job_store


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


def make_candidate(**overrides) -> JobPostingCreate:
    data = {
        "id": "a",
        "provider": "jooble",
        "title": "Backend Engineer",
        "company_name": "Acme",
        "location": "Dubai, UAE",
    }
    data.update(overrides)
    return JobPostingCreate(**data)


def test_ensure_stored_inserts_new_posting(db):
    posting = job_store.ensure_stored(db, make_candidate())

    assert posting.id == "a"
    assert posting.salary_currency == "USD"
    assert posting.ingested_at is not None
    assert job_store.get_by_id(db, "a") is not None


def test_ensure_stored_is_idempotent_first_write_wins(db):
    first = job_store.ensure_stored(db, make_candidate(title="First title"))
    second = job_store.ensure_stored(db, make_candidate(title="Second title"))

    assert second.id == first.id == "a"
    assert second.title == "First title"
    assert db.query(JobPosting).count() == 1


def test_ensure_stored_dedups_by_canonical_url(db):
    first = job_store.ensure_stored(db, make_candidate(id="a", canonical_url="https://x/1"))
    second = job_store.ensure_stored(db, make_candidate(id="b", canonical_url="https://x/1"))

    assert first.id == "a"
    assert second.id == "a"
    assert job_store.get_by_id(db, "b") is None
    assert db.query(JobPosting).filter(JobPosting.canonical_url == "https://x/1").count() == 1


def test_ensure_stored_dedups_tracking_url_variants(db):
    job_store.ensure_stored(db, make_candidate(id="a", canonical_url="https://Jobs.Example.com/p/42/?utm_source=feed"))
    second = job_store.ensure_stored(db, make_candidate(id="b", canonical_url="https://jobs.example.com/p/42"))

    assert second.id == "a"
    assert job_store.get_by_canonical_url(db, "https://jobs.example.com:443/p/42/").id == "a"


def test_ensure_stored_dedups_by_provider_job_id(db):
    job_store.ensure_stored(db, make_candidate(id="a", provider_job_id="J-1"))
    second = job_store.ensure_stored(db, make_candidate(id="b", provider_job_id="J-1"))
    other_provider = job_store.ensure_stored(db, make_candidate(id="c", provider="openai", provider_job_id="J-1"))

    assert second.id == "a"
    assert other_provider.id == "c"
    assert db.query(JobPosting).count() == 2


def test_ensure_stored_generates_id_when_missing(db):
    posting = job_store.ensure_stored(db, make_candidate(id=None))

    assert posting.id
    assert posting.id != "a"


def test_ensure_stored_absorbs_concurrent_insert(db, monkeypatch):
    """Lookup misses, another writer inserts, our insert collides: return the winner."""
    other = TestSessionLocal()
    other.add(JobPosting(id="a", provider="jooble", title="Winner", company_name="Acme", salary_currency="USD"))
    other.commit()
    other.close()

    real_get_by_id = job_store.get_by_id
    calls = []

    def racing_get_by_id(session, job_id):
        calls.append(job_id)
        if len(calls) == 1:
            return None
        return real_get_by_id(session, job_id)

    monkeypatch.setattr(job_store, "get_by_id", racing_get_by_id)

    posting = job_store.ensure_stored(db, make_candidate(title="Loser"))

    assert posting.id == "a"
    assert posting.title == "Winner"
    assert len(calls) == 2
    assert db.query(JobPosting).count() == 1


def test_ensure_stored_store_unavailable_raises_transient(db, monkeypatch):
    def unavailable(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db, "query", unavailable)

    with pytest.raises(TransientStoreError):
        job_store.ensure_stored(db, make_candidate())


def test_candidate_from_inline_fills_defaults():
    candidate = job_store.candidate_from_inline("p9", JobPostingData(), default_provider="legacy")

    assert candidate.id == "p9"
    assert candidate.provider == "legacy"
    assert candidate.provider_job_id == "p9"
    assert candidate.title == "Unknown"
    assert candidate.company_name == "Unknown"
    assert candidate.salary_currency == "USD"


def test_import_manual_job_creates_posting(db):
    request = ImportJobRequest(
        url="https://careers.acme.com/jobs/123/?utm_campaign=spring",
        title="Data Engineer",
        company_name="Acme",
        salary_min=20000,
        salary_max=30000,
        salary_currency="AED",
    )

    posting, existed = job_store.import_manual_job(db, 7, request)

    assert existed is False
    assert posting.provider == "manual_url"
    assert posting.provider_job_id.startswith("manual_")
    assert posting.provider_job_id.endswith("_7")
    assert posting.canonical_url == "https://careers.acme.com/jobs/123"
    assert posting.apply_url == "https://careers.acme.com/jobs/123/?utm_campaign=spring"
    assert posting.raw == {"original_url": request.url, "imported_by": 7}
    assert posting.salary_currency == "AED"


def test_import_manual_job_returns_existing_for_known_url(db):
    first, _ = job_store.import_manual_job(
        db, 1, ImportJobRequest(url="https://careers.acme.com/jobs/123", title="Data Engineer", company_name="Acme")
    )
    second, existed = job_store.import_manual_job(
        db, 2, ImportJobRequest(url="https://careers.acme.com/jobs/123/?ref=linkedin", title="Other", company_name="Other")
    )

    assert existed is True
    assert second.id == first.id
    assert db.query(JobPosting).count() == 1


def test_import_manual_job_requires_fields(db):
    with pytest.raises(ValidationError) as exc_info:
        job_store.import_manual_job(db, 1, ImportJobRequest(url="https://x/1", title="  "))

    assert "title" in exc_info.value.message
    assert "company_name" in exc_info.value.message
    assert "url" not in exc_info.value.message.split(": ")[1].split(", ")
    assert db.query(JobPosting).count() == 0


def test_ensure_stored_blank_canonical_url_is_not_a_dedup_key(db):
    first = job_store.ensure_stored(db, make_candidate(id="a", company_name="Acme", canonical_url="   "))
    second = job_store.ensure_stored(db, make_candidate(id="b", company_name="Other", canonical_url=" "))

    assert first.canonical_url is None
    assert second.id == "b"
    assert second.company_name == "Other"
    assert job_store.get_by_canonical_url(db, "  ") is None
    assert db.query(JobPosting).count() == 2


def test_candidate_from_inline_rejects_unstorable_data():
    data = JobPostingData.model_construct(title="x" * 300, company_name="Acme")

    with pytest.raises(ValidationError) as exc_info:
        job_store.candidate_from_inline("p1", data)

    assert "title" in exc_info.value.message

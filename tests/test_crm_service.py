"""
Unit tests for CRM tracking.
Tests the promotion steps, tracking uniqueness and the legacy mirror outcome log.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.db.models  # noqa: F401
from app.db.base import Base
from app.db.models.user import User
from app.db.models.crm_application import CrmApplication, ApplicationStatus, PriorityLevel
from app.db.models.crm_company import CrmCompany
from app.db.models.legacy_company import LegacyCompany
from app.db.models.tracking_outcome import TrackingOutcome, MirrorStatus, TrackingStep
from app.core import config
from app.core.errors import ConflictError, MirrorWriteWarning, NotFoundError
from app.core.security import hash_password
from app.schemas.crm import TrackJobInput, FromStore, FromCandidate
from app.schemas.job_posting import JobPostingCreate, JobPostingData
from app.services import crm_service, job_store


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


@pytest.fixture
def test_user(db):
    user = User(
        full_name="Test User",
        email="test@example.com",
        password_hash=hash_password("testpass123"),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def stored_job(db):
    return job_store.ensure_stored(db, JobPostingCreate(
        id="p1",
        provider="jooble",
        title="Backend Engineer",
        company_name="Acme Corp",
        location="Dubai, UAE",
        canonical_url="https://jobs.acme.com/p1",
        salary_min=25000,
        salary_max=35000,
        salary_currency="AED",
    ))


@pytest.fixture
def mirror_enabled(monkeypatch):
    monkeypatch.setattr(config, "LEGACY_MIRROR_ENABLED", True)


def test_track_in_crm_creates_company_application_and_mirror(db, test_user, stored_job, mirror_enabled):
    result = crm_service.track_in_crm(
        db, test_user.id,
        TrackJobInput(job=FromStore("p1"), priority=PriorityLevel.HIGH, notes="Referral from Sam")
    )

    assert result.is_new_company is True
    assert result.company.name == "Acme Corp"
    assert result.application.external_job_id == "p1"
    assert result.application.company_id == result.company.id
    assert result.application.status == ApplicationStatus.WISHLIST.value
    assert result.application.priority == PriorityLevel.HIGH.value
    assert result.application.salary_currency == "AED"
    assert result.application.job_url == "https://jobs.acme.com/p1"
    assert result.application.notes == "Referral from Sam"

    assert result.outcome.mirror_status == MirrorStatus.WRITTEN.value
    assert result.outcome.diverged is False
    assert result.outcome.steps_completed == [step.value for step in TrackingStep]

    legacy = db.query(LegacyCompany).one()
    assert legacy.name == "Acme Corp"
    assert legacy.priority == 3
    assert legacy.salary_range == "25000-35000 AED"


def test_track_in_crm_twice_is_rejected(db, test_user, stored_job):
    crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1")))

    with pytest.raises(ConflictError) as exc_info:
        crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1")))

    assert exc_info.value.message == crm_service.ALREADY_TRACKED_MESSAGE
    assert db.query(CrmApplication).count() == 1
    assert db.query(TrackingOutcome).count() == 1


def test_second_job_at_same_company_reuses_company(db, test_user, stored_job):
    job_store.ensure_stored(db, JobPostingCreate(id="p2", provider="jooble", title="SRE", company_name="ACME CORP"))

    first = crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1")))
    second = crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p2")))

    assert second.is_new_company is False
    assert second.company.id == first.company.id
    assert second.outcome.company_created is False
    assert db.query(CrmCompany).count() == 1
    assert db.query(CrmApplication).count() == 2


def test_track_unknown_stored_job_raises_not_found(db, test_user):
    with pytest.raises(NotFoundError) as exc_info:
        crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("nope")))

    assert exc_info.value.message == crm_service.JOB_NOT_FOUND_MESSAGE
    assert db.query(CrmCompany).count() == 0
    assert db.query(CrmApplication).count() == 0


def test_track_from_candidate_stores_posting_first(db, test_user):
    data = JobPostingData(title="ML Engineer", company_name="Globex", location="Remote")

    result = crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromCandidate("ai_77", data)))

    posting = job_store.get_by_id(db, "ai_77")
    assert posting is not None
    assert posting.provider == "legacy"
    assert result.application.external_job_id == "ai_77"
    assert result.application.source == "legacy"
    assert result.company.name == "Globex"


def test_mirror_failure_does_not_fail_tracking(db, test_user, stored_job, mirror_enabled, monkeypatch):
    def failing_mirror(*args, **kwargs):
        raise MirrorWriteWarning("Failed to insert into legacy companies table: disk full")

    monkeypatch.setattr(crm_service, "write_mirror", failing_mirror)

    result = crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1")))

    assert result.application.id is not None
    assert db.query(CrmApplication).count() == 1
    assert db.query(LegacyCompany).count() == 0

    outcome = db.query(TrackingOutcome).one()
    assert outcome.mirror_status == MirrorStatus.FAILED.value
    assert "disk full" in outcome.mirror_error
    assert outcome.diverged is True
    assert TrackingStep.MIRROR_WRITTEN.value not in outcome.steps_completed
    assert TrackingStep.APPLICATION_CREATED.value in outcome.steps_completed

    diverged = crm_service.list_tracking_outcomes(db, test_user.id, diverged_only=True)
    assert [o.application_id for o in diverged] == [result.application.id]


def test_mirror_disabled_is_recorded(db, test_user, stored_job, monkeypatch):
    monkeypatch.setattr(config, "LEGACY_MIRROR_ENABLED", False)

    result = crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1")))

    assert result.outcome.mirror_status == MirrorStatus.DISABLED.value
    assert result.outcome.diverged is False
    assert db.query(LegacyCompany).count() == 0
    assert crm_service.list_tracking_outcomes(db, test_user.id, diverged_only=True) == []


def test_concurrent_track_rejected_by_store(db, test_user, stored_job, monkeypatch):
    """Second call slips past the uniqueness check; the insert is rejected as a conflict."""
    crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1")))
    monkeypatch.setattr(crm_service, "get_application_by_job", lambda *args, **kwargs: None)

    with pytest.raises(ConflictError):
        crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1")))

    assert db.query(CrmApplication).count() == 1
    assert db.query(TrackingOutcome).count() == 1


def test_is_job_tracked(db, test_user, stored_job):
    assert crm_service.is_job_tracked(db, test_user.id, "p1") is None

    result = crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1")))

    assert crm_service.is_job_tracked(db, test_user.id, "p1") == result.application.id


def test_update_status_and_ownership(db, test_user, stored_job):
    other = User(full_name="Other", email="other@example.com", password_hash=hash_password("x"))
    db.add(other)
    db.commit()
    result = crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1")))

    updated = crm_service.update_application_status(db, test_user.id, result.application.id, "applied")
    assert updated.status == ApplicationStatus.APPLIED.value

    with pytest.raises(NotFoundError):
        crm_service.get_application_with_company(db, other.id, result.application.id)


def test_list_applications_filters(db, test_user, stored_job):
    job_store.ensure_stored(db, JobPostingCreate(id="p2", provider="jooble", title="SRE", company_name="Initech"))
    crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1"), priority=PriorityLevel.HIGH))
    crm_service.track_in_crm(
        db, test_user.id,
        TrackJobInput(job=FromStore("p2"), initial_status=ApplicationStatus.APPLIED, priority=PriorityLevel.LOW)
    )

    applied = crm_service.list_applications(db, test_user.id, statuses=[ApplicationStatus.APPLIED])
    high = crm_service.list_applications(db, test_user.id, priorities=["high"])

    assert [a.external_job_id for a in applied] == ["p2"]
    assert [a.external_job_id for a in high] == ["p1"]
    assert len(crm_service.list_applications(db, test_user.id)) == 2


def test_get_crm_stats(db, test_user, stored_job):
    job_store.ensure_stored(db, JobPostingCreate(id="p2", provider="jooble", title="SRE", company_name="Initech"))
    crm_service.track_in_crm(db, test_user.id, TrackJobInput(job=FromStore("p1"), priority=PriorityLevel.HIGH))
    crm_service.track_in_crm(
        db, test_user.id,
        TrackJobInput(job=FromStore("p2"), initial_status=ApplicationStatus.APPLIED)
    )

    stats = crm_service.get_crm_stats(db, test_user.id)

    assert stats["total"] == 2
    assert stats["by_status"] == {"wishlist": 1, "applied": 1}
    assert stats["by_priority"] == {"high": 1, "medium": 1, "low": 0}
    assert stats["this_week"] == 2
    assert stats["from_external_jobs"] == 2

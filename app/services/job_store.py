"""
Job record store.

Canonical, deduplicated postings regardless of origin. Ingestion is
idempotent and first-write-wins: a posting that is already known by id,
canonical URL or (provider, provider_job_id) is returned unchanged, and a
concurrent insert of the same posting is absorbed by re-reading the winner.
"""
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import ValidationError, store_operation
from app.core.urls import normalize_job_url
from app.db.models.job_posting import JobPosting, JobProvider
from app.schemas.job_posting import JobPostingCreate, JobPostingData, ImportJobRequest

logger = logging.getLogger(__name__)

REQUIRED_IMPORT_FIELDS = ("url", "title", "company_name")


def _enum_value(value):
    return getattr(value, "value", value)


def get_by_id(db: Session, job_id: str) -> Optional[JobPosting]:
    return db.query(JobPosting).filter(JobPosting.id == job_id).first()


def canonical_url_for(url: Optional[str]) -> Optional[str]:
    """Normalized dedup key, or None when the URL is missing or blank."""
    if not url:
        return None
    return normalize_job_url(url) or None


def get_by_canonical_url(db: Session, url: Optional[str]) -> Optional[JobPosting]:
    canonical_url = canonical_url_for(url)
    if canonical_url is None:
        return None
    return db.query(JobPosting).filter(
        JobPosting.canonical_url == canonical_url
    ).first()


def get_by_provider_id(db: Session, provider: str, provider_job_id: str) -> Optional[JobPosting]:
    if not provider_job_id:
        return None
    return db.query(JobPosting).filter(
        JobPosting.provider == provider,
        JobPosting.provider_job_id == provider_job_id
    ).first()


def _find_existing(db: Session, job_id: str, candidate: JobPostingCreate) -> Optional[JobPosting]:
    """Look a candidate up by every dedup key, strongest first."""
    existing = get_by_id(db, job_id)
    if existing:
        return existing
    existing = get_by_canonical_url(db, candidate.canonical_url)
    if existing:
        return existing
    if candidate.provider_job_id:
        return get_by_provider_id(db, candidate.provider, candidate.provider_job_id)
    return None


@store_operation
def ensure_stored(db: Session, candidate: JobPostingCreate) -> JobPosting:
    """
    Idempotently ingest a posting and return the stored record.

    The returned record may carry a different id than the candidate when the
    same posting was already stored under another id (URL or provider match).

    Raises:
        TransientStoreError: store unavailable (safe to retry)
    """
    job_id = candidate.id or uuid.uuid4().hex

    existing = _find_existing(db, job_id, candidate)
    if existing:
        if existing.id != job_id:
            logger.info(f"Posting deduplicated: candidate_id={job_id}, stored_id={existing.id}")
        return existing

    posting = JobPosting(
        id=job_id,
        provider=candidate.provider,
        provider_job_id=candidate.provider_job_id,
        canonical_url=canonical_url_for(candidate.canonical_url),
        title=candidate.title,
        company_name=candidate.company_name,
        location=candidate.location,
        location_type=_enum_value(candidate.location_type),
        description_snippet=candidate.description_snippet,
        posted_at=candidate.posted_at,
        apply_url=candidate.apply_url,
        salary_min=candidate.salary_min,
        salary_max=candidate.salary_max,
        salary_currency=candidate.salary_currency or config.DEFAULT_SALARY_CURRENCY,
        raw=candidate.raw,
        ingested_at=datetime.now(timezone.utc),
    )
    db.add(posting)
    try:
        db.commit()
    except IntegrityError:
        # Another ingestion path stored the same posting first
        db.rollback()
        winner = _find_existing(db, job_id, candidate)
        if winner is None:
            raise
        logger.info(f"Concurrent ingestion absorbed: candidate_id={job_id}, stored_id={winner.id}")
        return winner

    db.refresh(posting)
    logger.info(f"Posting stored: id={posting.id}, provider={posting.provider}")
    return posting


def candidate_from_inline(
    job_id: str,
    data: JobPostingData,
    default_provider: str = JobProvider.OPENAI.value
) -> JobPostingCreate:
    """
    Build a full candidate from partial inline data, filling the usual defaults.

    Raises:
        ValidationError: the inline data cannot form a storable posting
    """
    try:
        return JobPostingCreate(
            id=job_id,
            provider=data.provider or default_provider,
            provider_job_id=data.provider_job_id or job_id,
            canonical_url=data.canonical_url or None,
            title=data.title or "Unknown",
            company_name=data.company_name or "Unknown",
            location=data.location,
            location_type=data.location_type,
            description_snippet=data.description_snippet,
            posted_at=data.posted_at,
            apply_url=data.apply_url,
            salary_min=data.salary_min,
            salary_max=data.salary_max,
            salary_currency=data.salary_currency or config.DEFAULT_SALARY_CURRENCY,
            raw=data.raw,
        )
    except SchemaValidationError as e:
        fields = sorted({str(error["loc"][0]) for error in e.errors() if error.get("loc")})
        raise ValidationError(f"Invalid job data: {', '.join(fields)}") from e


@store_operation
def import_manual_job(db: Session, user_id: int, request: ImportJobRequest) -> Tuple[JobPosting, bool]:
    """
    Store a posting imported by URL.

    The page metadata has already been extracted upstream; this only
    validates and persists the structured fields.

    Returns:
        Tuple of (posting, existed) where existed is True when the canonical
        URL was already known.

    Raises:
        ValidationError: url, title or company_name missing
    """
    missing = [
        field for field in REQUIRED_IMPORT_FIELDS
        if not (getattr(request, field) or "").strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    url = request.url.strip()
    canonical_url = normalize_job_url(url)

    existing = get_by_canonical_url(db, canonical_url)
    if existing:
        logger.info(f"Manual import matched existing posting: id={existing.id}, user_id={user_id}")
        return existing, True

    candidate = JobPostingCreate(
        id=uuid.uuid4().hex,
        provider=JobProvider.MANUAL_URL.value,
        provider_job_id=f"manual_{int(time.time() * 1000)}_{str(user_id)[:8]}",
        canonical_url=canonical_url,
        title=request.title.strip(),
        company_name=request.company_name.strip(),
        location=request.location,
        location_type=request.location_type,
        description_snippet=request.description_snippet,
        apply_url=url,
        salary_min=request.salary_min,
        salary_max=request.salary_max,
        salary_currency=request.salary_currency or config.DEFAULT_SALARY_CURRENCY,
        raw={"original_url": url, "imported_by": user_id},
    )
    posting = ensure_stored(db, candidate)
    existed = posting.id != candidate.id

    logger.info(f"Manual import: id={posting.id}, user_id={user_id}, existed={existed}")
    return posting, existed

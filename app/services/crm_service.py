"""
Pipeline tracker: promotes a posting into the CRM.

track_in_crm runs as a saga of independently committed steps:

1. uniqueness check for (user, job)
2. resolve the posting (ingest inline data, or read the store)
3. resolve the company (find-or-create)
4. create the application, together with its tracking outcome row
5. best-effort legacy mirror write

Steps 1-4 fail fast. Step 5 is fail-soft: failures are logged and recorded
on the outcome row, never raised. There is no compensating rollback, so a
retry after a partial failure is rejected as a conflict; the outcome log is
where a missing mirror shows up.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import ConflictError, NotFoundError, store_operation
from app.db.models.crm_application import CrmApplication, ApplicationStatus, PriorityLevel
from app.db.models.crm_company import CrmCompany
from app.db.models.job_posting import JobPosting, JobProvider
from app.db.models.tracking_outcome import TrackingOutcome, MirrorStatus, TrackingStep
from app.schemas.crm import TrackJobInput, FromCandidate, JobReference
from app.services import company_resolver
from app.services.job_store import ensure_stored, candidate_from_inline, get_by_id
from app.services.legacy_mirror import write_mirror

logger = logging.getLogger(__name__)

ALREADY_TRACKED_MESSAGE = "This job is already tracked in your CRM"
JOB_NOT_FOUND_MESSAGE = "Job not found. Please try tracking again."
TRACK_FAILED_MESSAGE = "Failed to track job"


@dataclass
class TrackJobResult:
    application: CrmApplication
    company: CrmCompany
    is_new_company: bool
    outcome: TrackingOutcome


def get_application_by_job(db: Session, user_id: int, job_id: str) -> Optional[CrmApplication]:
    return db.query(CrmApplication).filter(
        CrmApplication.user_id == user_id,
        CrmApplication.external_job_id == job_id
    ).first()


def is_job_tracked(db: Session, user_id: int, job_id: str) -> Optional[int]:
    """Id of the application tracking this job for the user, or None."""
    row = db.query(CrmApplication.id).filter(
        CrmApplication.user_id == user_id,
        CrmApplication.external_job_id == job_id
    ).first()
    return row[0] if row else None


def _resolve_posting(db: Session, job: JobReference) -> JobPosting:
    if isinstance(job, FromCandidate):
        # Live search result: make sure the posting exists before referencing it
        return ensure_stored(
            db, candidate_from_inline(job.job_id, job.data, default_provider=JobProvider.LEGACY.value)
        )

    posting = get_by_id(db, job.job_id)
    if posting is None:
        raise NotFoundError(JOB_NOT_FOUND_MESSAGE)
    return posting


def _build_application(
    user_id: int,
    company_id: int,
    posting: JobPosting,
    status: ApplicationStatus,
    priority: PriorityLevel,
    notes: Optional[str]
) -> CrmApplication:
    now = datetime.now(timezone.utc)
    return CrmApplication(
        user_id=user_id,
        company_id=company_id,
        external_job_id=posting.id,
        job_title=posting.title,
        job_url=posting.canonical_url or posting.apply_url,
        job_description=posting.description_snippet,
        salary_min=posting.salary_min,
        salary_max=posting.salary_max,
        salary_currency=posting.salary_currency or config.DEFAULT_SALARY_CURRENCY,
        location_type=posting.location_type,
        work_location=posting.location,
        source=posting.provider,
        status=status.value,
        priority=priority.value,
        notes=notes or None,
        created_at=now,
        updated_at=now,
    )


def _run_mirror_step(db: Session, user_id: int, posting: JobPosting, priority: PriorityLevel, outcome: TrackingOutcome):
    """Step 5. Never raises; records the result on the outcome row."""
    steps = list(outcome.steps_completed or [])
    job_id, application_id = posting.id, outcome.application_id

    if not config.LEGACY_MIRROR_ENABLED:
        outcome.mirror_status = MirrorStatus.DISABLED.value
    else:
        try:
            write_mirror(db, user_id, posting, priority)
            outcome.mirror_status = MirrorStatus.WRITTEN.value
            steps.append(TrackingStep.MIRROR_WRITTEN.value)
        except Exception as e:
            db.rollback()
            outcome.mirror_status = MirrorStatus.FAILED.value
            outcome.mirror_error = str(e)[:1000]
            logger.warning(
                f"Legacy mirror diverged: user_id={user_id}, job_id={job_id}, "
                f"application_id={application_id}, error={e}",
                exc_info=True
            )

    outcome.steps_completed = steps
    try:
        db.commit()
    except Exception as e:
        # Outcome stays 'pending', which still reads as diverged
        db.rollback()
        logger.error(f"Failed to record tracking outcome: application_id={application_id}, error={e}", exc_info=True)


@store_operation
def track_in_crm(db: Session, user_id: int, track_input: TrackJobInput) -> TrackJobResult:
    """
    Promote a posting into the user's CRM.

    Raises:
        ConflictError: the posting is already tracked (checked up front and
            enforced again by the store on insert)
        NotFoundError: FromStore reference to an unknown posting
        TransientStoreError: store unavailable during steps 1-4
    """
    job_id = track_input.external_job_id
    status = ApplicationStatus(track_input.initial_status or ApplicationStatus.WISHLIST)
    priority = PriorityLevel(track_input.priority or PriorityLevel.MEDIUM)

    # 1. Uniqueness check
    if get_application_by_job(db, user_id, job_id) is not None:
        logger.info(f"Track rejected, already tracked: user_id={user_id}, job_id={job_id}")
        raise ConflictError(ALREADY_TRACKED_MESSAGE)
    steps = [TrackingStep.UNIQUENESS_CHECKED.value]

    # 2. Resolve posting
    posting = _resolve_posting(db, track_input.job)
    steps.append(TrackingStep.POSTING_RESOLVED.value)

    # 3. Resolve company
    company, is_new_company = company_resolver.resolve(db, user_id, posting)
    steps.append(TrackingStep.COMPANY_RESOLVED.value)

    # 4. Application and its outcome row commit together
    application = _build_application(user_id, company.id, posting, status, priority, track_input.notes)
    db.add(application)
    try:
        db.flush()
    except IntegrityError as e:
        # A concurrent identical call won the race past step 1
        db.rollback()
        logger.info(f"Track rejected on insert, already tracked: user_id={user_id}, job_id={posting.id}")
        raise ConflictError(ALREADY_TRACKED_MESSAGE) from e
    steps.append(TrackingStep.APPLICATION_CREATED.value)

    outcome = TrackingOutcome(
        user_id=user_id,
        external_job_id=posting.id,
        application_id=application.id,
        company_id=company.id,
        company_created=is_new_company,
        steps_completed=steps,
        mirror_status=MirrorStatus.PENDING.value,
    )
    db.add(outcome)
    db.commit()
    db.refresh(application)
    db.refresh(outcome)

    logger.info(
        f"Job tracked in CRM: user_id={user_id}, job_id={posting.id}, application_id={application.id}, "
        f"company_id={company.id}, new_company={is_new_company}"
    )

    # 5. Best-effort mirror
    _run_mirror_step(db, user_id, posting, priority, outcome)

    return TrackJobResult(
        application=application,
        company=company,
        is_new_company=is_new_company,
        outcome=outcome,
    )


def get_application_with_company(db: Session, user_id: int, application_id: int) -> CrmApplication:
    """
    Raises:
        NotFoundError: no such application for this user
    """
    application = db.query(CrmApplication).filter(
        CrmApplication.id == application_id,
        CrmApplication.user_id == user_id
    ).first()
    if application is None:
        raise NotFoundError("Application not found")
    return application


@store_operation
def update_application_status(db: Session, user_id: int, application_id: int, status) -> CrmApplication:
    application = get_application_with_company(db, user_id, application_id)
    application.status = ApplicationStatus(status).value
    application.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(application)

    logger.info(f"Application status updated: application_id={application.id}, status={application.status}")
    return application


def list_applications(
    db: Session,
    user_id: int,
    statuses: Optional[Sequence] = None,
    priorities: Optional[Sequence] = None,
    include_archived: bool = False
) -> List[CrmApplication]:
    query = db.query(CrmApplication).filter(CrmApplication.user_id == user_id)

    if not include_archived:
        query = query.filter(CrmApplication.is_archived.is_(False))
    if statuses:
        query = query.filter(CrmApplication.status.in_([ApplicationStatus(s).value for s in statuses]))
    if priorities:
        query = query.filter(CrmApplication.priority.in_([PriorityLevel(p).value for p in priorities]))

    return query.order_by(CrmApplication.created_at.desc(), CrmApplication.id.desc()).all()


def get_crm_stats(db: Session, user_id: int) -> Dict:
    """Dashboard counters over the user's non-archived applications."""
    base = db.query(CrmApplication).filter(
        CrmApplication.user_id == user_id,
        CrmApplication.is_archived.is_(False)
    )

    by_status = {
        status: int(count)
        for status, count in base.with_entities(
            CrmApplication.status, func.count(CrmApplication.id)
        ).group_by(CrmApplication.status).all()
    }

    by_priority = {level.value: 0 for level in PriorityLevel}
    for priority, count in base.with_entities(
        CrmApplication.priority, func.count(CrmApplication.id)
    ).group_by(CrmApplication.priority).all():
        if priority in by_priority:
            by_priority[priority] = int(count)

    week_ago = datetime.now(timezone.utc) - timedelta(days=7)

    return {
        "total": base.count(),
        "by_status": by_status,
        "by_priority": by_priority,
        "this_week": base.filter(CrmApplication.created_at > week_ago).count(),
        "from_external_jobs": base.filter(CrmApplication.external_job_id.isnot(None)).count(),
    }


def list_tracking_outcomes(db: Session, user_id: int, diverged_only: bool = False) -> List[TrackingOutcome]:
    query = db.query(TrackingOutcome).filter(TrackingOutcome.user_id == user_id)
    if diverged_only:
        query = query.filter(TrackingOutcome.mirror_status.in_(
            [MirrorStatus.FAILED.value, MirrorStatus.PENDING.value]
        ))
    return query.order_by(TrackingOutcome.id.desc()).all()

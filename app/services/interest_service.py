"""
User interest tracker.

Per-user triage state on postings (saved / hidden / applied). Writes are
upserts on (user_id, external_job_id): repeated marks overwrite, never
duplicate. Concurrent marks are last-write-wins by arrival at the store.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, store_operation
from app.db.models.crm_application import CrmApplication
from app.db.models.job_posting import JobPosting, JobProvider
from app.db.models.user_job_item import UserJobItem, JobItemState
from app.schemas.job_posting import JobPostingData, JobPostingResponse
from app.services.job_store import ensure_stored, candidate_from_inline, get_by_id

logger = logging.getLogger(__name__)


def _dialect_insert(db: Session):
    """Return the dialect-specific insert() that supports ON CONFLICT, if any."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    return None


def _get_item(db: Session, user_id: int, job_id: str) -> Optional[UserJobItem]:
    return db.query(UserJobItem).filter(
        UserJobItem.user_id == user_id,
        UserJobItem.external_job_id == job_id
    ).first()


def _upsert_item(db: Session, user_id: int, job_id: str, state: JobItemState) -> None:
    now = datetime.now(timezone.utc)
    insert = _dialect_insert(db)

    if insert is not None:
        stmt = insert(UserJobItem).values(
            user_id=user_id,
            external_job_id=job_id,
            state=state.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "external_job_id"],
            set_={"state": stmt.excluded.state, "updated_at": stmt.excluded.updated_at},
        )
        db.execute(stmt)
        db.commit()
        return

    # Portable path: insert, fall back to update when a racer got there first
    item = _get_item(db, user_id, job_id)
    if item is None:
        db.add(UserJobItem(
            user_id=user_id, external_job_id=job_id, state=state.value,
            created_at=now, updated_at=now
        ))
        try:
            db.commit()
            return
        except IntegrityError:
            db.rollback()
            item = _get_item(db, user_id, job_id)
    item.state = state.value
    item.updated_at = now
    db.commit()


@store_operation
def set_state(
    db: Session,
    user_id: int,
    job_id: str,
    state,
    job_data: Optional[JobPostingData] = None
) -> UserJobItem:
    """
    Mark a posting for the user.

    When job_data is given the posting is stored first, so the item always
    references a stored posting. If ingestion deduplicates to an existing
    record, the item references that record's id.

    Raises:
        NotFoundError: posting unknown and no job_data supplied
        TransientStoreError: store unavailable (safe to retry)
    """
    state = JobItemState(state)

    if job_data is not None:
        posting = ensure_stored(
            db, candidate_from_inline(job_id, job_data, default_provider=JobProvider.OPENAI.value)
        )
        job_id = posting.id
    elif get_by_id(db, job_id) is None:
        raise NotFoundError("Job not found")

    _upsert_item(db, user_id, job_id, state)
    item = _get_item(db, user_id, job_id)

    logger.info(f"Job state set: user_id={user_id}, job_id={job_id}, state={state.value}")
    return item


def save_job(db: Session, user_id: int, job_id: str, job_data: Optional[JobPostingData] = None) -> UserJobItem:
    return set_state(db, user_id, job_id, JobItemState.SAVED, job_data)


def hide_job(db: Session, user_id: int, job_id: str, job_data: Optional[JobPostingData] = None) -> UserJobItem:
    return set_state(db, user_id, job_id, JobItemState.HIDDEN, job_data)


@store_operation
def remove(db: Session, user_id: int, job_id: str) -> bool:
    """Delete the user's item for a posting. Returns False when nothing was there."""
    deleted = db.query(UserJobItem).filter(
        UserJobItem.user_id == user_id,
        UserJobItem.external_job_id == job_id
    ).delete(synchronize_session=False)
    db.commit()

    if deleted:
        logger.info(f"Job state removed: user_id={user_id}, job_id={job_id}")
    return bool(deleted)


def get_state(db: Session, user_id: int, job_id: str) -> Optional[JobItemState]:
    row = db.query(UserJobItem.state).filter(
        UserJobItem.user_id == user_id,
        UserJobItem.external_job_id == job_id
    ).first()
    return JobItemState(row[0]) if row else None


def get_states_batch(db: Session, user_id: int, job_ids: Iterable[str]) -> Dict[str, JobItemState]:
    """Map job id -> state for the ids that have one; for list rendering."""
    job_ids = list(dict.fromkeys(job_ids))
    if not job_ids:
        return {}

    rows = db.query(UserJobItem.external_job_id, UserJobItem.state).filter(
        UserJobItem.user_id == user_id,
        UserJobItem.external_job_id.in_(job_ids)
    ).all()
    return {job_id: JobItemState(state) for job_id, state in rows}


def list_items(db: Session, user_id: int, state=None) -> List[UserJobItem]:
    query = db.query(UserJobItem).filter(UserJobItem.user_id == user_id)
    if state:
        query = query.filter(UserJobItem.state == JobItemState(state).value)
    return query.order_by(UserJobItem.created_at.desc(), UserJobItem.id.desc()).all()


def list_jobs_with_state(db: Session, user_id: int, state=JobItemState.SAVED) -> List[dict]:
    """
    Postings the user marked with `state`, newest first, each with the user's
    state and the id of the CRM application tracking it (or None).
    """
    items = list_items(db, user_id, state)
    if not items:
        return []

    job_ids = [item.external_job_id for item in items]
    jobs = {
        job.id: job
        for job in db.query(JobPosting).filter(JobPosting.id.in_(job_ids)).all()
    }
    tracked = dict(
        db.query(CrmApplication.external_job_id, CrmApplication.id).filter(
            CrmApplication.user_id == user_id,
            CrmApplication.external_job_id.in_(job_ids)
        ).all()
    )

    results = []
    for item in items:
        job = jobs.get(item.external_job_id)
        if job is None:
            continue
        data = JobPostingResponse.model_validate(job).model_dump()
        data["user_state"] = item.state
        data["crm_application_id"] = tracked.get(job.id)
        results.append(data)
    return results

"""
Job discovery endpoints.

Ingestion (search results, direct ingest, manual import) and the caller's
interest state (saved / hidden / applied) on postings.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.orm import Session

from app.core.auth_dependency import get_current_user_obj
from app.core.errors import JobTrackerError
from app.core.logging_config import sanitize_log_data
from app.db.models.user import User
from app.db.models.user_job_item import JobItemState
from app.db.session import get_db
from app.schemas.job_posting import (
    JobPostingCreate,
    JobPostingResponse,
    ImportJobRequest,
    ImportJobResponse,
    JobStateRequest,
    JobItemResponse,
    JobWithStateResponse,
    JobStatesRequest,
    JobStatesResponse,
)
from app.schemas.search import JobSearchParams, JobSearchResponse
from app.services import interest_service, job_store
from app.services.search_service import search_and_ingest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.post("/search", status_code=status.HTTP_200_OK, response_model=JobSearchResponse)
def search_jobs(
    params: JobSearchParams,
    request: Request,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Search through the configured provider and store every result.

    Returns 503 when no search provider is configured.
    """
    provider = getattr(request.app.state, "search_provider", None)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job search is not configured"
        )

    try:
        response = search_and_ingest(db, provider, params)
        logger.info(f"Job search: user_id={user.id}, provider={response.provider}, results={len(response.jobs)}")
        return response
    except JobTrackerError:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to search jobs: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to search jobs"
        )


@router.post("/ingest", status_code=status.HTTP_200_OK, response_model=JobPostingResponse)
def ingest_job(
    job_data: JobPostingCreate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Store a posting if it is not known yet.

    Idempotent: returns the already stored record on repeated calls or when
    the canonical URL / provider id matches an existing posting.
    """
    posting = job_store.ensure_stored(db, job_data)
    return JobPostingResponse.model_validate(posting)


@router.post("/import", status_code=status.HTTP_201_CREATED, response_model=ImportJobResponse)
def import_job(
    request: ImportJobRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Import a job posting by URL from already-extracted page metadata.

    Returns the existing posting with existed=true when the URL is known.
    """
    logger.debug(f"Import requested: user_id={user.id}, payload={sanitize_log_data(request.model_dump())}")
    posting, existed = job_store.import_manual_job(db, user.id, request)
    return ImportJobResponse(job=JobPostingResponse.model_validate(posting), existed=existed)


@router.get("/items", status_code=status.HTTP_200_OK, response_model=list[JobWithStateResponse])
def list_my_jobs(
    state: Optional[JobItemState] = Query(JobItemState.SAVED, description="Interest state to list"),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """List the caller's postings in a given state, with CRM tracking info."""
    rows = interest_service.list_jobs_with_state(db, user.id, state)
    return [JobWithStateResponse(**row) for row in rows]


@router.post("/states", status_code=status.HTTP_200_OK, response_model=JobStatesResponse)
def get_job_states(
    request: JobStatesRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """Batch lookup of the caller's state for many postings."""
    return JobStatesResponse(states=interest_service.get_states_batch(db, user.id, request.job_ids))


@router.get("/{job_id}", status_code=status.HTTP_200_OK, response_model=JobPostingResponse)
def get_job(
    job_id: str,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    posting = job_store.get_by_id(db, job_id)
    if not posting:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found"
        )
    return JobPostingResponse.model_validate(posting)


@router.put("/{job_id}/state", status_code=status.HTTP_200_OK, response_model=JobItemResponse)
def set_job_state(
    job_id: str,
    request: JobStateRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Mark a posting as saved, hidden or applied.

    Pass job_data for postings taken straight from a search result; the
    posting is stored before the mark is written.
    """
    item = interest_service.set_state(db, user.id, job_id, request.state, request.job_data)
    return JobItemResponse.model_validate(item)


@router.delete("/{job_id}/state", status_code=status.HTTP_204_NO_CONTENT)
def remove_job_state(
    job_id: str,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """Unsave / unhide. No-op when the posting has no state."""
    interest_service.remove(db, user.id, job_id)
    return None

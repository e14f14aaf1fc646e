"""
CRM endpoints: promote postings into the pipeline and read it back.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from app.core.auth_dependency import get_current_user_obj
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.db.models.crm_application import ApplicationStatus, PriorityLevel
from app.db.models.user import User
from app.db.session import get_db
from app.schemas.crm import (
    TrackJobRequest,
    TrackJobResponse,
    CrmApplicationResponse,
    CrmCompanyResponse,
    ApplicationWithCompanyResponse,
    ApplicationStatusUpdate,
    CrmStatsResponse,
    TrackingOutcomeResponse,
)
from app.services import crm_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/crm", tags=["CRM"])


@router.post("/track", status_code=status.HTTP_201_CREATED, response_model=TrackJobResponse)
def track_job(
    request: TrackJobRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Track a posting in the CRM.

    Creates (or reuses) the company and creates the application. Callers see
    one of three failures: already tracked (409), job not found (404) or a
    generic failure (500); unusable job_data is rejected with 422. A retry after a 500 may be rejected as already
    tracked; check /crm/tracking-outcomes for what was written.
    """
    try:
        result = crm_service.track_in_crm(db, user.id, request.to_input())

        return TrackJobResponse(
            application=CrmApplicationResponse.model_validate(result.application),
            company=CrmCompanyResponse.model_validate(result.company),
            is_new_company=result.is_new_company,
            outcome=TrackingOutcomeResponse.model_validate(result.outcome),
        )

    except ConflictError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=crm_service.ALREADY_TRACKED_MESSAGE
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=crm_service.JOB_NOT_FOUND_MESSAGE
        )
    except ValidationError:
        raise
    except Exception as e:
        db.rollback()
        logger.error(
            f"Failed to track job: user_id={user.id}, job_id={request.external_job_id}, error={e}",
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=crm_service.TRACK_FAILED_MESSAGE
        )


@router.get("/applications", status_code=status.HTTP_200_OK, response_model=List[CrmApplicationResponse])
def list_applications(
    status_filter: Optional[List[ApplicationStatus]] = Query(None, alias="status", description="Filter by status"),
    priority: Optional[List[PriorityLevel]] = Query(None, description="Filter by priority"),
    include_archived: bool = Query(False),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    applications = crm_service.list_applications(
        db, user.id,
        statuses=status_filter,
        priorities=priority,
        include_archived=include_archived,
    )
    return [CrmApplicationResponse.model_validate(app) for app in applications]


@router.get("/applications/{application_id}", status_code=status.HTTP_200_OK, response_model=ApplicationWithCompanyResponse)
def get_application(
    application_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """Application with its company. 404 if absent or owned by someone else."""
    application = crm_service.get_application_with_company(db, user.id, application_id)
    return ApplicationWithCompanyResponse(
        application=CrmApplicationResponse.model_validate(application),
        company=CrmCompanyResponse.model_validate(application.company),
    )


@router.patch("/applications/{application_id}/status", status_code=status.HTTP_200_OK, response_model=CrmApplicationResponse)
def update_application_status(
    application_id: int,
    request: ApplicationStatusUpdate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    application = crm_service.update_application_status(db, user.id, application_id, request.status)
    return CrmApplicationResponse.model_validate(application)


@router.get("/stats", status_code=status.HTTP_200_OK, response_model=CrmStatsResponse)
def get_stats(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    return CrmStatsResponse(**crm_service.get_crm_stats(db, user.id))


@router.get("/tracking-outcomes", status_code=status.HTTP_200_OK, response_model=List[TrackingOutcomeResponse])
def list_tracking_outcomes(
    diverged_only: bool = Query(False, description="Only promotions whose legacy mirror is missing"),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    outcomes = crm_service.list_tracking_outcomes(db, user.id, diverged_only=diverged_only)
    return [TrackingOutcomeResponse.model_validate(outcome) for outcome in outcomes]

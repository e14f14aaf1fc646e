"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from app.db.models.user import User
from app.db.models.job_posting import JobPosting, JobProvider, LocationType
from app.db.models.user_job_item import UserJobItem, JobItemState
from app.db.models.crm_company import CrmCompany
from app.db.models.crm_application import CrmApplication, ApplicationStatus, PriorityLevel
from app.db.models.legacy_company import LegacyCompany
from app.db.models.tracking_outcome import TrackingOutcome, MirrorStatus, TrackingStep

# Explicitly export all models for clarity
__all__ = [
    "User",
    "JobPosting",
    "JobProvider",
    "LocationType",
    "UserJobItem",
    "JobItemState",
    "CrmCompany",
    "CrmApplication",
    "ApplicationStatus",
    "PriorityLevel",
    "LegacyCompany",
    "TrackingOutcome",
    "MirrorStatus",
    "TrackingStep",
]

"""
Compatibility mirror for the legacy flat 'companies' table.

Best-effort duplicate of a promoted posting so the old CRM page keeps
working. Nothing reconciles this table with crm_applications; the tracker
records whether the write happened in the tracking outcome log.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import MirrorWriteWarning
from app.db.models.crm_application import PriorityLevel
from app.db.models.job_posting import JobPosting, JobProvider
from app.db.models.legacy_company import LegacyCompany

logger = logging.getLogger(__name__)

PRIORITY_SCALE = {
    PriorityLevel.HIGH.value: 3,
    PriorityLevel.MEDIUM.value: 2,
    PriorityLevel.LOW.value: 1,
}
LEGACY_STATUS = "researching"


def encode_priority(priority) -> int:
    """high=3, medium=2, low=1; anything else is treated as medium."""
    return PRIORITY_SCALE.get(getattr(priority, "value", priority), 2)


def format_salary_range(salary_min: Optional[int], salary_max: Optional[int], currency: Optional[str]) -> Optional[str]:
    currency = currency or config.DEFAULT_SALARY_CURRENCY
    if salary_min and salary_max:
        return f"{salary_min}-{salary_max} {currency}"
    if salary_min:
        return f"From {salary_min} {currency}"
    return None


def referral_source_for(posting: JobPosting) -> Optional[str]:
    if posting.provider == JobProvider.MANUAL_URL.value:
        return "Manual Import"
    return posting.provider


def write_mirror(db: Session, user_id: int, posting: JobPosting, priority) -> LegacyCompany:
    """
    Insert the legacy record approximating a just-created application.

    Raises:
        MirrorWriteWarning: the insert failed; the session has been rolled back
    """
    record = LegacyCompany(
        user_id=user_id,
        name=posting.company_name,
        job_title=posting.title,
        job_posting_url=posting.canonical_url or posting.apply_url,
        location=posting.location,
        salary_range=format_salary_range(posting.salary_min, posting.salary_max, posting.salary_currency),
        status=LEGACY_STATUS,
        notes=posting.description_snippet,
        referral_source=referral_source_for(posting),
        priority=encode_priority(priority),
    )
    try:
        db.add(record)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise MirrorWriteWarning(f"Failed to insert into legacy companies table: {e}") from e

    logger.debug(f"Legacy mirror written: id={record.id}, user_id={user_id}, job_id={posting.id}")
    return record

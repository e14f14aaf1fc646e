"""
Company resolver: find-or-create of a per-user CRM company from a free-text
company name.

Matching is case-insensitive and whitespace-trimmed. The store enforces one
company per (user_id, normalized_name), so two concurrent resolves for a new
name cannot both insert: the loser hits the constraint and re-reads.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import store_operation
from app.db.models.crm_company import CrmCompany
from app.db.models.job_posting import JobPosting

logger = logging.getLogger(__name__)


def normalize_company_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def find_by_name(db: Session, user_id: int, name: str) -> Optional[CrmCompany]:
    """First non-archived company of the user whose name matches, or None."""
    normalized = normalize_company_name(name)
    if not normalized:
        return None
    return db.query(CrmCompany).filter(
        CrmCompany.user_id == user_id,
        CrmCompany.is_archived.is_(False),
        CrmCompany.normalized_name == normalized
    ).order_by(CrmCompany.id).first()


def create_from_posting(db: Session, user_id: int, posting: JobPosting) -> CrmCompany:
    """
    Insert a company seeded from the posting's company name and location.

    Raises:
        IntegrityError: a company with the same normalized name already exists
    """
    name = posting.company_name.strip()
    company = CrmCompany(
        user_id=user_id,
        name=name,
        normalized_name=normalize_company_name(name),
        location=posting.location or None,
    )
    db.add(company)
    db.commit()
    db.refresh(company)

    logger.info(f"CRM company created: company_id={company.id}, user_id={user_id}, name={company.name}")
    return company


@store_operation
def resolve(db: Session, user_id: int, posting: JobPosting) -> Tuple[CrmCompany, bool]:
    """
    Find or create the company for a posting.

    Returns:
        Tuple of (company, is_new)
    """
    existing = find_by_name(db, user_id, posting.company_name)
    if existing:
        return existing, False

    try:
        return create_from_posting(db, user_id, posting), True
    except IntegrityError:
        db.rollback()
        # Lost the race to a concurrent resolve, or the only match is archived
        company = db.query(CrmCompany).filter(
            CrmCompany.user_id == user_id,
            CrmCompany.normalized_name == normalize_company_name(posting.company_name)
        ).first()
        if company is None:
            raise

    logger.info(f"CRM company resolved after conflict: company_id={company.id}, user_id={user_id}")
    return company, False

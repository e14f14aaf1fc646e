"""
CRM application: a tracked pursuit of one role at one company.
"""
import enum
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.base import Base


class ApplicationStatus(str, enum.Enum):
    """Pipeline stages, in order."""
    WISHLIST = "wishlist"
    APPLIED = "applied"
    SCREENING = "screening"
    PHONE_INTERVIEW = "phone_interview"
    TECHNICAL_INTERVIEW = "technical_interview"
    ONSITE_INTERVIEW = "onsite_interview"
    FINAL_ROUND = "final_round"
    OFFER_RECEIVED = "offer_received"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class PriorityLevel(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CrmApplication(Base):
    __tablename__ = "crm_applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("crm_companies.id"), nullable=False, index=True)
    # Nullable: entries can be created outside the discovery flow
    external_job_id = Column(String, ForeignKey("external_jobs.id"), nullable=True, index=True)

    job_title = Column(String, nullable=False)
    job_url = Column(String, nullable=True)
    job_description = Column(Text, nullable=True)
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    salary_currency = Column(String(3), nullable=False, default="USD")
    location_type = Column(String, nullable=True)
    work_location = Column(String, nullable=True)
    application_date = Column(DateTime(timezone=True), nullable=True)
    source = Column(String, nullable=True)

    status = Column(String, nullable=False, default=ApplicationStatus.WISHLIST.value, index=True)
    priority = Column(String, nullable=False, default=PriorityLevel.MEDIUM.value)
    notes = Column(Text, nullable=True)
    is_archived = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    company = relationship("CrmCompany", back_populates="applications")
    job = relationship("JobPosting")

    __table_args__ = (
        # NULLs are distinct, so manual entries without a job never collide
        UniqueConstraint("user_id", "external_job_id", name="uq_crm_applications_user_job"),
        Index("idx_crm_applications_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<CrmApplication(id={self.id}, user_id={self.user_id}, job='{self.external_job_id}', status='{self.status}')>"

"""
Outcome log for the CRM promotion saga.

One row per track_in_crm call that created an application. Records which
steps completed and whether the legacy mirror write happened, so divergence
between crm_applications and the legacy companies table is queryable.
"""
import enum
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Index
from sqlalchemy.sql import func
from app.db.base import Base


class MirrorStatus(str, enum.Enum):
    PENDING = "pending"
    WRITTEN = "written"
    FAILED = "failed"
    DISABLED = "disabled"


class TrackingStep(str, enum.Enum):
    UNIQUENESS_CHECKED = "uniqueness_checked"
    POSTING_RESOLVED = "posting_resolved"
    COMPANY_RESOLVED = "company_resolved"
    APPLICATION_CREATED = "application_created"
    MIRROR_WRITTEN = "mirror_written"


class TrackingOutcome(Base):
    __tablename__ = "crm_tracking_outcomes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    external_job_id = Column(String, nullable=False)
    application_id = Column(Integer, ForeignKey("crm_applications.id"), nullable=True)
    company_id = Column(Integer, ForeignKey("crm_companies.id"), nullable=True)
    company_created = Column(Boolean, default=False, nullable=False)
    steps_completed = Column(JSON, nullable=False, default=list)
    mirror_status = Column(String, nullable=False, default=MirrorStatus.PENDING.value)
    mirror_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_tracking_outcomes_user_mirror", "user_id", "mirror_status"),
    )

    @property
    def diverged(self) -> bool:
        """Application exists but the legacy mirror does not."""
        return self.mirror_status in (MirrorStatus.FAILED.value, MirrorStatus.PENDING.value)

    def __repr__(self):
        return f"<TrackingOutcome(id={self.id}, job='{self.external_job_id}', mirror='{self.mirror_status}')>"

"""
Per-user interest state on a posting (saved / hidden / applied).
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.base import Base


class JobItemState(str, enum.Enum):
    SAVED = "saved"
    HIDDEN = "hidden"
    APPLIED = "applied"


class UserJobItem(Base):
    __tablename__ = "user_job_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    external_job_id = Column(String, ForeignKey("external_jobs.id"), nullable=False, index=True)
    state = Column(String, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    job = relationship("JobPosting")

    __table_args__ = (
        UniqueConstraint("user_id", "external_job_id", name="uq_user_job_items_user_job"),
        Index("idx_user_job_items_user_state", "user_id", "state"),
    )

    def __repr__(self):
        return f"<UserJobItem(user_id={self.user_id}, job='{self.external_job_id}', state='{self.state}')>"

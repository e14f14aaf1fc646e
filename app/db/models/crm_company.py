"""
CRM company: a per-user company entity that groups pipeline applications.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.base import Base


class CrmCompany(Base):
    __tablename__ = "crm_companies"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    # Trimmed, lower-cased name; the find-or-create key
    normalized_name = Column(String, nullable=False)
    industry = Column(String, nullable=True)
    location = Column(String, nullable=True)
    website = Column(String, nullable=True)
    linkedin_url = Column(String, nullable=True)
    is_archived = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    applications = relationship("CrmApplication", back_populates="company")

    __table_args__ = (
        UniqueConstraint("user_id", "normalized_name", name="uq_crm_companies_user_name"),
    )

    def __repr__(self):
        return f"<CrmCompany(id={self.id}, user_id={self.user_id}, name='{self.name}')>"

"""
Legacy flat 'companies' table still read by the old CRM page.

Written best-effort when a posting is promoted; has no link back to
crm_applications and is never reconciled.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.db.base import Base


class LegacyCompany(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    job_title = Column(String, nullable=True)
    job_posting_url = Column(String, nullable=True)
    location = Column(String, nullable=True)
    salary_range = Column(String, nullable=True)
    status = Column(String, default="researching")
    notes = Column(Text, nullable=True)
    referral_source = Column(String, nullable=True)
    priority = Column(Integer, default=2)  # 3=high, 2=medium, 1=low
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<LegacyCompany(id={self.id}, user_id={self.user_id}, name='{self.name}')>"

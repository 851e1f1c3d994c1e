"""Versioned platform policies. One immutable row per (slug, version); publishing inserts, never updates."""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from lendit.database import Base


class PolicyDocument(Base):
    __tablename__ = "policy_documents"
    # The unique pair is what makes version assignment a conditional write
    __table_args__ = (UniqueConstraint("slug", "version", name="uq_policy_documents_slug_version"),)

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(100), nullable=False, index=True)
    version = Column(Integer, nullable=False)

    title = Column(String(255), nullable=False)
    short_summary = Column(String(1000), nullable=True)
    content = Column(Text, nullable=False)
    content_hash = Column(String(64), nullable=False)

    is_published = Column(Boolean, nullable=False, default=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    published_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now())

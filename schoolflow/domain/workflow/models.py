from sqlalchemy import (
    Column, String, Text, Integer,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class WorkflowEntityRecord(Base):
    """One row per workflow entity. Timestamps are ISO-8601 UTC strings."""

    __tablename__ = "workflow_entities"

    seq = Column(Integer, primary_key=True, autoincrement=True)  # insertion order, tie-breaker
    id = Column(String, unique=True, nullable=False, index=True)
    kind = Column(String, nullable=False, index=True)
    owner_id = Column(String, nullable=False, index=True)
    owner_name = Column(String, nullable=False)
    status = Column(String, nullable=False, index=True)
    payload = Column(Text, nullable=False)          # JSON
    academic_session = Column(String, nullable=False, index=True)
    term = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)
    submitted_at = Column(String, nullable=True)
    reviewed_at = Column(String, nullable=True)
    completed_at = Column(String, nullable=True)
    reviewer_id = Column(String, nullable=True)
    reviewer_name = Column(String, nullable=True)
    review_comments = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    history = Column(Text, nullable=False, default="[]")  # JSON list of transition records

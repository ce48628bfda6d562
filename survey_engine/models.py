from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


class ParticipantSessionRecord(Base):
    __tablename__ = "participant_sessions"
    __table_args__ = (UniqueConstraint("tenant_id", "session_id", name="uq_tenant_session"),)

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, nullable=False, index=True)
    tenant_id = Column(String, nullable=False, index=True)
    survey_id = Column(String, nullable=False, index=True)
    survey_version = Column(String, nullable=False)
    participant_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="in-progress")
    started_at = Column(DateTime(timezone=True), nullable=False)
    last_activity_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    # "metadata" ist in der deklarativen Basis reserviert
    session_metadata = Column("metadata", JSON, nullable=False, default=dict)
    progress = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=0)

    responses = relationship(
        "SessionResponseRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class SessionResponseRecord(Base):
    __tablename__ = "session_responses"
    __table_args__ = (UniqueConstraint("session_pk", "question_id", name="uq_session_question"),)

    id = Column(Integer, primary_key=True, index=True)
    session_pk = Column(
        Integer, ForeignKey("participant_sessions.id", ondelete="CASCADE"), nullable=False
    )
    question_id = Column(String, nullable=False)
    response_value = Column(JSON, nullable=True)
    answered_at = Column(DateTime(timezone=True), nullable=False)
    attempt_count = Column(Integer, nullable=False, default=1)

    session = relationship("ParticipantSessionRecord", back_populates="responses")

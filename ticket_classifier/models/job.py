import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, JSON, CheckConstraint, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from ticket_classifier.core.db import Base

# Output columns written together by a single classification step
CLASSIFICATION_FIELDS = ("category", "sentiment", "priority", "impact", "urgency", "reasoning", "sla_due_date")


class ClassificationJob(Base):
    """
    A batch of tickets submitted for classification. Appended once, then
    patched by the pipeline until it reaches a terminal status.
    """
    __tablename__ = "classification_jobs"
    __table_args__ = (
        CheckConstraint("processed_tickets >= 0", name="ck_jobs_processed_non_negative"),
        CheckConstraint("processed_tickets <= total_tickets", name="ck_jobs_processed_le_total"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(255), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    total_tickets = Column(Integer, nullable=False, default=0)
    processed_tickets = Column(Integer, nullable=False, default=0)
    results = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    processing_time_ms = Column(Integer, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # No updated_at: rows are append-then-patch
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    tickets = relationship("Ticket", back_populates="job", order_by="Ticket.id", passive_deletes="all")


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("job_id", "issue_key", name="uq_tickets_job_issue_key"),
        Index("ix_tickets_category_priority", "category", "priority"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(36), ForeignKey("classification_jobs.id", ondelete="RESTRICT"), nullable=False, index=True)

    issue_key = Column(String(20), nullable=False)
    summary = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    reporter = Column(String(255), nullable=False, default="")

    category = Column(String(50), nullable=True, index=True)
    sentiment = Column(String(20), nullable=True)
    priority = Column(String(20), nullable=True, index=True)
    impact = Column(String(20), nullable=True)
    urgency = Column(String(20), nullable=True)
    reasoning = Column(Text, nullable=True)
    sla_due_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    job = relationship("ClassificationJob", back_populates="tickets")

    @property
    def is_classified(self) -> bool:
        return self.category is not None

    @property
    def is_overdue(self) -> bool:
        return self.is_overdue_at(datetime.utcnow())

    @property
    def sla_time_remaining(self) -> Optional[str]:
        return self.sla_time_remaining_at(datetime.utcnow())

    def is_overdue_at(self, now: datetime) -> bool:
        if self.sla_due_date is None:
            return False
        return now > self.sla_due_date

    def sla_time_remaining_at(self, now: datetime) -> Optional[str]:
        if self.sla_due_date is None:
            return None
        if now > self.sla_due_date:
            return "Overdue"
        return f"{_humanize_delta((self.sla_due_date - now).total_seconds())} remaining"


def _humanize_delta(seconds: float) -> str:
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = int(seconds // size)
            return f"{count} {unit}{'s' if count != 1 else ''}"
    count = int(seconds)
    return f"{count} second{'s' if count != 1 else ''}"

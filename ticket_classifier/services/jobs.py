import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from ticket_classifier.core.errors import AppError, InternalError, NotFoundError, StateError, ValidationError
from ticket_classifier.core.fsm import JobState, JobStateMachine
from ticket_classifier.models.job import ClassificationJob, Ticket
from ticket_classifier.services import itil
from ticket_classifier.services.csv_import import parse_tickets_csv
from ticket_classifier.services.ticket_fields import normalize_classification, normalize_raw_ticket

logger = logging.getLogger(__name__)


class JobService:
    """
    Lifecycle of classification jobs and their tickets.

    Every operation runs in its own transaction on the given session.
    Multi-row invariants are enforced with guarded UPDATE statements so the
    database serialises concurrent writers instead of the application.
    """

    def __init__(self, db: Session):
        self.db = db
        self.fsm = JobStateMachine(db)

    @contextmanager
    def _transaction(self, action: str):
        try:
            yield
            self.db.commit()
        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("%s failed", action)
            raise InternalError(f"{action} failed") from e

    def create_job(self, session_id: str, ticket_count: int) -> ClassificationJob:
        errors: Dict[str, List[str]] = {}
        if not session_id or not str(session_id).strip():
            errors["session_id"] = ["The session_id field is required."]
        if not isinstance(ticket_count, int) or isinstance(ticket_count, bool) or ticket_count < 0:
            errors["total_tickets"] = ["The total_tickets field must be a non-negative integer."]
        if errors:
            raise ValidationError("Invalid job request", errors)

        job = ClassificationJob(
            session_id=str(session_id).strip(),
            status=JobState.PENDING,
            total_tickets=ticket_count,
            processed_tickets=0,
        )
        with self._transaction("Create job"):
            self.db.add(job)
        self.db.refresh(job)
        logger.info("Created job %s for session %s with %d tickets", job.id, job.session_id, ticket_count)
        return job

    def get_job(self, job_id: str) -> ClassificationJob:
        job = self.db.get(ClassificationJob, job_id)
        if job is None:
            raise NotFoundError(f"Classification job not found: {job_id}")
        return job

    def get_ticket(self, ticket_id: int) -> Ticket:
        ticket = self.db.get(Ticket, ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket not found: {ticket_id}")
        return ticket

    def list_tickets(self, job_id: str) -> List[Ticket]:
        job = self.get_job(job_id)
        return self.db.query(Ticket).filter(Ticket.job_id == job.id).order_by(Ticket.id).all()

    def attach_tickets(self, job: Union[ClassificationJob, str], raw_tickets: Sequence[Mapping[str, Any]]) -> List[Ticket]:
        """
        Create one ticket per raw row and move the job to processing.
        All rows are validated before anything is written; a single bad
        row rejects the whole batch.
        """
        if not isinstance(job, ClassificationJob):
            job = self.get_job(job)
        self.fsm.validate_transition(job.status, JobState.PROCESSING)

        rows = _validate_batch(raw_tickets, expected=job.total_tickets)
        tickets = [Ticket(job_id=job.id, **values) for values in rows]
        with self._transaction("Attach tickets"):
            self.db.add_all(tickets)
            self.db.flush()
            self.fsm.transition(job, JobState.PROCESSING)

        logger.info("Attached %d tickets to job %s", len(tickets), job.id)
        return tickets

    def import_csv(self, content: str, session_id: Optional[str] = None) -> Tuple[ClassificationJob, List[Ticket]]:
        """
        Open a job from an uploaded CSV export and attach its rows.

        ``session_id`` falls back to the ``session_id`` entry of the file's
        metadata block. Every row is validated before the job is created, so
        a bad file leaves nothing behind.
        """
        parsed = parse_tickets_csv(content)
        session_id = session_id or parsed.metadata.get("session_id")
        if not session_id or not str(session_id).strip():
            raise ValidationError("Invalid CSV upload", {"session_id": ["The session_id field is required."]})
        _validate_batch(parsed.rows)

        job = self.create_job(session_id, len(parsed.rows))
        tickets = self.attach_tickets(job, parsed.rows)
        logger.info("Imported %d tickets from CSV into job %s", len(tickets), job.id)
        return job, tickets

    def record_classification(
        self,
        ticket_id: int,
        category: str,
        sentiment: str,
        priority: Optional[str],
        impact: str,
        urgency: str,
        reasoning: str,
        sla_due_date: Optional[datetime],
    ) -> Ticket:
        """
        Write the classification output of one ticket and count it against
        its job. ``priority`` and ``sla_due_date`` fall back to the ITIL
        policy when omitted.
        """
        ticket = self.get_ticket(ticket_id)

        values, errors = normalize_classification(category, sentiment, priority, impact, urgency)
        if priority is None:
            errors.pop("priority", None)
            if "impact" not in errors and "urgency" not in errors:
                derived = itil.calculate_priority_and_sla(impact, urgency, ticket.created_at)
                values["priority"] = derived["priority"]
                if sla_due_date is None:
                    sla_due_date = derived["sla_due_date"]

        reasoning = (reasoning or "").strip()
        if not reasoning:
            errors["reasoning"] = ["The reasoning field is required."]
        if errors:
            raise ValidationError("Invalid classification", errors)

        # Explicit priority without a due date
        if sla_due_date is None:
            sla_due_date = itil.calculate_sla_due_date(values["priority"], ticket.created_at)

        job = ticket.job
        if job.status != JobState.PROCESSING:
            raise StateError(
                f"Job {job.id} is {job.status}; classifications are only accepted while processing.",
                current_state=job.status,
            )

        with self._transaction("Record classification"):
            written = self.db.execute(
                update(Ticket)
                .where(Ticket.id == ticket.id, Ticket.category.is_(None))
                .values(reasoning=reasoning, sla_due_date=sla_due_date, **values)
                .execution_options(synchronize_session=False)
            )
            if written.rowcount != 1:
                raise StateError(f"Ticket {ticket.id} is already classified.")

            counted = self.db.execute(
                update(ClassificationJob)
                .where(
                    ClassificationJob.id == job.id,
                    ClassificationJob.status == JobState.PROCESSING,
                    ClassificationJob.processed_tickets < ClassificationJob.total_tickets,
                )
                .values(processed_tickets=ClassificationJob.processed_tickets + 1)
                .execution_options(synchronize_session=False)
            )
            if counted.rowcount != 1:
                raise StateError(f"Job {job.id} cannot accept further classifications.")

        self.db.refresh(ticket)
        self.db.refresh(job)
        logger.info(
            "Classified ticket %s (%s/%s) for job %s: %d/%d",
            ticket.issue_key, ticket.category, ticket.priority, job.id, job.processed_tickets, job.total_tickets,
        )
        return ticket

    def finalize_job(self, job_id: str, results: Optional[Any], processing_time_ms: int) -> ClassificationJob:
        job = self.get_job(job_id)
        _check_processing_time(processing_time_ms)
        if job.processed_tickets != job.total_tickets:
            raise StateError(
                f"Job {job.id} has processed {job.processed_tickets} of {job.total_tickets} tickets.",
                current_state=job.status,
                attempted_state=JobState.COMPLETED,
            )

        with self._transaction("Finalize job"):
            self.fsm.transition(
                job,
                JobState.COMPLETED,
                results=results,
                processing_time_ms=processing_time_ms,
                completed_at=datetime.utcnow(),
            )

        logger.info("Job %s completed in %d ms", job.id, processing_time_ms)
        return job

    def fail_job(self, job_id: str, reason: str, processing_time_ms: Optional[int] = None) -> ClassificationJob:
        job = self.get_job(job_id)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Invalid failure request", {"reason": ["The reason field is required."]})
        self.fsm.validate_transition(job.status, JobState.FAILED)

        now = datetime.utcnow()
        if processing_time_ms is None:
            processing_time_ms = max(0, int((now - job.created_at).total_seconds() * 1000))
        _check_processing_time(processing_time_ms)

        with self._transaction("Fail job"):
            self.fsm.transition(
                job,
                JobState.FAILED,
                error_message=reason,
                results={"error": reason, "failed_at": now.isoformat()},
                processing_time_ms=processing_time_ms,
                completed_at=now,
            )

        logger.warning("Job %s failed: %s", job.id, reason)
        return job


def _validate_batch(raw_tickets: Sequence[Mapping[str, Any]], expected: Optional[int] = None) -> List[Dict[str, str]]:
    """Normalise every row of a batch or raise one ValidationError for all of them."""
    errors: Dict[str, List[str]] = {}
    if expected is not None and len(raw_tickets) != expected:
        errors["tickets"] = [f"Expected {expected} tickets, received {len(raw_tickets)}."]

    rows = []
    seen_keys = set()
    for index, raw in enumerate(raw_tickets):
        prefix = f"tickets[{index}]."
        values, row_errors = normalize_raw_ticket(raw, prefix=prefix)
        if values["issue_key"] and values["issue_key"] in seen_keys:
            row_errors.setdefault(f"{prefix}issue_key", []).append(
                f"Duplicate issue_key {values['issue_key']} in batch."
            )
        seen_keys.add(values["issue_key"])
        errors.update(row_errors)
        rows.append(values)

    if errors:
        raise ValidationError("Ticket batch failed validation", errors)
    return rows


def _check_processing_time(processing_time_ms: Any) -> None:
    if not isinstance(processing_time_ms, int) or isinstance(processing_time_ms, bool) or processing_time_ms < 0:
        raise ValidationError(
            "Invalid processing time",
            {"processing_time_ms": ["The processing_time_ms field must be a non-negative integer."]},
        )

import logging
from typing import Any
from sqlalchemy import update
from sqlalchemy.orm import Session
from ticket_classifier.core.errors import StateError
from ticket_classifier.models.job import ClassificationJob

logger = logging.getLogger(__name__)

class JobState:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

TERMINAL_STATES = (JobState.COMPLETED, JobState.FAILED)

VALID_TRANSITIONS = {
    JobState.PENDING: [JobState.PROCESSING, JobState.FAILED],
    JobState.PROCESSING: [JobState.COMPLETED, JobState.FAILED],
    JobState.COMPLETED: [],
    JobState.FAILED: [],
}

class JobStateMachine:
    def __init__(self, db: Session):
        self.db = db

    def validate_transition(self, current_state: str, new_state: str):
        if new_state not in VALID_TRANSITIONS.get(current_state, []):
            raise StateError(
                f"Transition from {current_state} to {new_state} is not permitted.",
                current_state=current_state,
                attempted_state=new_state,
            )

    def transition(self, job: ClassificationJob, new_state: str, **values: Any) -> ClassificationJob:
        """
        Move a job to a new status together with any extra column values.

        The UPDATE is guarded on the status the caller observed, so two
        concurrent transitions out of the same state cannot both win.
        Does NOT commit. The caller must commit the transaction.
        """
        self.validate_transition(job.status, new_state)

        previous_state = job.status
        result = self.db.execute(
            update(ClassificationJob)
            .where(ClassificationJob.id == job.id, ClassificationJob.status == previous_state)
            .values(status=new_state, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.refresh(job)
            raise StateError(
                f"Job {job.id} changed state concurrently; expected {previous_state}, found {job.status}.",
                current_state=job.status,
                attempted_state=new_state,
            )

        self.db.refresh(job)
        logger.info("Job %s transitioned %s -> %s", job.id, previous_state, new_state)
        return job

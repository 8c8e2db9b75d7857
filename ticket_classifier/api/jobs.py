from typing import List
from fastapi import APIRouter, Depends, status
from ticket_classifier.api.deps import get_job_service, verify_request_signature
from ticket_classifier.core.fsm import JobState
from ticket_classifier.schemas.job import (
    FailRequest,
    FinalizeRequest,
    JobCreate,
    JobResponse,
    JobStatusResponse,
    TicketBatch,
    TicketResponse,
    TicketSummary,
)
from ticket_classifier.services.jobs import JobService

router = APIRouter(prefix="/jobs", tags=["Jobs"])

@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(verify_request_signature)])
def create_job(job_in: JobCreate, service: JobService = Depends(get_job_service)):
    """
    Open a classification job for a batch of tickets.
    """
    return service.create_job(job_in.session_id, job_in.total_tickets)


@router.get("/{job_id}", response_model=JobStatusResponse)
def get_job_status(job_id: str, service: JobService = Depends(get_job_service)):
    """
    Poll a job. Tickets and results are included once the job completed;
    a failed job reports its error instead.
    """
    job = service.get_job(job_id)
    response = JobStatusResponse(
        job_id=job.id,
        session_id=job.session_id,
        status=job.status,
        total_tickets=job.total_tickets,
        processed_tickets=job.processed_tickets,
        created_at=job.created_at,
    )

    if job.status == JobState.COMPLETED:
        response.completed_at = job.completed_at
        response.results = job.results
        response.tickets = [TicketSummary.model_validate(t) for t in job.tickets]
    elif job.status == JobState.FAILED:
        response.completed_at = job.completed_at
        response.error = job.error_message or "Classification failed"

    return response


@router.post("/{job_id}/tickets", response_model=List[TicketResponse], status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(verify_request_signature)])
def attach_tickets(job_id: str, batch: TicketBatch, service: JobService = Depends(get_job_service)):
    """
    Attach the raw tickets of a pending job. All-or-nothing.
    """
    return service.attach_tickets(job_id, [t.model_dump() for t in batch.tickets])


@router.get("/{job_id}/tickets", response_model=List[TicketResponse])
def list_tickets(job_id: str, service: JobService = Depends(get_job_service)):
    return service.list_tickets(job_id)


@router.post("/{job_id}/finalize", response_model=JobResponse,
             dependencies=[Depends(verify_request_signature)])
def finalize_job(job_id: str, request: FinalizeRequest, service: JobService = Depends(get_job_service)):
    return service.finalize_job(job_id, request.results, request.processing_time_ms)


@router.post("/{job_id}/fail", response_model=JobResponse,
             dependencies=[Depends(verify_request_signature)])
def fail_job(job_id: str, request: FailRequest, service: JobService = Depends(get_job_service)):
    """
    Mark a job failed, e.g. after an upstream classification error.
    """
    return service.fail_job(job_id, request.reason, request.processing_time_ms)

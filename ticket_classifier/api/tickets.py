from datetime import timezone
from fastapi import APIRouter, Depends, status
from ticket_classifier.api.deps import get_job_service, verify_request_signature
from ticket_classifier.schemas.job import (
    ClassificationRequest,
    CsvUpload,
    CsvUploadResponse,
    JobResponse,
    TicketResponse,
)
from ticket_classifier.services.jobs import JobService

router = APIRouter(prefix="/tickets", tags=["Tickets"])

@router.post("/upload", response_model=CsvUploadResponse, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(verify_request_signature)])
def upload_tickets(upload: CsvUpload, service: JobService = Depends(get_job_service)):
    """
    Open a job from a CSV export. The whole file is rejected with 422 if any
    row is invalid; otherwise the job is returned in processing state.
    """
    job, tickets = service.import_csv(upload.csv_content, session_id=upload.session_id)
    return CsvUploadResponse(
        job=JobResponse.model_validate(job),
        tickets=[TicketResponse.model_validate(t) for t in tickets],
    )


@router.get("/{ticket_id}", response_model=TicketResponse)
def get_ticket(ticket_id: int, service: JobService = Depends(get_job_service)):
    return service.get_ticket(ticket_id)


@router.post("/{ticket_id}/classification", response_model=TicketResponse,
             dependencies=[Depends(verify_request_signature)])
def record_classification(ticket_id: int, request: ClassificationRequest, service: JobService = Depends(get_job_service)):
    """
    Store the classifier output for one ticket. Each ticket accepts exactly
    one classification; a second attempt is rejected with 409.
    """
    sla_due_date = request.sla_due_date
    if sla_due_date is not None and sla_due_date.tzinfo is not None:
        # Stored as naive UTC
        sla_due_date = sla_due_date.astimezone(timezone.utc).replace(tzinfo=None)

    return service.record_classification(
        ticket_id,
        category=request.category,
        sentiment=request.sentiment,
        priority=request.priority,
        impact=request.impact,
        urgency=request.urgency,
        reasoning=request.reasoning,
        sla_due_date=sla_due_date,
    )

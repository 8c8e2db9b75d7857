from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum

class JobStatusEnum(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobCreate(BaseModel):
    session_id: str = Field(..., description="Opaque identifier grouping jobs from one client session.")
    total_tickets: int = Field(..., ge=0, description="Number of tickets the job will carry.")

class RawTicket(BaseModel):
    issue_key: Optional[str] = Field(None, description="Issue tracker key, e.g. DEMO-001.")
    summary: Optional[str] = Field(None, description="One-line summary of the ticket.")
    description: Optional[str] = Field(None, description="Free-text body; markup is stripped.")
    reporter: Optional[str] = Field(None, description="Reporter e-mail or handle.")

class TicketBatch(BaseModel):
    tickets: List[RawTicket] = Field(..., description="Raw tickets; must match the job's total_tickets.")

class CsvUpload(BaseModel):
    csv_content: str = Field(..., description="CSV export text, optionally preceded by its # metadata block.")
    session_id: Optional[str] = Field(None, description="Overrides the session_id from the metadata block.")

class ClassificationRequest(BaseModel):
    category: str = Field(..., description="Technical | Commercial | Billing | General | Support")
    sentiment: str = Field(..., description="Positive | Negative | Neutral")
    impact: str = Field(..., description="High | Medium | Low")
    urgency: str = Field(..., description="High | Medium | Low")
    reasoning: str = Field(..., description="Free-text justification from the classifier.")
    priority: Optional[str] = Field(None, description="Critical | High | Medium | Low. Derived from impact and urgency when omitted.")
    sla_due_date: Optional[datetime] = Field(None, description="Derived from priority when omitted.")

class FinalizeRequest(BaseModel):
    results: Optional[Any] = Field(None, description="Aggregate results payload.")
    processing_time_ms: int = Field(..., ge=0, description="Wall-clock processing time.")

class FailRequest(BaseModel):
    reason: str = Field(..., description="Why the job failed.")
    processing_time_ms: Optional[int] = Field(None, ge=0, description="Defaults to the time elapsed since creation.")


class TicketResponse(BaseModel):
    id: int
    job_id: str
    issue_key: str
    summary: str
    description: str
    reporter: str
    category: Optional[str] = None
    sentiment: Optional[str] = None
    priority: Optional[str] = None
    impact: Optional[str] = None
    urgency: Optional[str] = None
    reasoning: Optional[str] = None
    sla_due_date: Optional[datetime] = None
    is_overdue: bool = False
    sla_time_remaining: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class JobResponse(BaseModel):
    id: str
    session_id: str
    status: JobStatusEnum
    total_tickets: int
    processed_tickets: int
    results: Optional[Any] = None
    error_message: Optional[str] = None
    processing_time_ms: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class TicketSummary(BaseModel):
    issue_key: str
    summary: str
    category: Optional[str] = None
    sentiment: Optional[str] = None
    urgency: Optional[str] = None
    impact: Optional[str] = None
    priority: Optional[str] = None
    sla_due_date: Optional[datetime] = None
    is_overdue: bool = False
    sla_time_remaining: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class CsvUploadResponse(BaseModel):
    job: JobResponse
    tickets: List[TicketResponse]

class JobStatusResponse(BaseModel):
    """Polling view of a job; tickets and results only once it completed."""
    job_id: str
    session_id: str
    status: JobStatusEnum
    total_tickets: int
    processed_tickets: int
    created_at: datetime
    completed_at: Optional[datetime] = None
    results: Optional[Any] = None
    tickets: Optional[List[TicketSummary]] = None
    error: Optional[str] = None

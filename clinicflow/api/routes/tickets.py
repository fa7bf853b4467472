from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from clinicflow.dependencies.tickets import LifecycleEngineDep
from clinicflow.tickets.errors import (
    ClinicFlowError,
    InvalidTicketTransitionError,
    TicketNotFoundError,
    ValidationError,
)
from clinicflow.tickets.models import TicketSummary
from clinicflow.tickets.state import TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])


class RegistrationRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    national_id: str = Field(..., min_length=1, max_length=32)
    birth_date: date | None = None
    phone: str | None = Field(default=None, max_length=32)


class TriageRequest(BaseModel):
    risk_level: str = Field(..., min_length=1, max_length=50)
    blood_pressure: str | None = Field(default=None, max_length=20)
    pulse: int | None = Field(default=None, ge=0, le=400)
    temperature: float | None = Field(default=None, ge=20, le=50)
    oxygen_saturation: int | None = Field(default=None, ge=0, le=100)
    symptoms: str | None = None


class ConsultationRequest(BaseModel):
    anamnesis: str | None = None
    physical_exam: str | None = None
    diagnosis: str | None = None
    prescription: str | None = None
    progress_notes: str | None = None


class IssueResponse(BaseModel):
    number: str
    issued_at: datetime
    count_today: int
    printed: bool
    warning: str | None = None


class RegistrationResponse(BaseModel):
    number: str
    name: str
    national_id: str
    printed: bool
    message: str
    warning: str | None = None


class TriageResponse(BaseModel):
    number: str
    risk_level: str


class ConsultationResponse(BaseModel):
    number: str


class TicketSummaryResponse(BaseModel):
    number: str
    status: TicketStatus
    issued_at: datetime
    name: str | None = None
    national_id: str | None = None
    birth_date: date | None = None
    phone: str | None = None
    risk_level: str | None = None
    blood_pressure: str | None = None
    pulse: int | None = None
    temperature: float | None = None
    oxygen_saturation: int | None = None
    symptoms: str | None = None
    triaged_at: datetime | None = None
    anamnesis: str | None = None
    physical_exam: str | None = None
    diagnosis: str | None = None
    prescription: str | None = None
    progress_notes: str | None = None
    seen_at: datetime | None = None

    @classmethod
    def from_summary(cls, summary: TicketSummary) -> "TicketSummaryResponse":
        payload: dict[str, object] = {
            "number": summary.ticket.number,
            "status": summary.ticket.status,
            "issued_at": summary.ticket.issued_at,
        }
        if summary.registration is not None:
            registration = summary.registration
            payload.update(
                name=registration.name,
                national_id=registration.national_id,
                birth_date=registration.birth_date,
                phone=registration.phone,
            )
        if summary.triage is not None:
            triage = summary.triage
            payload.update(
                risk_level=triage.risk_level,
                blood_pressure=triage.blood_pressure,
                pulse=triage.pulse,
                temperature=triage.temperature,
                oxygen_saturation=triage.oxygen_saturation,
                symptoms=triage.symptoms,
                triaged_at=triage.created_at,
            )
        if summary.consultation is not None:
            consultation = summary.consultation
            payload.update(
                anamnesis=consultation.anamnesis,
                physical_exam=consultation.physical_exam,
                diagnosis=consultation.diagnosis,
                prescription=consultation.prescription,
                progress_notes=consultation.progress_notes,
                seen_at=consultation.created_at,
            )
        return cls.model_validate(payload)


def _http_error(exc: ClinicFlowError) -> HTTPException:
    if isinstance(exc, TicketNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidTicketTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Ticket store unavailable")


@router.post("", response_model=IssueResponse, status_code=status.HTTP_201_CREATED)
async def issue_ticket(engine: LifecycleEngineDep) -> IssueResponse:
    try:
        result = await engine.issue_ticket()
    except ClinicFlowError as exc:
        raise _http_error(exc) from exc
    return IssueResponse(
        number=result.ticket.number,
        issued_at=result.ticket.issued_at,
        count_today=result.count_today,
        printed=result.printed,
        warning=result.warning,
    )


@router.get("", response_model=list[TicketSummaryResponse])
async def list_tickets(
    engine: LifecycleEngineDep,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    name: str | None = Query(default=None, max_length=255),
) -> list[TicketSummaryResponse]:
    try:
        summaries = await engine.list_tickets(status=status_filter, name_contains=name)
    except ClinicFlowError as exc:
        raise _http_error(exc) from exc
    return [TicketSummaryResponse.from_summary(summary) for summary in summaries]


@router.get("/{number}", response_model=TicketSummaryResponse)
async def get_ticket(number: str, engine: LifecycleEngineDep) -> TicketSummaryResponse:
    try:
        summary = await engine.get_ticket(number)
    except ClinicFlowError as exc:
        raise _http_error(exc) from exc
    return TicketSummaryResponse.from_summary(summary)


@router.post("/{number}/registration", response_model=RegistrationResponse)
async def register_patient(
    number: str,
    payload: RegistrationRequest,
    engine: LifecycleEngineDep,
) -> RegistrationResponse:
    try:
        result = await engine.register_patient(
            number,
            name=payload.name,
            national_id=payload.national_id,
            birth_date=payload.birth_date,
            phone=payload.phone,
        )
    except ClinicFlowError as exc:
        raise _http_error(exc) from exc
    return RegistrationResponse(
        number=result.ticket.number,
        name=result.registration.name,
        national_id=result.registration.national_id,
        printed=result.printed,
        message=result.message,
        warning=result.warning,
    )


@router.post("/{number}/triage", response_model=TriageResponse)
async def submit_triage(number: str, payload: TriageRequest, engine: LifecycleEngineDep) -> TriageResponse:
    try:
        result = await engine.submit_triage(number, **payload.model_dump())
    except ClinicFlowError as exc:
        raise _http_error(exc) from exc
    return TriageResponse(number=result.ticket.number, risk_level=result.triage.risk_level)


@router.post("/{number}/consultation", response_model=ConsultationResponse)
async def submit_consultation(
    number: str,
    payload: ConsultationRequest,
    engine: LifecycleEngineDep,
) -> ConsultationResponse:
    try:
        result = await engine.submit_consultation(number, **payload.model_dump())
    except ClinicFlowError as exc:
        raise _http_error(exc) from exc
    return ConsultationResponse(number=result.ticket.number)

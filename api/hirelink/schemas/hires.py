from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from hirelink.schemas.messages import MessageOut

HireStatus = Literal["pending", "accepted", "rejected", "active", "completed", "terminated"]
EmploymentStatus = Literal["available", "hired", "member"]


class HireOfferCreate(BaseModel):
    employee_id: int
    job_title: str = Field(min_length=1)
    start_date: date
    end_date: date
    offer_text: str = Field(min_length=1)
    employer_name: str | None = None
    note: str | None = None
    attachment_urls: list[str] = Field(default_factory=list)


class HireAcceptRequest(BaseModel):
    employer_id: int


class HireDeclineRequest(BaseModel):
    employer_id: int
    reason: str = Field(min_length=1, max_length=2000)


class HireWithdrawRequest(BaseModel):
    employee_id: int
    reason: str | None = Field(default=None, max_length=2000)


class HireOut(BaseModel):
    hire_id: int
    employer_id: int
    employee_id: int
    job_title: str
    start_date: date
    end_date: date
    status: HireStatus
    message_id: int | None = None
    conversation_id: int | None = None
    rejection_reason: str | None = None
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    ended_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class EmploymentOut(BaseModel):
    user_id: int
    employment_status: EmploymentStatus
    employer_id: int | None = None
    employed_start_date: date | None = None
    employed_end_date: date | None = None


class HireOfferOut(BaseModel):
    hire: HireOut
    conversation_id: int
    messages: list[MessageOut] = Field(default_factory=list)
    replayed: bool = False


class HireDecisionOut(BaseModel):
    hire: HireOut
    employment: EmploymentOut | None = None


class EmploymentReconcileOut(BaseModel):
    reconciled: int
    limit: int
    user_ids: list[int] = Field(default_factory=list)
    as_of: date


def hire_event_data(hire: dict[str, Any], **extra: Any) -> dict[str, Any]:
    return {"hire": HireOut.model_validate(hire).model_dump(mode="json"), **extra}

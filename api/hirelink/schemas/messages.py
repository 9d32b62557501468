from datetime import date, datetime
from typing import Annotated, Any, Literal, Union
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict, Field, model_validator

MessageVariant = Literal["text", "file", "application", "hire_offer", "manpower_request"]


class _VariantPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class TextPayload(_VariantPayload):
    variant: Literal["text"] = "text"
    text: str = Field(min_length=1)


class FilePayload(_VariantPayload):
    variant: Literal["file"] = "file"
    file_url: str = Field(min_length=1)
    file_name: str | None = None

    @model_validator(mode="after")
    def _default_file_name(self) -> "FilePayload":
        if not self.file_name:
            path = urlparse(self.file_url).path.replace("\\", "/")
            self.file_name = unquote(path.rsplit("/", 1)[-1]) or None
        return self


class ApplicationPayload(_VariantPayload):
    variant: Literal["application"] = "application"
    job_title: str = Field(min_length=1)
    cover_letter: str | None = None
    resume_url: str | None = None
    full_name: str | None = None
    phone_number: str | None = None
    email_address: str | None = None
    current_address: str | None = None
    job_post_id: int | None = None

    @model_validator(mode="after")
    def _require_cover_letter_or_resume(self) -> "ApplicationPayload":
        if not self.cover_letter and not self.resume_url:
            raise ValueError("an application needs a cover_letter or a resume_url")
        return self


class HireOfferPayload(_VariantPayload):
    variant: Literal["hire_offer"] = "hire_offer"
    job_title: str = Field(min_length=1)
    start_date: date
    end_date: date
    offer_text: str = Field(min_length=1)
    employer_name: str | None = None
    hire_id: int | None = None


class ManpowerRequestPayload(_VariantPayload):
    variant: Literal["manpower_request"] = "manpower_request"
    project_description: str = Field(min_length=1)
    project_location: str | None = None
    employer_name: str | None = None
    company_name: str | None = None
    start_date: date | None = None
    phone_number: str | None = None
    email_address: str | None = None


MessagePayload = Annotated[
    Union[TextPayload, FilePayload, ApplicationPayload, HireOfferPayload, ManpowerRequestPayload],
    Field(discriminator="variant"),
]


class SendMessageRequest(BaseModel):
    receiver_id: int
    payload: dict[str, Any]


class ApplicationRequest(BaseModel):
    receiver_id: int
    job_title: str
    cover_letter: str | None = None
    resume_url: str | None = None
    full_name: str | None = None
    phone_number: str | None = None
    email_address: str | None = None
    current_address: str | None = None
    job_post_id: int | None = None
    note: str | None = None
    attachment_urls: list[str] = Field(default_factory=list)


class ManpowerRequestCreate(BaseModel):
    agency_id: int
    project_description: str
    project_location: str | None = None
    employer_name: str | None = None
    company_name: str | None = None
    start_date: date | None = None
    phone_number: str | None = None
    email_address: str | None = None
    note: str | None = None
    attachment_urls: list[str] = Field(default_factory=list)


class MessageOut(BaseModel):
    message_id: int
    conversation_id: int
    sender_id: int
    receiver_id: int
    variant: MessageVariant
    payload: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime


class SentMessagesOut(BaseModel):
    conversation_id: int
    messages: list[MessageOut] = Field(default_factory=list)


class MarkSeenRequest(BaseModel):
    message_ids: list[int] = Field(min_length=1, max_length=500)


class MarkSeenOut(BaseModel):
    accepted_ids: list[int] = Field(default_factory=list)
    updated_count: int


class AttachmentOut(BaseModel):
    url: str
    file_name: str
    content_type: str | None = None
    size: int

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from datetime import date
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from hirelink.schemas.messages import FilePayload, HireOfferPayload, MessagePayload, TextPayload
from hirelink.services.errors import InvalidDateRangeError, MalformedPayloadError

# Keys whose presence identifies a variant. Shared descriptive fields such as
# job_title or start_date are deliberately absent.
VARIANT_CONTENT_KEYS: dict[str, tuple[str, ...]] = {
    "text": ("text",),
    "file": ("file_url",),
    "application": ("cover_letter", "resume_url"),
    "hire_offer": ("offer_text",),
    "manpower_request": ("project_description", "project_location"),
}
VARIANT_LABELS = {
    "application": "Job application",
    "hire_offer": "Hire offer",
    "manpower_request": "Manpower request",
}
PREVIEW_LENGTH = 30
# Structured variants are only created by their dedicated operations.
DIRECT_VARIANTS = frozenset({"text", "file"})

_PAYLOAD_ADAPTER: TypeAdapter[Any] = TypeAdapter(MessagePayload)


def detect_variants(raw: Mapping[str, Any]) -> list[str]:
    return [
        variant
        for variant, keys in VARIANT_CONTENT_KEYS.items()
        if any(_has_content(raw.get(key)) for key in keys)
    ]


def parse_message_payload(
    raw: Any,
    *,
    variant: str | None = None,
    allowed: Collection[str] | None = None,
) -> Any:
    """Validate a raw message payload and return its typed variant.

    Exactly one variant must be identifiable from the payload's content keys,
    and it must agree with the declared ``variant`` when one is given.
    ``allowed`` restricts which variants the caller may submit.
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(exclude_none=True)
    if not isinstance(raw, Mapping):
        raise MalformedPayloadError("message payload must be an object")

    detected = detect_variants(raw)
    if not detected:
        raise MalformedPayloadError("message payload carries no recognized variant")
    if len(detected) > 1:
        raise MalformedPayloadError(f"message payload is ambiguous between variants: {', '.join(detected)}")

    resolved = detected[0]
    declared = variant if variant is not None else raw.get("variant")
    if declared is not None and declared != resolved:
        raise MalformedPayloadError(f"declared variant {declared!r} does not match payload content ({resolved})")
    if allowed is not None and resolved not in allowed:
        raise MalformedPayloadError(f"{resolved} messages cannot be sent directly")

    try:
        payload = _PAYLOAD_ADAPTER.validate_python({**raw, "variant": resolved})
    except ValidationError as exc:
        raise MalformedPayloadError(f"invalid {resolved} payload: {_summarize_errors(exc)}") from exc

    if isinstance(payload, HireOfferPayload):
        validate_date_range(payload.start_date, payload.end_date)
    return payload


def validate_date_range(start_date: date, end_date: date) -> None:
    if start_date >= end_date:
        raise InvalidDateRangeError("start_date must be strictly before end_date")


def build_message_batch(
    primary: Any | None,
    *,
    note: str | None = None,
    attachment_urls: Iterable[str] = (),
) -> list[Any]:
    """Expand one submission into its ordered messages: payload, note, then attachments."""
    batch: list[Any] = []
    if primary is not None:
        batch.append(parse_message_payload(primary))
    if note is not None and note.strip():
        batch.append(TextPayload(text=note.strip()))
    for url in attachment_urls:
        if not _has_content(url):
            raise MalformedPayloadError("attachment urls must be non-empty")
        batch.append(FilePayload(file_url=url.strip()))
    if not batch:
        raise MalformedPayloadError("nothing to send")
    return batch


def payload_document(payload: Any) -> dict[str, Any]:
    return payload.model_dump(mode="json", exclude_none=True)


def preview_text(variant: str | None, payload: Mapping[str, Any] | None) -> str:
    if not variant or payload is None:
        return "No message"
    if variant == "text":
        return str(payload.get("text") or "")[:PREVIEW_LENGTH]
    if variant == "file":
        return str(payload.get("file_name") or "")
    label = VARIANT_LABELS.get(variant, variant)
    job_title = payload.get("job_title")
    return f"{label}: {job_title}"[:PREVIEW_LENGTH] if job_title else label


def _has_content(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _summarize_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item not in _VARIANT_TAGS)
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


_VARIANT_TAGS = frozenset(VARIANT_CONTENT_KEYS)

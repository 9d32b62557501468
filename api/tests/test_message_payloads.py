from __future__ import annotations

from datetime import date

import pytest

from hirelink.schemas.messages import (
    ApplicationPayload,
    FilePayload,
    HireOfferPayload,
    ManpowerRequestPayload,
    TextPayload,
)
from hirelink.services.errors import InvalidDateRangeError, MalformedPayloadError
from hirelink.services.payloads import (
    DIRECT_VARIANTS,
    build_message_batch,
    detect_variants,
    parse_message_payload,
    payload_document,
    preview_text,
)


@pytest.mark.parametrize(
    ("raw", "expected_type"),
    [
        ({"text": "Are you free on Monday?"}, TextPayload),
        ({"file_url": "https://cdn.example.com/a/site-plan.pdf"}, FilePayload),
        ({"job_title": "Mason", "cover_letter": "Ten years on residential builds."}, ApplicationPayload),
        ({"job_title": "Mason", "resume_url": "https://cdn.example.com/cv.pdf"}, ApplicationPayload),
        (
            {
                "job_title": "Mason",
                "start_date": "2026-11-01",
                "end_date": "2026-12-01",
                "offer_text": "We would like you on site.",
            },
            HireOfferPayload,
        ),
        ({"project_description": "Warehouse fit-out", "project_location": "Cebu"}, ManpowerRequestPayload),
    ],
)
def test_parse_message_payload_identifies_variant(raw: dict, expected_type: type) -> None:
    payload = parse_message_payload(raw)
    assert isinstance(payload, expected_type)


def test_detect_variants_ignores_blank_content_keys() -> None:
    assert detect_variants({"text": "   ", "file_url": "https://cdn.example.com/x.png"}) == ["file"]


def test_parse_rejects_payload_without_variant() -> None:
    with pytest.raises(MalformedPayloadError, match="no recognized variant"):
        parse_message_payload({"job_title": "Mason"})


def test_parse_rejects_ambiguous_payload() -> None:
    with pytest.raises(MalformedPayloadError, match="ambiguous"):
        parse_message_payload({"text": "see attached", "file_url": "https://cdn.example.com/a.pdf"})


def test_parse_rejects_declared_variant_mismatch() -> None:
    with pytest.raises(MalformedPayloadError, match="does not match"):
        parse_message_payload({"variant": "file", "text": "hello"})


def test_parse_rejects_unknown_fields() -> None:
    with pytest.raises(MalformedPayloadError):
        parse_message_payload({"text": "hello", "priority": "high"})


def test_parse_rejects_non_object_payload() -> None:
    with pytest.raises(MalformedPayloadError):
        parse_message_payload(["text", "hello"])


def test_hire_offer_requires_start_before_end() -> None:
    with pytest.raises(InvalidDateRangeError):
        parse_message_payload(
            {
                "job_title": "Mason",
                "start_date": "2026-12-01",
                "end_date": "2026-12-01",
                "offer_text": "Same day start and end",
            }
        )


def test_direct_sends_are_limited_to_text_and_file() -> None:
    assert parse_message_payload({"text": "hello"}, allowed=DIRECT_VARIANTS).variant == "text"
    with pytest.raises(MalformedPayloadError, match="application messages cannot be sent directly"):
        parse_message_payload({"job_title": "Mason", "cover_letter": "Hi"}, allowed=DIRECT_VARIANTS)


def test_file_payload_defaults_name_from_url() -> None:
    payload = parse_message_payload({"file_url": "https://cdn.example.com/u/7/Resume%20Final.pdf"})
    assert payload.file_name == "Resume Final.pdf"


def test_build_message_batch_orders_payload_note_then_attachments() -> None:
    batch = build_message_batch(
        {"job_title": "Welder", "cover_letter": "Certified 6G welder."},
        note="  Available immediately.  ",
        attachment_urls=["https://cdn.example.com/cert.pdf", "https://cdn.example.com/id.png"],
    )
    assert [item.variant for item in batch] == ["application", "text", "file", "file"]
    assert batch[1].text == "Available immediately."
    assert batch[3].file_name == "id.png"


def test_build_message_batch_skips_blank_note() -> None:
    batch = build_message_batch({"text": "hello"}, note="   ")
    assert [item.variant for item in batch] == ["text"]


def test_build_message_batch_rejects_empty_submission() -> None:
    with pytest.raises(MalformedPayloadError):
        build_message_batch(None, note=None, attachment_urls=[])


def test_payload_document_drops_unset_fields() -> None:
    document = payload_document(parse_message_payload({"job_title": "Mason", "cover_letter": "Hi"}))
    assert document == {"variant": "application", "job_title": "Mason", "cover_letter": "Hi"}


def test_hire_offer_document_serializes_dates() -> None:
    offer = HireOfferPayload(
        job_title="Mason",
        start_date=date(2026, 11, 1),
        end_date=date(2026, 12, 1),
        offer_text="Welcome aboard",
        hire_id=4,
    )
    assert payload_document(offer)["start_date"] == "2026-11-01"
    assert payload_document(offer)["hire_id"] == 4


def test_preview_text_per_variant() -> None:
    assert preview_text("text", {"text": "x" * 45}) == "x" * 30
    assert preview_text("file", {"file_url": "https://cdn.example.com/a.pdf", "file_name": "a.pdf"}) == "a.pdf"
    assert preview_text("hire_offer", {"job_title": "Mason"}) == "Hire offer: Mason"
    assert preview_text("manpower_request", {"project_description": "Fit-out"}) == "Manpower request"
    assert preview_text(None, None) == "No message"

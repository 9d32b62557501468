from __future__ import annotations

import asyncio

import pytest

from hirelink.schemas.messages import TextPayload
from hirelink.services.fanout import FanOut
from hirelink.services.messaging import MessagingService
from hirelink.services.receipts import dedupe_message_ids, group_seen_by_sender

EMPLOYER_ID = 101
WORKER_ID = 202
AGENCY_ID = 303


@pytest.fixture
def messaging(repository, registry) -> MessagingService:
    return MessagingService(repository, FanOut(repository, registry))


def _send(repository, sender_id: int, receiver_id: int, *texts: str) -> list[int]:
    result = asyncio.run(
        repository.append_messages(
            sender_id=sender_id,
            receiver_id=receiver_id,
            payloads=[TextPayload(text=text) for text in texts],
        )
    )
    return [row["message_id"] for row in result["messages"]]


def test_group_seen_by_sender_orders_ids() -> None:
    rows = [
        {"message_id": 9, "sender_id": 1, "conversation_id": 4},
        {"message_id": 3, "sender_id": 2, "conversation_id": 7},
        {"message_id": 5, "sender_id": 1, "conversation_id": 4},
    ]
    receipts = group_seen_by_sender(rows)
    assert [(receipt.sender_id, receipt.message_ids) for receipt in receipts] == [(2, [3]), (1, [5, 9])]
    assert receipts[1].to_event_data() == {"conversation_id": 4, "message_ids": [5, 9]}


def test_dedupe_message_ids_keeps_first_occurrence() -> None:
    assert dedupe_message_ids([4, 2, 4, 9, 2]) == [4, 2, 9]


def test_mark_seen_informs_each_sender_once(messaging, repository, registry, make_session) -> None:
    employer_ids = _send(repository, EMPLOYER_ID, WORKER_ID, "Can you start Monday?", "Site is in Mandaue.")
    agency_ids = _send(repository, AGENCY_ID, WORKER_ID, "We have an opening.")
    (own_id,) = _send(repository, WORKER_ID, EMPLOYER_ID, "Yes, Monday works.")
    employer_session = make_session()
    agency_session = make_session()
    registry.set(EMPLOYER_ID, employer_session)
    registry.set(AGENCY_ID, agency_session)

    result = asyncio.run(
        messaging.mark_seen(viewer_id=WORKER_ID, message_ids=[*employer_ids, *agency_ids, own_id, 999, employer_ids[0]])
    )

    assert result == {"accepted_ids": sorted(employer_ids + agency_ids), "updated_count": 3}
    assert repository.messages[own_id]["is_read"] is False
    assert all(repository.messages[message_id]["read_at"] is not None for message_id in employer_ids + agency_ids)

    (employer_event,) = employer_session.sent
    assert employer_event["event"] == "messages_seen"
    assert employer_event["data"]["message_ids"] == employer_ids
    assert employer_event["data"]["viewer_id"] == WORKER_ID
    assert employer_event["data"]["conversation_id"] == repository.messages[employer_ids[0]]["conversation_id"]
    (agency_event,) = agency_session.sent
    assert agency_event["data"]["message_ids"] == agency_ids


def test_mark_seen_again_is_a_noop(messaging, repository, registry, make_session) -> None:
    message_ids = _send(repository, EMPLOYER_ID, WORKER_ID, "Hello")
    asyncio.run(messaging.mark_seen(viewer_id=WORKER_ID, message_ids=message_ids))
    first_read_at = repository.messages[message_ids[0]]["read_at"]
    employer_session = make_session()
    registry.set(EMPLOYER_ID, employer_session)

    result = asyncio.run(messaging.mark_seen(viewer_id=WORKER_ID, message_ids=message_ids))

    assert result == {"accepted_ids": message_ids, "updated_count": 0}
    assert repository.messages[message_ids[0]]["read_at"] == first_read_at
    assert employer_session.sent == []


def test_sender_cannot_mark_own_messages(messaging, repository) -> None:
    message_ids = _send(repository, EMPLOYER_ID, WORKER_ID, "Hello")
    result = asyncio.run(messaging.mark_seen(viewer_id=EMPLOYER_ID, message_ids=message_ids))
    assert result == {"accepted_ids": [], "updated_count": 0}
    assert repository.messages[message_ids[0]]["is_read"] is False

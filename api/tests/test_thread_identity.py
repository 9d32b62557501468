from __future__ import annotations

import asyncio

import pytest

from hirelink.schemas.messages import TextPayload
from hirelink.services.errors import InvalidParticipantsError, RepositoryNotFoundError
from hirelink.services.memory_store import InMemoryRepository
from hirelink.services.threads import ParticipantPair, canonical_pair


def test_canonical_pair_is_order_independent() -> None:
    assert canonical_pair(9, 3) == canonical_pair(3, 9) == ParticipantPair(low=3, high=9)


def test_participant_pair_counterpart() -> None:
    pair = canonical_pair(12, 4)
    assert pair.counterpart_of(4) == 12
    assert pair.counterpart_of(12) == 4
    assert pair.includes(12)
    assert not pair.includes(5)


def test_canonical_pair_rejects_self_thread() -> None:
    with pytest.raises(InvalidParticipantsError):
        canonical_pair(7, 7)


@pytest.mark.parametrize("bad_id", [0, -3, True, "7", None])
def test_canonical_pair_rejects_invalid_ids(bad_id: object) -> None:
    with pytest.raises(InvalidParticipantsError):
        canonical_pair(bad_id, 7)  # type: ignore[arg-type]


def test_resolve_conversation_is_symmetric() -> None:
    repository = InMemoryRepository()

    async def _resolve_both_ways() -> tuple[dict, dict]:
        first = await repository.resolve_conversation(participant_a=5, participant_b=2)
        second = await repository.resolve_conversation(participant_a=2, participant_b=5)
        return first, second

    first, second = asyncio.run(_resolve_both_ways())
    assert first["conversation_id"] == second["conversation_id"]
    assert (first["participant_low"], first["participant_high"]) == (2, 5)
    assert len(repository.conversations) == 1


def test_concurrent_first_contact_converges_on_one_thread() -> None:
    repository = InMemoryRepository()

    async def _race() -> list[dict]:
        calls = [
            repository.resolve_conversation(participant_a=1, participant_b=2)
            if index % 2
            else repository.resolve_conversation(participant_a=2, participant_b=1)
            for index in range(8)
        ]
        return await asyncio.gather(*calls)

    rows = asyncio.run(_race())
    assert {row["conversation_id"] for row in rows} == {rows[0]["conversation_id"]}
    assert len(repository.conversations) == 1


def test_concurrent_first_messages_share_one_thread() -> None:
    repository = InMemoryRepository()

    async def _race() -> list[dict]:
        return await asyncio.gather(
            repository.append_messages(sender_id=1, receiver_id=2, payloads=[TextPayload(text="hello from one")]),
            repository.append_messages(sender_id=2, receiver_id=1, payloads=[TextPayload(text="hello from two")]),
        )

    results = asyncio.run(_race())
    conversation_ids = {result["conversation"]["conversation_id"] for result in results}
    assert len(conversation_ids) == 1
    assert len(repository.conversations) == 1
    assert {row["conversation_id"] for row in repository.messages.values()} == conversation_ids


def test_list_messages_hides_threads_from_outsiders() -> None:
    repository = InMemoryRepository()

    async def _scenario() -> int:
        result = await repository.append_messages(sender_id=1, receiver_id=2, payloads=[TextPayload(text="hi")])
        return result["conversation"]["conversation_id"]

    conversation_id = asyncio.run(_scenario())
    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(
            repository.list_messages(conversation_id=conversation_id, participant_id=3, after_message_id=None, limit=10)
        )


def test_list_messages_is_chronological_and_restartable() -> None:
    repository = InMemoryRepository()

    async def _scenario() -> tuple[list[dict], list[dict]]:
        result = await repository.append_messages(
            sender_id=1,
            receiver_id=2,
            payloads=[TextPayload(text=f"message {index}") for index in range(5)],
        )
        conversation_id = result["conversation"]["conversation_id"]
        first_page = await repository.list_messages(
            conversation_id=conversation_id,
            participant_id=2,
            after_message_id=None,
            limit=2,
        )
        rest = await repository.list_messages(
            conversation_id=conversation_id,
            participant_id=1,
            after_message_id=first_page[-1]["message_id"],
            limit=10,
        )
        return first_page, rest

    first_page, rest = asyncio.run(_scenario())
    assert [row["payload"]["text"] for row in first_page] == ["message 0", "message 1"]
    assert [row["payload"]["text"] for row in rest] == ["message 2", "message 3", "message 4"]

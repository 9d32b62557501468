from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class SeenReceipt:
    sender_id: int
    conversation_id: int
    message_ids: list[int] = field(default_factory=list)

    def to_event_data(self) -> dict[str, Any]:
        return {"conversation_id": self.conversation_id, "message_ids": list(self.message_ids)}


def dedupe_message_ids(message_ids: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    unique: list[int] = []
    for message_id in message_ids:
        if message_id in seen:
            continue
        seen.add(message_id)
        unique.append(message_id)
    return unique


def group_seen_by_sender(rows: Iterable[dict[str, Any]]) -> list[SeenReceipt]:
    """One receipt per original sender, message ids in conversation order.

    A viewer shares exactly one thread with each sender, so each receipt
    carries a single conversation id.
    """
    receipts: dict[int, SeenReceipt] = {}
    for row in sorted(rows, key=lambda item: item["message_id"]):
        sender_id = row["sender_id"]
        receipt = receipts.get(sender_id)
        if receipt is None:
            receipt = SeenReceipt(sender_id=sender_id, conversation_id=row["conversation_id"])
            receipts[sender_id] = receipt
        receipt.message_ids.append(row["message_id"])
    return list(receipts.values())

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Iterable
from datetime import date, datetime, timezone
from itertools import count
from typing import Any

from hirelink.schemas.messages import HireOfferPayload
from hirelink.services import hires as hire_rules
from hirelink.services.errors import (
    InvalidStateTransitionError,
    RepositoryConflictError,
    RepositoryNotFoundError,
)
from hirelink.services.payloads import payload_document, preview_text, validate_date_range
from hirelink.services.receipts import dedupe_message_ids
from hirelink.services.records import MachineCredentialRecord
from hirelink.services.threads import ParticipantPair, canonical_pair


class _UniqueViolation(Exception):
    pass


class InMemoryRepository:
    """Process-local repository for development and tests.

    Mirrors PostgresRepository's contract. Transactional units are serialized
    with one lock; the conversation table keeps its own unique pair index so a
    losing first-contact writer goes through the same re-read path as on
    Postgres. Unknown participants get a default `available` account row.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._conversation_ids = count(1)
        self._message_ids = count(1)
        self._hire_ids = count(1)
        self._notification_ids = count(1)
        self.conversations: dict[int, dict[str, Any]] = {}
        self._conversation_by_pair: dict[ParticipantPair, int] = {}
        self.messages: dict[int, dict[str, Any]] = {}
        self.hires: dict[int, dict[str, Any]] = {}
        self.participants: dict[int, dict[str, Any]] = {}
        self.notifications: dict[int, dict[str, Any]] = {}
        self.module_credentials: dict[str, list[MachineCredentialRecord]] = {}

    async def close(self) -> None:
        return None

    def register_participant(
        self,
        user_id: int,
        *,
        role: str | None = None,
        email: str | None = None,
        display_name: str | None = None,
    ) -> dict[str, Any]:
        participant = self._participant(user_id)
        participant.update({"role": role, "email": email, "display_name": display_name})
        return participant

    def register_module(self, module_id: str, api_key: str, scopes: Iterable[str]) -> None:
        record = MachineCredentialRecord(
            module_db_id=f"module-{module_id}",
            module_id=module_id,
            scopes=list(scopes),
            key_hash=hashlib.sha256(api_key.encode("utf-8")).hexdigest(),
        )
        self.module_credentials.setdefault(module_id, []).append(record)

    async def get_machine_credentials(self, module_id: str) -> list[MachineCredentialRecord]:
        return list(self.module_credentials.get(module_id, []))

    async def get_participant_contact(self, *, user_id: int) -> dict[str, Any] | None:
        participant = self.participants.get(user_id)
        if participant is None:
            return None
        return {
            "user_id": user_id,
            "role": participant.get("role"),
            "email": participant.get("email"),
            "display_name": participant.get("display_name"),
        }

    async def resolve_conversation(self, *, participant_a: int, participant_b: int) -> dict[str, Any]:
        pair = canonical_pair(participant_a, participant_b)
        existing = self._find_conversation(pair)
        if existing is not None:
            return dict(existing)

        # Lookup and insert are separate round trips on a real store.
        await asyncio.sleep(0)
        try:
            return dict(self._insert_conversation(pair))
        except _UniqueViolation:
            winner = self._find_conversation(pair)
            if winner is None:
                raise RepositoryConflictError("conversation insert conflicted but no row is visible") from None
            return dict(winner)

    async def list_conversations(self, *, participant_id: int, limit: int, offset: int) -> list[dict[str, Any]]:
        summaries = []
        for conversation in self.conversations.values():
            pair = ParticipantPair(conversation["participant_low"], conversation["participant_high"])
            if not pair.includes(participant_id):
                continue
            thread = self._thread_messages(conversation["conversation_id"])
            last = thread[-1] if thread else None
            summaries.append(
                {
                    "conversation_id": conversation["conversation_id"],
                    "counterpart_id": pair.counterpart_of(participant_id),
                    "last_message_id": last["message_id"] if last else None,
                    "last_message_variant": last["variant"] if last else None,
                    "preview": preview_text(last["variant"] if last else None, last["payload"] if last else None),
                    "last_message_at": last["created_at"] if last else None,
                    "unread_count": sum(
                        1 for row in thread if row["receiver_id"] == participant_id and not row["is_read"]
                    ),
                    "created_at": conversation["created_at"],
                }
            )
        summaries.sort(
            key=lambda row: (row["last_message_at"] or row["created_at"], row["conversation_id"]),
            reverse=True,
        )
        return summaries[offset : offset + limit]

    async def list_messages(
        self,
        *,
        conversation_id: int,
        participant_id: int,
        after_message_id: int | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        conversation = self.conversations.get(conversation_id)
        if conversation is None or participant_id not in (
            conversation["participant_low"],
            conversation["participant_high"],
        ):
            raise RepositoryNotFoundError("conversation not found")
        rows = [
            dict(row)
            for row in self._thread_messages(conversation_id)
            if after_message_id is None or row["message_id"] > after_message_id
        ]
        return rows[:limit]

    async def append_messages(self, *, sender_id: int, receiver_id: int, payloads: list[Any]) -> dict[str, Any]:
        conversation = await self.resolve_conversation(participant_a=sender_id, participant_b=receiver_id)
        async with self._lock:
            rows = [
                dict(self._insert_message(conversation["conversation_id"], sender_id, receiver_id, payload))
                for payload in payloads
            ]
        return {"conversation": conversation, "messages": rows}

    async def mark_seen(self, *, viewer_id: int, message_ids: list[int]) -> dict[str, Any]:
        async with self._lock:
            accepted = sorted(
                message_id
                for message_id in dedupe_message_ids(message_ids)
                if message_id in self.messages and self.messages[message_id]["receiver_id"] == viewer_id
            )
            read_at = _now()
            updated = []
            for message_id in accepted:
                row = self.messages[message_id]
                if row["is_read"]:
                    continue
                row["is_read"] = True
                row["read_at"] = read_at
                updated.append(dict(row))
        return {"accepted_ids": accepted, "updated": updated}

    async def create_hire_offer(
        self,
        *,
        employer_id: int,
        employee_id: int,
        offer: HireOfferPayload,
        extras: list[Any],
    ) -> dict[str, Any]:
        validate_date_range(offer.start_date, offer.end_date)
        conversation = await self.resolve_conversation(participant_a=employer_id, participant_b=employee_id)
        conversation_id = conversation["conversation_id"]

        async with self._lock:
            open_hires = [
                hire
                for hire in self._hires_for_pair(employer_id, employee_id)
                if hire["status"] in hire_rules.OPEN_HIRE_STATUSES
            ]
            if open_hires:
                current = open_hires[0]
                if hire_rules.is_same_offer(
                    current,
                    job_title=offer.job_title,
                    start_date=offer.start_date,
                    end_date=offer.end_date,
                ):
                    return {"conversation": conversation, "hire": dict(current), "messages": [], "replayed": True}
                raise InvalidStateTransitionError(
                    f"an open hire already exists for this employer and worker (status {current['status']})"
                )

            now = _now()
            hire_id = next(self._hire_ids)
            hire = {
                "hire_id": hire_id,
                "employer_id": employer_id,
                "employee_id": employee_id,
                "job_title": offer.job_title,
                "start_date": offer.start_date,
                "end_date": offer.end_date,
                "status": "pending",
                "message_id": None,
                "conversation_id": conversation_id,
                "rejection_reason": None,
                "accepted_at": None,
                "rejected_at": None,
                "ended_at": None,
                "created_at": now,
                "updated_at": now,
            }
            self.hires[hire_id] = hire
            offer_row = self._insert_message(
                conversation_id,
                employer_id,
                employee_id,
                offer.model_copy(update={"hire_id": hire_id}),
            )
            rows = [dict(offer_row)]
            rows.extend(
                dict(self._insert_message(conversation_id, employer_id, employee_id, payload)) for payload in extras
            )
            hire["message_id"] = offer_row["message_id"]
            return {"conversation": conversation, "hire": dict(hire), "messages": rows, "replayed": False}

    async def accept_hire(self, *, employee_id: int, employer_id: int) -> dict[str, Any]:
        canonical_pair(employer_id, employee_id)
        async with self._lock:
            hire = hire_rules.pick_pending_hire(self._hires_for_pair(employer_id, employee_id), action="accept")
            hire_rules.validate_hire_transition(from_status=hire["status"], to_status="accepted")
            now = _now()
            hire.update({"status": "accepted", "accepted_at": now, "updated_at": now})
            participant = self._participant(employee_id)
            participant.update(hire_rules.hired_projection(hire))
            seen = self._mark_offer_read(hire)
            return {"hire": dict(hire), "employment": _projection(participant), "seen": seen}

    async def decline_hire(self, *, employee_id: int, employer_id: int, reason: str) -> dict[str, Any]:
        canonical_pair(employer_id, employee_id)
        async with self._lock:
            hire = hire_rules.pick_pending_hire(self._hires_for_pair(employer_id, employee_id), action="decline")
            rejected = self._reject(hire, reason)
            return {"hire": rejected, "seen": self._mark_offer_read(hire)}

    async def withdraw_hire(self, *, employer_id: int, employee_id: int, reason: str) -> dict[str, Any]:
        canonical_pair(employer_id, employee_id)
        async with self._lock:
            hire = hire_rules.pick_pending_hire(self._hires_for_pair(employer_id, employee_id), action="withdraw")
            return {"hire": self._reject(hire, reason), "seen": []}

    async def end_hire(self, *, hire_id: int, employer_id: int, status: str) -> dict[str, Any]:
        async with self._lock:
            hire = self.hires.get(hire_id)
            if hire is None or hire["employer_id"] != employer_id:
                raise RepositoryNotFoundError("hire not found")
            hire_rules.validate_hire_transition(from_status=hire["status"], to_status=status)
            now = _now()
            hire.update({"status": status, "ended_at": now, "updated_at": now})
            participant = self._participant(hire["employee_id"])
            if hire_rules.projection_held_by(participant, employer_id=employer_id):
                participant.update(hire_rules.available_projection())
            return {"hire": dict(hire), "employment": _projection(participant)}

    async def list_hires(
        self,
        *,
        participant_id: int,
        status: str | None,
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        rows = [
            dict(hire)
            for hire in self.hires.values()
            if participant_id in (hire["employer_id"], hire["employee_id"])
            and (status is None or hire["status"] == status)
        ]
        rows.sort(key=lambda row: (row["created_at"], row["hire_id"]), reverse=True)
        return rows[offset : offset + limit]

    async def get_employment(self, *, user_id: int, today: date) -> dict[str, Any]:
        async with self._lock:
            participant = self._participant(user_id)
            if hire_rules.projection_expired(participant, today=today):
                self._expire_employment(participant, today=today)
            return _projection(participant)

    async def reconcile_expired_employment(self, *, today: date, limit: int) -> list[int]:
        async with self._lock:
            expired = sorted(
                user_id
                for user_id, participant in self.participants.items()
                if hire_rules.projection_expired(participant, today=today)
            )[:limit]
            for user_id in expired:
                self._expire_employment(self.participants[user_id], today=today)
        return expired

    async def insert_notification(
        self,
        *,
        user_id: int,
        notifier_id: int | None,
        type: str,
        title: str,
        message: str,
        reference_id: int | None = None,
        reference_type: str | None = None,
    ) -> dict[str, Any]:
        notification_id = next(self._notification_ids)
        row = {
            "notification_id": notification_id,
            "user_id": user_id,
            "notifier_id": notifier_id,
            "type": type,
            "title": title,
            "message": message,
            "reference_id": reference_id,
            "reference_type": reference_type,
            "is_read": False,
            "created_at": _now(),
        }
        self.notifications[notification_id] = row
        return dict(row)

    async def list_unread_notifications(self, *, user_id: int, limit: int, offset: int) -> list[dict[str, Any]]:
        rows = [
            dict(row) for row in self.notifications.values() if row["user_id"] == user_id and not row["is_read"]
        ]
        rows.sort(key=lambda row: (row["created_at"], row["notification_id"]), reverse=True)
        return rows[offset : offset + limit]

    async def mark_notification_read(self, *, notification_id: int, user_id: int) -> dict[str, Any]:
        row = self.notifications.get(notification_id)
        if row is None or row["user_id"] != user_id:
            raise RepositoryNotFoundError("notification not found")
        row["is_read"] = True
        return dict(row)

    def _find_conversation(self, pair: ParticipantPair) -> dict[str, Any] | None:
        conversation_id = self._conversation_by_pair.get(pair)
        return self.conversations.get(conversation_id) if conversation_id is not None else None

    def _insert_conversation(self, pair: ParticipantPair) -> dict[str, Any]:
        if pair in self._conversation_by_pair:
            raise _UniqueViolation(pair)
        conversation_id = next(self._conversation_ids)
        row = {
            "conversation_id": conversation_id,
            "participant_low": pair.low,
            "participant_high": pair.high,
            "created_at": _now(),
        }
        self.conversations[conversation_id] = row
        self._conversation_by_pair[pair] = conversation_id
        return row

    def _insert_message(self, conversation_id: int, sender_id: int, receiver_id: int, payload: Any) -> dict[str, Any]:
        message_id = next(self._message_ids)
        row = {
            "message_id": message_id,
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "variant": payload.variant,
            "payload": payload_document(payload),
            "is_read": False,
            "read_at": None,
            "created_at": _now(),
        }
        self.messages[message_id] = row
        return row

    def _thread_messages(self, conversation_id: int) -> list[dict[str, Any]]:
        rows = [row for row in self.messages.values() if row["conversation_id"] == conversation_id]
        rows.sort(key=lambda row: (row["created_at"], row["message_id"]))
        return rows

    def _hires_for_pair(self, employer_id: int, employee_id: int) -> list[dict[str, Any]]:
        rows = [
            hire
            for hire in self.hires.values()
            if hire["employer_id"] == employer_id and hire["employee_id"] == employee_id
        ]
        rows.sort(key=lambda row: (row["created_at"], row["hire_id"]), reverse=True)
        return rows

    def _reject(self, hire: dict[str, Any], reason: str) -> dict[str, Any]:
        hire_rules.validate_hire_transition(from_status=hire["status"], to_status="rejected")
        now = _now()
        hire.update({"status": "rejected", "rejection_reason": reason, "rejected_at": now, "updated_at": now})
        return dict(hire)

    def _mark_offer_read(self, hire: dict[str, Any]) -> list[dict[str, Any]]:
        row = self.messages.get(hire["message_id"])
        if row is None or row["is_read"] or row["receiver_id"] != hire["employee_id"]:
            return []
        row["is_read"] = True
        row["read_at"] = _now()
        return [dict(row)]

    def _expire_employment(self, participant: dict[str, Any], *, today: date) -> None:
        employer_id = participant.get("employer_id")
        now = _now()
        for hire in self.hires.values():
            if (
                hire["employee_id"] == participant["user_id"]
                and hire["employer_id"] == employer_id
                and hire["status"] in hire_rules.EMPLOYED_HIRE_STATUSES
                and hire["end_date"] < today
            ):
                hire.update({"status": "completed", "ended_at": now, "updated_at": now})
        participant.update(hire_rules.available_projection())

    def _participant(self, user_id: int) -> dict[str, Any]:
        participant = self.participants.get(user_id)
        if participant is None:
            participant = {"user_id": user_id, "role": None, "email": None, "display_name": None}
            participant.update(hire_rules.available_projection())
            self.participants[user_id] = participant
        return participant


def _projection(participant: dict[str, Any]) -> dict[str, Any]:
    return {
        "user_id": participant["user_id"],
        "employment_status": participant["employment_status"],
        "employer_id": participant["employer_id"],
        "employed_start_date": participant["employed_start_date"],
        "employed_end_date": participant["employed_end_date"],
    }


def _now() -> datetime:
    return datetime.now(timezone.utc)

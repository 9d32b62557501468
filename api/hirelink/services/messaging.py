from __future__ import annotations

import logging
from typing import Any

from hirelink.core.auth import Role
from hirelink.schemas.messages import ApplicationRequest, ManpowerRequestCreate
from hirelink.services.errors import InvalidParticipantsError
from hirelink.services.fanout import FanOut, LiveEvent
from hirelink.services.payloads import DIRECT_VARIANTS, build_message_batch, parse_message_payload
from hirelink.services.receipts import group_seen_by_sender
from hirelink.services.threads import canonical_pair

logger = logging.getLogger(__name__)

_SUBMISSION_EXTRAS = {"note", "attachment_urls"}


class MessagingService:
    """Threads, message appends and read receipts, with fan-out after commit."""

    def __init__(self, repository: Any, fanout: FanOut) -> None:
        self.repository = repository
        self.fanout = fanout

    async def open_conversation(self, *, participant_id: int, counterpart_id: int) -> dict[str, Any]:
        conversation = await self.repository.resolve_conversation(
            participant_a=participant_id,
            participant_b=counterpart_id,
        )
        return {**conversation, "counterpart_id": counterpart_id}

    async def list_conversations(self, *, participant_id: int, limit: int, offset: int) -> list[dict[str, Any]]:
        return await self.repository.list_conversations(participant_id=participant_id, limit=limit, offset=offset)

    async def list_messages(
        self,
        *,
        conversation_id: int,
        participant_id: int,
        after_message_id: int | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        return await self.repository.list_messages(
            conversation_id=conversation_id,
            participant_id=participant_id,
            after_message_id=after_message_id,
            limit=limit,
        )

    async def send_message(self, *, sender_id: int, receiver_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        canonical_pair(sender_id, receiver_id)
        batch = [parse_message_payload(payload, allowed=DIRECT_VARIANTS)]
        return await self._append(sender_id=sender_id, receiver_id=receiver_id, batch=batch)

    async def submit_application(self, *, sender_id: int, request: ApplicationRequest) -> dict[str, Any]:
        canonical_pair(sender_id, request.receiver_id)
        primary = request.model_dump(exclude=_SUBMISSION_EXTRAS | {"receiver_id"}, exclude_none=True)
        batch = build_message_batch(primary, note=request.note, attachment_urls=request.attachment_urls)
        result = await self._append(sender_id=sender_id, receiver_id=request.receiver_id, batch=batch)

        applicant = request.full_name or "A candidate"
        await self.fanout.notify(
            request.receiver_id,
            "NEW JOB APPLICATION",
            f"{applicant} has applied for {request.job_title}. Check your messages for details.",
            "job_application",
            sender_id,
            reference_id=result["conversation_id"],
            reference_type="conversation",
        )
        return result

    async def submit_manpower_request(self, *, sender_id: int, request: ManpowerRequestCreate) -> dict[str, Any]:
        canonical_pair(sender_id, request.agency_id)
        agency = await self.repository.get_participant_contact(user_id=request.agency_id)
        if agency is not None and agency.get("role") not in (None, Role.MANPOWER_PROVIDER.value):
            raise InvalidParticipantsError("manpower requests can only be sent to a manpower provider")

        primary = request.model_dump(exclude=_SUBMISSION_EXTRAS | {"agency_id"}, exclude_none=True)
        batch = build_message_batch(primary, note=request.note, attachment_urls=request.attachment_urls)
        result = await self._append(sender_id=sender_id, receiver_id=request.agency_id, batch=batch)

        requester = request.company_name or request.employer_name or "A client"
        await self.fanout.notify(
            request.agency_id,
            "NEW MANPOWER REQUEST",
            f"{requester} has sent you a manpower request. Check your messages for details.",
            "manpower_request",
            sender_id,
            reference_id=result["conversation_id"],
            reference_type="conversation",
        )
        return result

    async def mark_seen(self, *, viewer_id: int, message_ids: list[int]) -> dict[str, Any]:
        result = await self.repository.mark_seen(viewer_id=viewer_id, message_ids=message_ids)
        updated = result["updated"]
        for receipt in group_seen_by_sender(updated):
            await self.fanout.push(
                receipt.sender_id,
                LiveEvent(event="messages_seen", data={**receipt.to_event_data(), "viewer_id": viewer_id}),
            )
        logger.info(
            "messages seen viewer_id=%s requested=%s accepted=%s updated=%s",
            viewer_id,
            len(message_ids),
            len(result["accepted_ids"]),
            len(updated),
        )
        return {"accepted_ids": result["accepted_ids"], "updated_count": len(updated)}

    async def _append(self, *, sender_id: int, receiver_id: int, batch: list[Any]) -> dict[str, Any]:
        result = await self.repository.append_messages(sender_id=sender_id, receiver_id=receiver_id, payloads=batch)
        conversation_id = result["conversation"]["conversation_id"]
        logger.info(
            "messages appended conversation_id=%s sender_id=%s count=%s variants=%s",
            conversation_id,
            sender_id,
            len(result["messages"]),
            ",".join(row["variant"] for row in result["messages"]),
        )
        await push_messages(self.fanout, receiver_id, result["messages"])
        return {"conversation_id": conversation_id, "messages": result["messages"]}


async def push_messages(fanout: FanOut, receiver_id: int, messages: list[dict[str, Any]]) -> None:
    for message in messages:
        await fanout.push(receiver_id, LiveEvent(event="message_received", data=message))

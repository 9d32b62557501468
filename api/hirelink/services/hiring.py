from __future__ import annotations

import logging
from typing import Any

from hirelink.schemas.hires import HireOfferCreate, hire_event_data
from hirelink.services import hires as hire_rules
from hirelink.services.errors import RepositoryValidationError
from hirelink.services.fanout import FanOut, LiveEvent
from hirelink.services.mailer import Mailer, render_decline_email
from hirelink.services.messaging import push_messages
from hirelink.services.payloads import build_message_batch, parse_message_payload
from hirelink.services.receipts import group_seen_by_sender
from hirelink.services.threads import canonical_pair

logger = logging.getLogger(__name__)

_END_TITLES = {
    "completed": "Engagement Completed",
    "terminated": "Engagement Terminated",
}


class HiringService:
    """Hire offer lifecycle plus its employment projection and notifications."""

    def __init__(self, repository: Any, fanout: FanOut, mailer: Mailer, *, client_base_url: str) -> None:
        self.repository = repository
        self.fanout = fanout
        self.mailer = mailer
        self.client_base_url = client_base_url.rstrip("/")

    async def make_offer(self, *, employer_id: int, request: HireOfferCreate) -> dict[str, Any]:
        canonical_pair(employer_id, request.employee_id)
        offer = parse_message_payload(
            request.model_dump(exclude={"employee_id", "note", "attachment_urls"}, exclude_none=True),
            variant="hire_offer",
        )
        extras: list[Any] = []
        if (request.note and request.note.strip()) or request.attachment_urls:
            extras = build_message_batch(None, note=request.note, attachment_urls=request.attachment_urls)

        result = await self.repository.create_hire_offer(
            employer_id=employer_id,
            employee_id=request.employee_id,
            offer=offer,
            extras=extras,
        )
        hire = result["hire"]
        if result["replayed"]:
            logger.info("hire offer replayed hire_id=%s employer_id=%s", hire["hire_id"], employer_id)
            return result

        logger.info(
            "hire offer created hire_id=%s employer_id=%s employee_id=%s",
            hire["hire_id"],
            employer_id,
            request.employee_id,
        )
        await push_messages(self.fanout, request.employee_id, result["messages"])
        await self.fanout.push(request.employee_id, LiveEvent(event="hire_offer", data=hire_event_data(hire)))

        employer_name = request.employer_name or await self._display_name(employer_id, default="An employer")
        await self.fanout.notify(
            request.employee_id,
            "NEW HIRE OFFER",
            f"{employer_name} has sent you a hire offer for {hire['job_title']}. Check your messages for details.",
            "hire",
            employer_id,
            reference_id=hire["hire_id"],
            reference_type="hire",
        )
        return result

    async def accept(self, *, employee_id: int, employer_id: int) -> dict[str, Any]:
        result = await self.repository.accept_hire(employee_id=employee_id, employer_id=employer_id)
        hire = result["hire"]
        logger.info("hire accepted hire_id=%s employer_id=%s employee_id=%s", hire["hire_id"], employer_id, employee_id)

        await self._push_offer_seen(employee_id, result.pop("seen", []))
        await self.fanout.push(
            employer_id,
            LiveEvent(event="hire_accepted", data=hire_event_data(hire, employment=result["employment"])),
        )
        worker_name = await self._display_name(employee_id, default="Your candidate")
        await self.fanout.notify(
            employer_id,
            "JOB OFFER CONFIRMATION",
            f"{worker_name} has accepted your job offer for {hire['job_title']}",
            "hire",
            employee_id,
            reference_id=hire["hire_id"],
            reference_type="hire",
        )
        return result

    async def decline(self, *, employee_id: int, employer_id: int, reason: str) -> dict[str, Any]:
        reason = reason.strip()
        if not reason:
            raise RepositoryValidationError("a reason is required to decline a hire offer")

        result = await self.repository.decline_hire(employee_id=employee_id, employer_id=employer_id, reason=reason)
        hire = result["hire"]
        logger.info("hire declined hire_id=%s employer_id=%s employee_id=%s", hire["hire_id"], employer_id, employee_id)

        await self._push_offer_seen(employee_id, result.pop("seen", []))
        await self.fanout.push(employer_id, LiveEvent(event="hire_declined", data=hire_event_data(hire, reason=reason)))
        await self.fanout.notify(
            employer_id,
            "Job Offer Declined",
            f"Your job offer for {hire['job_title']} has been declined. Reason: {reason}",
            "hire",
            employee_id,
            reference_id=hire["hire_id"],
            reference_type="hire",
        )
        await self._send_decline_email(hire, reason=reason)
        return result

    async def withdraw(self, *, employer_id: int, employee_id: int, reason: str | None = None) -> dict[str, Any]:
        detail = (reason or "").strip()
        stored_reason = (
            f"{hire_rules.WITHDRAWN_REASON_PREFIX}: {detail}" if detail else hire_rules.WITHDRAWN_REASON_PREFIX
        )
        result = await self.repository.withdraw_hire(
            employer_id=employer_id,
            employee_id=employee_id,
            reason=stored_reason,
        )
        result.pop("seen", None)
        hire = result["hire"]
        logger.info("hire withdrawn hire_id=%s employer_id=%s employee_id=%s", hire["hire_id"], employer_id, employee_id)

        await self.fanout.push(
            employee_id,
            LiveEvent(event="hire_withdrawn", data=hire_event_data(hire, reason=stored_reason)),
        )
        employer_name = await self._display_name(employer_id, default="The employer")
        await self.fanout.notify(
            employee_id,
            "Job Offer Withdrawn",
            f"{employer_name} has withdrawn the job offer for {hire['job_title']}",
            "hire",
            employer_id,
            reference_id=hire["hire_id"],
            reference_type="hire",
        )
        return result

    async def end(self, *, hire_id: int, employer_id: int, status: str) -> dict[str, Any]:
        if status not in hire_rules.ENDING_HIRE_STATUSES:
            raise RepositoryValidationError(f"unsupported hire end status: {status}")

        result = await self.repository.end_hire(hire_id=hire_id, employer_id=employer_id, status=status)
        hire = result["hire"]
        logger.info("hire ended hire_id=%s employer_id=%s status=%s", hire_id, employer_id, status)

        await self.fanout.push(
            hire["employee_id"],
            LiveEvent(event="hire_ended", data=hire_event_data(hire, employment=result["employment"])),
        )
        await self.fanout.notify(
            hire["employee_id"],
            _END_TITLES[status],
            f"Your engagement as {hire['job_title']} has been marked {status}",
            "hire",
            employer_id,
            reference_id=hire_id,
            reference_type="hire",
        )
        return result

    async def list_hires(
        self,
        *,
        participant_id: int,
        status: str | None,
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        if status is not None and status not in hire_rules.HIRE_STATUSES:
            raise RepositoryValidationError(f"unsupported hire status filter: {status}")
        return await self.repository.list_hires(participant_id=participant_id, status=status, limit=limit, offset=offset)

    async def get_employment(self, *, user_id: int) -> dict[str, Any]:
        return await self.repository.get_employment(user_id=user_id, today=hire_rules.utc_today())

    async def reconcile_employment(self, *, limit: int) -> dict[str, Any]:
        today = hire_rules.utc_today()
        user_ids = await self.repository.reconcile_expired_employment(today=today, limit=limit)
        if user_ids:
            logger.info("employment reconciled count=%s as_of=%s", len(user_ids), today.isoformat())
        return {"reconciled": len(user_ids), "limit": limit, "user_ids": user_ids, "as_of": today}

    async def _push_offer_seen(self, employee_id: int, seen: list[dict[str, Any]]) -> None:
        for receipt in group_seen_by_sender(seen):
            await self.fanout.push(
                receipt.sender_id,
                LiveEvent(event="messages_seen", data={**receipt.to_event_data(), "viewer_id": employee_id}),
            )

    async def _display_name(self, user_id: int, *, default: str) -> str:
        try:
            contact = await self.repository.get_participant_contact(user_id=user_id)
        except Exception:
            logger.warning("participant lookup failed user_id=%s", user_id, exc_info=True)
            return default
        if contact and contact.get("display_name"):
            return str(contact["display_name"])
        return default

    async def _send_decline_email(self, hire: dict[str, Any], *, reason: str) -> None:
        try:
            employer = await self.repository.get_participant_contact(user_id=hire["employer_id"])
            if not employer or not employer.get("email"):
                logger.info("decline email skipped hire_id=%s reason=no-employer-email", hire["hire_id"])
                return
            employer_name = employer.get("display_name") or "there"
            body = render_decline_email(
                name=employer_name,
                position=hire["job_title"],
                company=employer.get("display_name") or "your company",
                reason=reason,
                messages_url=f"{self.client_base_url}/messages",
                sent_on=hire_rules.utc_today(),
            )
            await self.mailer.send(
                to=employer["email"],
                to_name=employer.get("display_name"),
                subject="Job Offer Declined",
                html_content=body,
            )
        except Exception:
            logger.exception("decline email failed hire_id=%s", hire["hire_id"])

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from hirelink.schemas.hires import HireOfferCreate
from hirelink.services.errors import (
    InvalidDateRangeError,
    InvalidParticipantsError,
    InvalidStateTransitionError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)
from hirelink.services.fanout import FanOut
from hirelink.services.hires import HIRE_TRANSITIONS, validate_hire_transition
from hirelink.services.hiring import HiringService

EMPLOYER_ID = 101
WORKER_ID = 202
AGENCY_ID = 303


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _offer(**overrides: object) -> HireOfferCreate:
    values: dict[str, object] = {
        "employee_id": WORKER_ID,
        "job_title": "Mason",
        "start_date": _today() + timedelta(days=1),
        "end_date": _today() + timedelta(days=30),
        "offer_text": "We would like you to join the Cebu site crew.",
        "employer_name": "Acme Builders",
    }
    values.update(overrides)
    return HireOfferCreate(**values)


@pytest.fixture
def service(repository, registry, mailer) -> HiringService:
    return HiringService(repository, FanOut(repository, registry), mailer, client_base_url="https://app.example.com/")


def test_hire_transition_table() -> None:
    validate_hire_transition(from_status="pending", to_status="accepted")
    validate_hire_transition(from_status="accepted", to_status="terminated")
    for terminal in ("rejected", "completed", "terminated"):
        assert HIRE_TRANSITIONS[terminal] == frozenset()
        with pytest.raises(InvalidStateTransitionError):
            validate_hire_transition(from_status=terminal, to_status="accepted")


def test_make_offer_appends_offer_note_and_attachments(service, repository, registry, make_session) -> None:
    worker_session = make_session()
    registry.set(WORKER_ID, worker_session)

    result = asyncio.run(
        service.make_offer(
            employer_id=EMPLOYER_ID,
            request=_offer(note="Bring your own tools.", attachment_urls=["https://cdn.example.com/contract.pdf"]),
        )
    )

    hire = result["hire"]
    assert hire["status"] == "pending"
    assert [row["variant"] for row in result["messages"]] == ["hire_offer", "text", "file"]
    assert hire["message_id"] == result["messages"][0]["message_id"]
    assert hire["conversation_id"] == result["conversation"]["conversation_id"]
    assert result["messages"][0]["payload"]["hire_id"] == hire["hire_id"]
    assert worker_session.events() == ["message_received"] * 3 + ["hire_offer", "notification"]

    (notification,) = repository.notifications.values()
    assert notification["title"] == "NEW HIRE OFFER"
    assert notification["user_id"] == WORKER_ID
    assert notification["reference_type"] == "hire"
    assert "Acme Builders has sent you a hire offer for Mason" in notification["message"]


def test_identical_pending_offer_is_replayed(service, repository) -> None:
    async def _scenario() -> tuple[dict, dict]:
        first = await service.make_offer(employer_id=EMPLOYER_ID, request=_offer())
        second = await service.make_offer(employer_id=EMPLOYER_ID, request=_offer())
        return first, second

    first, second = asyncio.run(_scenario())
    assert second["replayed"] is True
    assert second["hire"]["hire_id"] == first["hire"]["hire_id"]
    assert len(repository.hires) == 1
    assert len(repository.messages) == 1
    assert len(repository.notifications) == 1


def test_conflicting_offer_while_one_is_open(service) -> None:
    asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer()))
    with pytest.raises(InvalidStateTransitionError):
        asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer(job_title="Carpenter")))


def test_offer_validation_errors(service, repository) -> None:
    with pytest.raises(InvalidDateRangeError):
        asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer(end_date=_today())))
    with pytest.raises(InvalidParticipantsError):
        asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer(employee_id=EMPLOYER_ID)))
    assert repository.hires == {}


def test_accept_flips_projection_once(service, repository, registry, make_session) -> None:
    employer_session = make_session()
    registry.set(EMPLOYER_ID, employer_session)
    offer = _offer()

    async def _scenario() -> tuple[dict, dict]:
        await service.make_offer(employer_id=EMPLOYER_ID, request=offer)
        accepted = await service.accept(employee_id=WORKER_ID, employer_id=EMPLOYER_ID)
        employment = await service.get_employment(user_id=WORKER_ID)
        return accepted, employment

    accepted, employment = asyncio.run(_scenario())
    assert accepted["hire"]["status"] == "accepted"
    assert accepted["hire"]["accepted_at"] is not None
    assert "seen" not in accepted
    offer_message = repository.messages[accepted["hire"]["message_id"]]
    assert offer_message["is_read"] is True
    assert offer_message["read_at"] is not None
    assert employment == {
        "user_id": WORKER_ID,
        "employment_status": "hired",
        "employer_id": EMPLOYER_ID,
        "employed_start_date": offer.start_date,
        "employed_end_date": offer.end_date,
    }
    assert employer_session.events() == ["messages_seen", "hire_accepted", "notification"]
    assert employer_session.sent[0]["data"] == {
        "conversation_id": offer_message["conversation_id"],
        "message_ids": [offer_message["message_id"]],
        "viewer_id": WORKER_ID,
    }
    confirmation = employer_session.sent[-1]["data"]
    assert confirmation["title"] == "JOB OFFER CONFIRMATION"
    assert confirmation["message"] == "Juan Dela Cruz has accepted your job offer for Mason"


def test_repeat_accept_has_no_side_effects(service, repository, registry, make_session) -> None:
    asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer()))
    asyncio.run(service.accept(employee_id=WORKER_ID, employer_id=EMPLOYER_ID))
    employer_session = make_session()
    registry.set(EMPLOYER_ID, employer_session)
    notifications_before = len(repository.notifications)

    with pytest.raises(InvalidStateTransitionError):
        asyncio.run(service.accept(employee_id=WORKER_ID, employer_id=EMPLOYER_ID))
    with pytest.raises(InvalidStateTransitionError):
        asyncio.run(service.decline(employee_id=WORKER_ID, employer_id=EMPLOYER_ID, reason="changed my mind"))

    assert employer_session.sent == []
    assert len(repository.notifications) == notifications_before
    assert repository.participants[WORKER_ID]["employment_status"] == "hired"


def test_accept_without_offer_is_not_found(service) -> None:
    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(service.accept(employee_id=WORKER_ID, employer_id=EMPLOYER_ID))


def test_accept_only_sees_offers_addressed_to_caller(service) -> None:
    asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer()))
    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(service.accept(employee_id=AGENCY_ID, employer_id=EMPLOYER_ID))


def test_decline_records_reason_and_mails_employer(service, repository, registry, mailer, make_session) -> None:
    employer_session = make_session()
    registry.set(EMPLOYER_ID, employer_session)
    asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer()))

    result = asyncio.run(service.decline(employee_id=WORKER_ID, employer_id=EMPLOYER_ID, reason="  Accepted another role "))

    hire = result["hire"]
    assert hire["status"] == "rejected"
    assert hire["rejection_reason"] == "Accepted another role"
    assert hire["rejected_at"] is not None
    assert repository.participants[WORKER_ID]["employment_status"] == "available"
    assert repository.messages[hire["message_id"]]["is_read"] is True
    assert employer_session.events() == ["messages_seen", "hire_declined", "notification"]
    assert employer_session.sent[0]["data"]["message_ids"] == [hire["message_id"]]
    assert employer_session.sent[1]["data"]["reason"] == "Accepted another role"
    assert employer_session.sent[2]["data"]["title"] == "Job Offer Declined"
    assert "Accepted another role" in employer_session.sent[2]["data"]["message"]

    (mail,) = mailer.sent
    assert mail["to"] == "hr@acme.example"
    assert mail["subject"] == "Job Offer Declined"
    assert "Mason" in mail["html"]
    assert "https://app.example.com/messages" in mail["html"]


def test_decline_requires_reason(service) -> None:
    asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer()))
    with pytest.raises(RepositoryValidationError):
        asyncio.run(service.decline(employee_id=WORKER_ID, employer_id=EMPLOYER_ID, reason="   "))


def test_decline_survives_mail_failure(repository, registry) -> None:
    class ExplodingMailer:
        async def send(self, **_: object) -> bool:
            raise RuntimeError("smtp relay down")

    service = HiringService(
        repository,
        FanOut(repository, registry),
        ExplodingMailer(),  # type: ignore[arg-type]
        client_base_url="https://app.example.com",
    )
    asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer()))
    result = asyncio.run(service.decline(employee_id=WORKER_ID, employer_id=EMPLOYER_ID, reason="Too far"))
    assert result["hire"]["status"] == "rejected"


def test_withdraw_marks_reason_prefix(service, repository, registry, make_session) -> None:
    worker_session = make_session()
    asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer()))
    registry.set(WORKER_ID, worker_session)

    result = asyncio.run(service.withdraw(employer_id=EMPLOYER_ID, employee_id=WORKER_ID, reason="Project cancelled"))

    assert result["hire"]["status"] == "rejected"
    assert result["hire"]["rejection_reason"] == "withdrawn by employer: Project cancelled"
    assert repository.messages[result["hire"]["message_id"]]["is_read"] is False
    assert worker_session.events() == ["hire_withdrawn", "notification"]


def test_end_hire_reverts_projection(service, repository) -> None:
    async def _scenario() -> dict:
        offer = await service.make_offer(employer_id=EMPLOYER_ID, request=_offer())
        await service.accept(employee_id=WORKER_ID, employer_id=EMPLOYER_ID)
        return await service.end(hire_id=offer["hire"]["hire_id"], employer_id=EMPLOYER_ID, status="terminated")

    result = asyncio.run(_scenario())
    assert result["hire"]["status"] == "terminated"
    assert result["hire"]["ended_at"] is not None
    assert result["employment"]["employment_status"] == "available"
    assert result["employment"]["employer_id"] is None


def test_end_hire_rules(service) -> None:
    offer = asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer()))
    hire_id = offer["hire"]["hire_id"]

    with pytest.raises(InvalidStateTransitionError):
        asyncio.run(service.end(hire_id=hire_id, employer_id=EMPLOYER_ID, status="completed"))
    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(service.end(hire_id=hire_id, employer_id=AGENCY_ID, status="completed"))
    with pytest.raises(RepositoryValidationError):
        asyncio.run(service.end(hire_id=hire_id, employer_id=EMPLOYER_ID, status="accepted"))


def test_expired_employment_is_reconciled_on_read(service, repository) -> None:
    expired = _offer(start_date=_today() - timedelta(days=30), end_date=_today() - timedelta(days=1))

    async def _scenario() -> dict:
        await service.make_offer(employer_id=EMPLOYER_ID, request=expired)
        await service.accept(employee_id=WORKER_ID, employer_id=EMPLOYER_ID)
        return await service.get_employment(user_id=WORKER_ID)

    employment = asyncio.run(_scenario())
    assert employment["employment_status"] == "available"
    assert employment["employer_id"] is None
    (hire,) = repository.hires.values()
    assert hire["status"] == "completed"


def test_employment_ending_today_is_still_hired(service) -> None:
    ending_today = _offer(start_date=_today() - timedelta(days=10), end_date=_today())

    async def _scenario() -> dict:
        await service.make_offer(employer_id=EMPLOYER_ID, request=ending_today)
        await service.accept(employee_id=WORKER_ID, employer_id=EMPLOYER_ID)
        return await service.get_employment(user_id=WORKER_ID)

    assert asyncio.run(_scenario())["employment_status"] == "hired"


def test_reconcile_sweep_respects_limit(service, repository) -> None:
    repository.register_participant(206, role="jobseeker", display_name="Maria Santos")
    past = {"start_date": _today() - timedelta(days=20), "end_date": _today() - timedelta(days=2)}

    async def _scenario() -> list[dict]:
        for worker_id in (WORKER_ID, 206):
            await service.make_offer(employer_id=EMPLOYER_ID, request=_offer(employee_id=worker_id, **past))
            await service.accept(employee_id=worker_id, employer_id=EMPLOYER_ID)
        return [await service.reconcile_employment(limit=1) for _ in range(3)]

    first, second, third = asyncio.run(_scenario())
    assert (first["reconciled"], second["reconciled"], third["reconciled"]) == (1, 1, 0)
    assert sorted(first["user_ids"] + second["user_ids"]) == [WORKER_ID, 206]
    assert all(row["status"] == "completed" for row in repository.hires.values())


def test_racing_accept_and_decline_apply_one_transition(service, repository) -> None:
    asyncio.run(service.make_offer(employer_id=EMPLOYER_ID, request=_offer()))

    async def _race() -> list[object]:
        return await asyncio.gather(
            service.accept(employee_id=WORKER_ID, employer_id=EMPLOYER_ID),
            service.decline(employee_id=WORKER_ID, employer_id=EMPLOYER_ID, reason="Too far from home"),
            return_exceptions=True,
        )

    outcomes = asyncio.run(_race())
    failures = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidStateTransitionError)

    (hire,) = repository.hires.values()
    projection = repository.participants[WORKER_ID]["employment_status"]
    if hire["status"] == "accepted":
        assert projection == "hired"
    else:
        assert hire["status"] == "rejected"
        assert projection == "available"


def test_list_hires_for_both_parties(service) -> None:
    async def _scenario() -> tuple[list[dict], list[dict], list[dict]]:
        await service.make_offer(employer_id=EMPLOYER_ID, request=_offer())
        as_employer = await service.list_hires(participant_id=EMPLOYER_ID, status=None, limit=10, offset=0)
        as_worker = await service.list_hires(participant_id=WORKER_ID, status="pending", limit=10, offset=0)
        accepted_only = await service.list_hires(participant_id=WORKER_ID, status="accepted", limit=10, offset=0)
        return as_employer, as_worker, accepted_only

    as_employer, as_worker, accepted_only = asyncio.run(_scenario())
    assert len(as_employer) == len(as_worker) == 1
    assert accepted_only == []
    with pytest.raises(RepositoryValidationError):
        asyncio.run(service.list_hires(participant_id=WORKER_ID, status="hired", limit=10, offset=0))

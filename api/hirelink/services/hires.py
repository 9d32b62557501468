from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from hirelink.services.errors import (
    InvalidStateTransitionError,
    RepositoryConflictError,
    RepositoryNotFoundError,
)

HIRE_STATUSES = ("pending", "accepted", "rejected", "active", "completed", "terminated")
OPEN_HIRE_STATUSES = frozenset({"pending", "accepted", "active"})
EMPLOYED_HIRE_STATUSES = frozenset({"accepted", "active"})
TERMINAL_HIRE_STATUSES = frozenset({"rejected", "completed", "terminated"})
ENDING_HIRE_STATUSES = frozenset({"completed", "terminated"})
EMPLOYMENT_STATUSES = ("available", "hired", "member")

# `active` is accepted as a stored status but nothing in this service moves a
# hire into it; see DESIGN.md.
HIRE_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"accepted", "rejected"}),
    "accepted": frozenset({"completed", "terminated"}),
    "active": frozenset({"completed", "terminated"}),
    "rejected": frozenset(),
    "completed": frozenset(),
    "terminated": frozenset(),
}

WITHDRAWN_REASON_PREFIX = "withdrawn by employer"


def validate_hire_transition(*, from_status: str, to_status: str) -> None:
    allowed = HIRE_TRANSITIONS.get(from_status)
    if not allowed or to_status not in allowed:
        raise InvalidStateTransitionError(f"invalid hire transition: {from_status} -> {to_status}")


def pick_pending_hire(hires: list[dict[str, Any]], *, action: str) -> dict[str, Any]:
    """Select the single pending hire among a pair's hires (newest first).

    Raises NotFound when the pair never negotiated and InvalidStateTransition
    when the latest negotiation has already moved past `pending`.
    """
    if not hires:
        raise RepositoryNotFoundError("no hire offer exists for this employer and worker")
    pending = [hire for hire in hires if hire["status"] == "pending"]
    if not pending:
        raise InvalidStateTransitionError(f"cannot {action} a hire in status {hires[0]['status']}")
    if len(pending) > 1:
        raise RepositoryConflictError("multiple pending hire offers exist for this employer and worker")
    return pending[0]


def is_same_offer(hire: dict[str, Any], *, job_title: str, start_date: date, end_date: date) -> bool:
    return (
        hire["status"] == "pending"
        and hire["job_title"] == job_title
        and hire["start_date"] == start_date
        and hire["end_date"] == end_date
    )


def hired_projection(hire: dict[str, Any]) -> dict[str, Any]:
    return {
        "employment_status": "hired",
        "employer_id": hire["employer_id"],
        "employed_start_date": hire["start_date"],
        "employed_end_date": hire["end_date"],
    }


def available_projection() -> dict[str, Any]:
    return {
        "employment_status": "available",
        "employer_id": None,
        "employed_start_date": None,
        "employed_end_date": None,
    }


def projection_expired(projection: dict[str, Any], *, today: date) -> bool:
    end_date = projection.get("employed_end_date")
    return projection.get("employment_status") == "hired" and end_date is not None and end_date < today


def projection_held_by(projection: dict[str, Any], *, employer_id: int) -> bool:
    return projection.get("employment_status") == "hired" and projection.get("employer_id") == employer_id


def utc_today() -> date:
    return datetime.now(timezone.utc).date()

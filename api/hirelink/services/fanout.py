from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

from fastapi.encoders import jsonable_encoder
from opentelemetry import trace

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class LiveSession(Protocol):
    async def send_json(self, data: Any) -> None: ...


class SessionRegistry:
    """Participant id -> active live connection. Absence means offline."""

    def __init__(self) -> None:
        self._sessions: dict[int, LiveSession] = {}

    def get(self, participant_id: int) -> LiveSession | None:
        return self._sessions.get(participant_id)

    def set(self, participant_id: int, session: LiveSession) -> LiveSession | None:
        previous = self._sessions.get(participant_id)
        self._sessions[participant_id] = session
        return previous

    def remove(self, participant_id: int, session: LiveSession | None = None) -> bool:
        current = self._sessions.get(participant_id)
        if current is None:
            return False
        # A stale connection closing must not evict its replacement.
        if session is not None and current is not session:
            return False
        del self._sessions[participant_id]
        return True

    def __len__(self) -> int:
        return len(self._sessions)


@dataclass(slots=True)
class LiveEvent:
    event: str
    data: dict[str, Any]

    def to_message(self) -> dict[str, Any]:
        return {"event": self.event, "data": jsonable_encoder(self.data)}


class FanOut:
    """Best-effort delivery layered on committed state.

    Callers invoke it only after their transaction has committed; nothing here
    raises back into them.
    """

    def __init__(self, repository: Any, registry: SessionRegistry) -> None:
        self.repository = repository
        self.registry = registry

    async def push(self, recipient_id: int, event: LiveEvent) -> bool:
        session = self.registry.get(recipient_id)
        if session is None:
            return False

        with tracer.start_as_current_span("fanout.live_push") as span:
            span.set_attribute("fanout.event", event.event)
            span.set_attribute("fanout.recipient_id", recipient_id)
            try:
                await session.send_json(event.to_message())
            except Exception:
                logger.warning(
                    "live push failed recipient_id=%s event=%s; dropping session",
                    recipient_id,
                    event.event,
                    exc_info=True,
                )
                self.registry.remove(recipient_id, session)
                return False
        return True

    async def notify(
        self,
        recipient_id: int,
        title: str,
        message: str,
        type: str = "system",
        actor_id: int | None = None,
        *,
        reference_id: int | None = None,
        reference_type: str | None = None,
    ) -> dict[str, Any] | None:
        with tracer.start_as_current_span("fanout.notify") as span:
            span.set_attribute("fanout.recipient_id", recipient_id)
            span.set_attribute("fanout.notification_type", type)
            try:
                row = await self.repository.insert_notification(
                    user_id=recipient_id,
                    notifier_id=actor_id,
                    type=type,
                    title=title,
                    message=message,
                    reference_id=reference_id,
                    reference_type=reference_type,
                )
            except Exception:
                logger.exception(
                    "failed to create notification user_id=%s notifier_id=%s type=%s",
                    recipient_id,
                    actor_id,
                    type,
                )
                return None

        await self.push(recipient_id, LiveEvent(event="notification", data=row))
        return row


@lru_cache
def get_session_registry() -> SessionRegistry:
    return SessionRegistry()

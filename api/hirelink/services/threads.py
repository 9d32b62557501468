from __future__ import annotations

from typing import Any, NamedTuple

from hirelink.services.errors import InvalidParticipantsError


class ParticipantPair(NamedTuple):
    """Order-independent identity of a two-party thread.

    The same value is used for lookups and for the storage-level unique
    constraint on ``(participant_low, participant_high)``.
    """

    low: int
    high: int

    def counterpart_of(self, participant_id: int) -> int:
        if participant_id == self.low:
            return self.high
        if participant_id == self.high:
            return self.low
        raise InvalidParticipantsError(f"participant {participant_id} is not part of this thread")

    def includes(self, participant_id: int) -> bool:
        return participant_id in (self.low, self.high)


def canonical_pair(participant_a: Any, participant_b: Any) -> ParticipantPair:
    first = _as_participant_id(participant_a)
    second = _as_participant_id(participant_b)
    if first == second:
        raise InvalidParticipantsError("a conversation requires two distinct participants")
    return ParticipantPair(low=min(first, second), high=max(first, second))


def _as_participant_id(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParticipantsError(f"participant id must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidParticipantsError(f"participant id must be positive, got {value}")
    return value

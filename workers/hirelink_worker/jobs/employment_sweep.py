from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


class ReconcileClient(Protocol):
    async def reconcile_employment(self, limit: int = 100) -> dict[str, Any]: ...


@dataclass(slots=True)
class SweepReport:
    batches: int = 0
    reconciled: int = 0
    user_ids: list[int] = field(default_factory=list)


def batch_exhausted(result: dict[str, Any], *, batch_size: int) -> bool:
    """A short batch means no expired projections were left behind.

    The API may cap the requested size, so the limit it reports wins.
    """
    applied = int(result.get("limit") or batch_size)
    return int(result.get("reconciled", 0)) < applied


async def run_employment_sweep(client: ReconcileClient, *, batch_size: int, max_batches: int) -> SweepReport:
    report = SweepReport()
    for _ in range(max(1, max_batches)):
        result = await client.reconcile_employment(limit=batch_size)
        report.batches += 1
        report.reconciled += int(result.get("reconciled", 0))
        report.user_ids.extend(int(user_id) for user_id in result.get("user_ids", []))
        if batch_exhausted(result, batch_size=batch_size):
            break
    return report

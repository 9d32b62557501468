from __future__ import annotations

import asyncio
import logging
import random

from opentelemetry import trace

from hirelink_worker.core.config import get_settings
from hirelink_worker.core.telemetry import configure_worker_logging, worker_telemetry
from hirelink_worker.jobs.employment_sweep import run_employment_sweep
from hirelink_worker.services.maintenance_client import MaintenanceClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def next_backoff(current: float, *, ceiling: float) -> float:
    jitter = random.uniform(0.0, 0.5)
    return min(current * (2.0 + jitter), ceiling)


async def run_worker(*, iterations: int | None = None, client: MaintenanceClient | None = None) -> None:
    settings = get_settings()
    configure_worker_logging()
    client = client or MaintenanceClient(
        base_url=settings.api_base_url,
        module_id=settings.module_id,
        api_key=settings.api_key,
        timeout_seconds=settings.request_timeout_seconds,
    )

    with worker_telemetry(settings):
        backoff = settings.retry_base_seconds
        completed = 0
        while iterations is None or completed < iterations:
            completed += 1
            try:
                with tracer.start_as_current_span("worker.employment_sweep") as span:
                    report = await run_employment_sweep(
                        client,
                        batch_size=settings.sweep_batch_size,
                        max_batches=settings.sweep_max_batches,
                    )
                    span.set_attribute("sweep.batches", report.batches)
                    span.set_attribute("sweep.reconciled", report.reconciled)
                if report.reconciled:
                    logger.info("employment sweep reconciled=%s batches=%s", report.reconciled, report.batches)
                backoff = settings.retry_base_seconds
                sleep_for = settings.sweep_interval_seconds
            except Exception as exc:
                sleep_for = next_backoff(backoff, ceiling=settings.max_backoff_seconds)
                logger.exception("employment sweep failed: %s; retry in %.1fs", exc, sleep_for)
                backoff = sleep_for

            if iterations is None or completed < iterations:
                await asyncio.sleep(sleep_for)


if __name__ == "__main__":
    asyncio.run(run_worker())

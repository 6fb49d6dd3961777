# FILE: clinicflow/services/workflow_poller.py
from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from clinicflow.core.config import settings
from clinicflow.db.session import SessionLocal
from clinicflow.services.billing_admission import sweep_prepared_into_billing
from clinicflow.services.pharmacy_queue import refresh_watermarks

logger = logging.getLogger(__name__)


def run_tick_sync(name: str, job: Callable[[Session], int],
                  session_factory=SessionLocal) -> Optional[int]:
    """
    Sync function called from a worker thread: one session per tick,
    committed on success, rolled back and logged on failure.
    """
    db = session_factory()
    try:
        result = job(db)
        db.commit()
        return result
    except Exception:
        db.rollback()
        logger.exception("Workflow poller '%s' tick failed", name)
        return None
    finally:
        db.close()


class WorkflowPoller:
    """
    Background loops for the pharmacy change detector and the billing
    sweep. Started and stopped from the application lifespan.
    """

    def __init__(self, session_factory=SessionLocal):
        self.enabled = settings.WORKFLOW_POLLING_ENABLED
        self.session_factory = session_factory
        self.jobs = [
            ("pharmacy-watermarks", refresh_watermarks,
             settings.PHARMACY_POLL_SECONDS),
            ("billing-sweep", sweep_prepared_into_billing,
             settings.BILLING_SWEEP_SECONDS),
        ]
        self._tasks: List[asyncio.Task] = []

    async def start(self):
        if not self.enabled or self._tasks:
            return
        for name, job, interval in self.jobs:
            self._tasks.append(
                asyncio.create_task(self._loop(name, job, interval),
                                    name=f"poller:{name}"))
        logger.info("Workflow pollers started (%d)", len(self._tasks))

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    async def _loop(self, name: str, job, interval: float):
        while True:
            # DB is sync, keep it off the event loop
            await asyncio.to_thread(run_tick_sync, name, job,
                                    self.session_factory)
            await asyncio.sleep(interval)

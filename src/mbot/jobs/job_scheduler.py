# src/mbot/jobs/job_scheduler.py

from __future__ import annotations

"""
Job scheduler.

A small polling loop that:
- takes a snapshot of the registry (additions/removals show up at the next tick),
- fires every enabled job whose next instant has passed,
- skips an instant when the job is still running (no queued re-entrancy),
- recomputes the next instant strictly after "now" (missed instants collapse into one firing).

Actions run as their own asyncio tasks; plain callables go to a worker thread,
so neither kind blocks the tick loop. A failing action is logged and recorded on
its Job, nothing else is affected.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from datetime import datetime

from ..errors import ActionError
from .cron import next_fire_after
from .job_models import Job
from .job_registry import JobRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class Scheduler:
    def __init__(
        self,
        registry: JobRegistry,
        *,
        clock: Clock | None = None,
        tick_seconds: float = 1.0,
        action_timeout: float | None = None,
    ) -> None:
        self._registry = registry
        if clock is None:
            tz = registry.tz
            clock = (lambda: datetime.now(tz)) if tz is not None else (lambda: datetime.now().astimezone())
        self._clock = clock
        self._tick_seconds = max(0.05, float(tick_seconds))
        self._action_timeout = float(action_timeout) if action_timeout else None
        self._inflight: set[asyncio.Task[None]] = set()
        self._stop = asyncio.Event()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    # ---- one pass ----

    def tick(self) -> list[Job]:
        """
        Run one scheduling pass and return the jobs that were fired.

        Must be called from inside the running event loop.
        """
        now = self._clock()
        fired: list[Job] = []

        for job in self._registry.snapshot():
            # disable()/enable() arrive from API threads; hold the registry lock per job.
            with self._registry.lock:
                if self._tick_job(job, now):
                    fired.append(job)

        return fired

    def _tick_job(self, job: Job, now: datetime) -> bool:
        if job.disabled:
            return False

        due = job.next_fire_at
        if due is None:
            job.next_fire_at = next_fire_after(job.trigger, now)
            logger.debug("Job %s first fire at %s", job.name, job.next_fire_at)
            return False

        if due > now:
            return False

        launched = False
        if job.running:
            job.skipped_count += 1
            logger.warning("Job %s still running; skipping instant %s", job.name, due.isoformat())
        else:
            self._launch(job, now)
            launched = True

        job.next_fire_at = next_fire_after(job.trigger, now)
        return launched

    def _launch(self, job: Job, now: datetime) -> None:
        job.running = True
        job.last_fired_at = now
        job.run_count += 1
        logger.info("Job %s fired (run #%s)", job.name, job.run_count)

        task = asyncio.create_task(self._execute(job), name=f"mbot-job-{job.name}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _execute(self, job: Job) -> None:
        try:
            await self._invoke(job)
        except asyncio.CancelledError:
            job.last_error = "cancelled"
            raise
        except Exception as e:
            err = ActionError(job.name, f"{type(e).__name__}: {e}")
            job.last_error = str(err)
            job.error_count += 1
            logger.error("%s", err, exc_info=e)
        else:
            job.last_error = None
        finally:
            job.running = False
            job.last_finished_at = self._clock()

    async def _invoke(self, job: Job) -> None:
        action = job.action
        timeout = self._action_timeout

        if inspect.iscoroutinefunction(action):
            if timeout is None:
                await action()
            else:
                await asyncio.wait_for(action(), timeout)
            return

        # A thread cannot be interrupted: on timeout the job keeps its running slot
        # until the call returns, the overrun is recorded as an error.
        worker = asyncio.ensure_future(asyncio.to_thread(action))
        if timeout is not None:
            done, _ = await asyncio.wait({worker}, timeout=timeout)
            if not done:
                logger.warning("Job %s exceeded %.1fs; waiting for it to return", job.name, timeout)
                await worker
                raise TimeoutError(f"action exceeded {timeout:.1f}s")

        result = await worker
        if inspect.isawaitable(result):
            await result

    # ---- loop ----

    def _sleep_for(self) -> float:
        now = self._clock()
        wait = self._tick_seconds
        for job in self._registry.snapshot():
            due = job.next_fire_at
            if job.disabled or due is None:
                continue
            wait = min(wait, (due - now).total_seconds())
        return max(0.05, wait)

    async def run(self) -> None:
        """Tick until stop() is called (or the task is cancelled)."""
        self._stop.clear()
        logger.info("Scheduler started jobs=%s tick=%.2fs", len(self._registry.snapshot()), self._tick_seconds)
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._sleep_for())
            except TimeoutError:
                pass
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        self._stop.set()

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for running actions to finish. Returns False if some are still running."""
        if not self._inflight:
            return True
        _, pending = await asyncio.wait(set(self._inflight), timeout=timeout)
        return not pending

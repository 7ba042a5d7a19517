"""
Actions Worker

Claims due actions from the `scheduled_action` queue and dispatches them to
the hook handlers registered by jobs. A handler exception marks the action
failed; any retry is the handler's own business (it schedules a new action).
"""

from __future__ import annotations

import asyncio
import signal
import time
from uuid import uuid4

import structlog

from gla_sync.config import Settings, get_settings
from gla_sync.db.client import close_db_pool
from gla_sync.hooks import HookRegistry
from gla_sync.jobs.queue import ClaimedAction
from gla_sync.jobs.scheduler import ActionQueue
from gla_sync.kernel.errors import GlaError
from gla_sync.monitoring.metrics import Metrics, get_metrics

logger = structlog.get_logger()


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, GlaError):
        return f"{exc.code}: {exc.message}"
    return f"{type(exc).__name__}: {exc}"


class ActionsWorker:
    def __init__(
        self,
        queue: ActionQueue,
        hooks: HookRegistry,
        *,
        settings: Settings | None = None,
        metrics: Metrics | None = None,
    ) -> None:
        self.queue = queue
        self.hooks = hooks
        self.settings = settings or get_settings()
        self.metrics = metrics or get_metrics()
        self.worker_id = f"actions-worker:{uuid4()}"
        self._shutdown = asyncio.Event()

    async def run_forever(self) -> None:
        logger.info(
            "Actions worker starting",
            worker_id=self.worker_id,
            lease_seconds=self.settings.job_worker_lease_seconds,
        )

        reaper_task = asyncio.create_task(self._reap_expired_running_actions())
        try:
            while not self._shutdown.is_set():
                try:
                    ran = await self.run_once()
                except Exception as exc:
                    logger.warning(
                        "Failed to claim action (will retry)",
                        worker_id=self.worker_id,
                        error=str(exc),
                    )
                    ran = False
                if not ran:
                    await asyncio.sleep(self.settings.job_worker_poll_interval_seconds)
        finally:
            reaper_task.cancel()
            await asyncio.gather(reaper_task, return_exceptions=True)
            logger.info("Actions worker stopped", worker_id=self.worker_id)

    async def shutdown(self) -> None:
        self._shutdown.set()

    async def run_once(self) -> bool:
        """Claim and execute one due action. Returns False when none was due."""
        action = await self.queue.claim_next_action(
            worker_id=self.worker_id,
            lease_seconds=self.settings.job_worker_lease_seconds,
        )
        if not action:
            return False
        await self._execute_claimed_action(action)
        return True

    async def run_until_idle(self, *, max_actions: int = 10_000) -> int:
        """Execute due actions until the queue has nothing due. Returns the count run."""
        count = 0
        while count < max_actions and await self.run_once():
            count += 1
        return count

    async def _reap_expired_running_actions(self) -> None:
        """Periodically requeue actions stuck in 'running' with expired leases."""
        interval = max(5, int(self.settings.job_worker_reaper_interval_seconds))
        limit = int(max(1, self.settings.job_worker_reaper_limit))

        while not self._shutdown.is_set():
            try:
                requeued = await self.queue.requeue_expired_running_actions(limit=limit)
                if requeued:
                    logger.warning(
                        "Requeued expired running actions",
                        worker_id=self.worker_id,
                        count=requeued,
                    )
            except Exception as exc:
                logger.warning(
                    "Failed to requeue expired running actions",
                    worker_id=self.worker_id,
                    error=str(exc),
                )

            await asyncio.sleep(interval)

    async def _execute_claimed_action(self, action: ClaimedAction) -> None:
        started = time.perf_counter()
        log = logger.bind(action_id=action.id, hook=action.hook, attempts=action.attempts)
        log.info("Executing action", args=action.args)

        lease_task = asyncio.create_task(self._lease_heartbeat(action.id))
        try:
            try:
                with self.metrics.time_action(action.hook):
                    await self.hooks.do_action(action.hook, *action.args)
            except Exception as exc:
                try:
                    await self.queue.mark_action_failed(action_id=action.id, error=describe_error(exc))
                except Exception as mark_exc:
                    # The reaper will make the action runnable again once its lease expires.
                    log.error("Failed to mark action failed", error=str(mark_exc))
                log.warning(
                    "Action failed",
                    duration_seconds=time.perf_counter() - started,
                    error=describe_error(exc),
                )
                return

            try:
                await self.queue.mark_action_complete(action_id=action.id)
            except Exception as exc:
                log.error("Failed to mark action complete", error=str(exc))
            log.info("Action complete", duration_seconds=time.perf_counter() - started)
        finally:
            lease_task.cancel()
            await asyncio.gather(lease_task, return_exceptions=True)

    def _heartbeat_interval(self) -> float:
        if self.settings.job_worker_heartbeat_interval_seconds is not None:
            return max(0.01, float(self.settings.job_worker_heartbeat_interval_seconds))
        return max(5.0, self.settings.job_worker_lease_seconds / 3)

    async def _lease_heartbeat(self, action_id: str) -> None:
        """Keep extending the lease while the action runs, so the reaper leaves it alone."""
        interval = self._heartbeat_interval()
        while not self._shutdown.is_set():
            await asyncio.sleep(interval)
            try:
                ok = await self.queue.extend_lease(
                    action_id=action_id,
                    worker_id=self.worker_id,
                    lease_seconds=self.settings.job_worker_lease_seconds,
                )
            except Exception as exc:
                logger.warning(
                    "Failed to extend lease",
                    worker_id=self.worker_id,
                    action_id=action_id,
                    error=str(exc),
                )
                return
            if not ok:
                logger.warning("Lease lost", worker_id=self.worker_id, action_id=action_id)
                return


async def _run() -> None:
    from gla_sync.jobs.registry import build_job_registry
    from gla_sync.jobs.scheduler import PostgresActionScheduler
    from gla_sync.merchant_center.client import ContentApiClient
    from gla_sync.monitoring.logging import configure_logging
    from gla_sync.products.repository import PostgresProductRepository

    settings = get_settings()
    configure_logging(settings)

    scheduler = PostgresActionScheduler()
    hooks = HookRegistry()
    build_job_registry(
        settings,
        scheduler=scheduler,
        hooks=hooks,
        repository=PostgresProductRepository(),
        merchant_center=ContentApiClient(settings),
    )
    worker = ActionsWorker(scheduler, hooks, settings=settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.create_task(worker.shutdown()))
        except NotImplementedError:
            signal.signal(sig, lambda *_: asyncio.create_task(worker.shutdown()))

    try:
        await worker.run_forever()
    finally:
        await close_db_pool()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()

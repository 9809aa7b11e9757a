"""
Scheduler - named periodic tasks on the application's event loop.

Each task loops: run body -> heartbeat -> sleep(interval + jitter).
An exception in a body is logged and alerted, and aborts only that
invocation; the loop always continues. Interrupting a task mid-body is safe
because every sweep re-evaluates unprocessed rows on its next run.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from slotwise.utils.logging import begin_sweep_run

logger = logging.getLogger(__name__)

TaskBody = Callable[[], Awaitable[object]]
SleepFn = Callable[[float], Awaitable[None]]

SHUTDOWN_TIMEOUT_SECONDS = 10.0
HEARTBEAT_KEY_PREFIX = "slotwise:worker_health:"


@dataclass
class PeriodicTask:
    name: str
    interval_seconds: float
    func: TaskBody
    jitter_seconds: float = 0.0
    run_on_start: bool = True

    @property
    def heartbeat_key(self) -> str:
        return f"{HEARTBEAT_KEY_PREFIX}{self.name}"

    @property
    def heartbeat_ttl(self) -> int:
        return int(self.interval_seconds * 2) + 60


class Scheduler:
    """Registry and runner for periodic tasks."""

    def __init__(self, sleep: Optional[SleepFn] = None):
        self._tasks: dict[str, PeriodicTask] = {}
        self._running: list[asyncio.Task] = []
        self._sleep = sleep or asyncio.sleep

    @property
    def tasks(self) -> dict[str, PeriodicTask]:
        return dict(self._tasks)

    def add(
        self,
        name: str,
        interval_seconds: float,
        func: TaskBody,
        jitter_seconds: float = 0.0,
        run_on_start: bool = True,
    ) -> PeriodicTask:
        if name in self._tasks:
            raise ValueError(f"Task already registered: {name}")
        if interval_seconds <= 0:
            raise ValueError(f"Interval must be positive: {name}")
        task = PeriodicTask(name, interval_seconds, func, jitter_seconds, run_on_start)
        self._tasks[name] = task
        return task

    async def run_once(self, name: str) -> object:
        """Run one invocation of a task body directly (errors propagate)."""
        return await self._tasks[name].func()

    async def _invoke(self, task: PeriodicTask) -> None:
        begin_sweep_run(task.name)
        try:
            result = await task.func()
            if isinstance(result, int) and result > 0:
                logger.info("%s processed %d appointments", task.name, result, extra={"sweep": task.name})
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("%s error: %s", task.name, str(e), exc_info=True, extra={"sweep": task.name})
            from slotwise.utils.alerting import send_alert, AlertType
            await send_alert(
                AlertType.SWEEP_FAILED,
                f"{task.name} failed: {e}",
                extra={"sweep": task.name},
            )

    async def _heartbeat(self, task: PeriodicTask) -> None:
        """Store heartbeat timestamp in Redis."""
        try:
            from slotwise.utils.redis_client import get_redis
            redis = await get_redis()
            await redis.set(
                task.heartbeat_key,
                datetime.now(timezone.utc).isoformat(),
                ex=task.heartbeat_ttl,
            )
        except Exception as e:
            logger.debug("Heartbeat write failed for %s: %s", task.name, str(e))

    def _next_delay(self, task: PeriodicTask) -> float:
        if task.jitter_seconds > 0:
            return task.interval_seconds + random.uniform(0, task.jitter_seconds)
        return task.interval_seconds

    async def _loop(self, task: PeriodicTask) -> None:
        logger.info("%s started (every %ds)", task.name, task.interval_seconds, extra={"sweep": task.name})
        if not task.run_on_start:
            await self._sleep(self._next_delay(task))
        while True:
            await self._invoke(task)
            await self._heartbeat(task)
            await self._sleep(self._next_delay(task))

    def start(self) -> list[asyncio.Task]:
        """Spawn one asyncio task per registered entry."""
        for task in self._tasks.values():
            self._running.append(asyncio.create_task(self._loop(task), name=task.name))
        return list(self._running)

    async def stop(self) -> None:
        """Cancel all loops; in-flight sweeps are abandoned, not drained."""
        if not self._running:
            return
        logger.info("Stopping %d scheduled tasks", len(self._running))
        for running in self._running:
            running.cancel()
        await asyncio.wait(self._running, timeout=SHUTDOWN_TIMEOUT_SECONDS)
        await asyncio.gather(*self._running, return_exceptions=True)
        self._running = []

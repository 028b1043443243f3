"""Bounded background dispatch for coordinator and workout operations."""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from eggrun.config import settings
from eggrun.infra import log_utils


class RewardDispatcher:
    """
    Runs orchestrator calls on a fixed-size worker pool.

    Every submit returns a Future, so the caller always learns whether the
    job succeeded. Exceptions are logged here and re-raised through the
    future; nothing is retried.
    """

    def __init__(self, orchestrator, max_workers: Optional[int] = None):
        self.orchestrator = orchestrator
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.WORKER_POOL_SIZE,
            thread_name_prefix="eggrun",
        )

    def _submit(self, name: str, fn: Callable[..., Any], *args: Any) -> Future:
        def job():
            try:
                return fn(*args)
            except Exception as e:
                log_utils.log_message(f"[dispatch] {name} failed: {e!r}", "ERROR")
                raise

        return self._executor.submit(job)

    def submit_acquire(self) -> Future:
        return self._submit("acquire", self.orchestrator.acquire_from_egg)

    def submit_evolve(self, instance_id: int) -> Future:
        return self._submit("evolve", self.orchestrator.evolve, instance_id)

    def submit_finish_workout(self, manual_distance_km: Optional[float] = None) -> Future:
        return self._submit("finish_workout", self.orchestrator.finish_workout, manual_distance_km)

    def submit_manual_workout(self, distance_km: float) -> Future:
        return self._submit("manual_workout", self.orchestrator.log_manual_workout, distance_km)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "RewardDispatcher":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown(wait=True)

"""Bounded worker pool for toolchain invocations."""

from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, Sequence, Set, TypeVar

from .logging import get_logger

JobT = TypeVar("JobT")
ResultT = TypeVar("ResultT")

_POLL_INTERVAL = 0.1


class CancellationToken:
    """Single cancellation signal shared by the whole run."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class ScheduleResult(Generic[JobT]):
    """Jobs that never started because the run was cancelled."""

    not_started: List[JobT]

    @property
    def complete(self) -> bool:
        return not self.not_started


class _NotStarted:
    pass


_NOT_STARTED = _NotStarted()


class VerificationScheduler(Generic[JobT, ResultT]):
    """Runs jobs on at most ``concurrency`` threads.

    ``on_result`` is always invoked on the calling thread, so the consumer
    never needs its own locking. Once the token is cancelled, queued jobs
    are dropped and in-flight jobs are awaited. The first exception raised
    by a job cancels the run and is re-raised after in-flight jobs settle.
    """

    def __init__(self, concurrency: int, token: CancellationToken | None = None) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self.token = token or CancellationToken()
        self.logger = get_logger("scheduler")

    def run(
        self,
        jobs: Sequence[JobT],
        work: Callable[[JobT], ResultT],
        on_result: Callable[[JobT, ResultT], None],
    ) -> ScheduleResult[JobT]:
        not_started: List[JobT] = []
        if not jobs:
            return ScheduleResult(not_started=not_started)

        def _guarded(job: JobT) -> object:
            if self.token.cancelled:
                return _NOT_STARTED
            return work(job)

        error: Optional[BaseException] = None
        executor = ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="docverify-worker")
        try:
            futures: Dict[Future, JobT] = {executor.submit(_guarded, job): job for job in jobs}
            pending: Set[Future] = set(futures)
            while pending:
                try:
                    done, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    self._cancel(executor, "interrupted by operator")
                    continue
                for future in done:
                    job = futures[future]
                    if future.cancelled():
                        not_started.append(job)
                        continue
                    exc = future.exception()
                    if exc is not None:
                        if error is None:
                            error = exc
                            self._cancel(executor, f"aborted: {exc}")
                        continue
                    value = future.result()
                    if value is _NOT_STARTED:
                        not_started.append(job)
                        continue
                    on_result(job, value)  # type: ignore[arg-type]
                if self.token.cancelled:
                    self._cancel(executor, self.token.reason or "cancelled")
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        if error is not None:
            raise error
        if not_started:
            self.logger.warning("%d job(s) were not started (%s)", len(not_started), self.token.reason)
        return ScheduleResult(not_started=not_started)

    def _cancel(self, executor: ThreadPoolExecutor, reason: str) -> None:
        if not self.token.cancelled:
            self.logger.warning("Stopping dispatch: %s; waiting for in-flight runs", reason)
        self.token.cancel(reason)
        executor.shutdown(wait=False, cancel_futures=True)


__all__ = ["CancellationToken", "ScheduleResult", "VerificationScheduler"]

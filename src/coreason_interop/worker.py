# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


class SubmissionWorker:
    """
    Runs background processing tasks, one per submission id.

    In-flight tasks are tracked so that `shutdown` can give them a grace period to
    reach a terminal status. Enqueuing an id that is already in flight returns the
    existing future instead of starting a second pass.
    """

    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "interop-worker"):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self._in_flight: Dict[str, Future[Any]] = {}
        self._lock = threading.Lock()
        self._accepting = True

    @property
    def accepting(self) -> bool:
        with self._lock:
            return self._accepting

    def enqueue(self, submission_id: str, task: Callable[..., Any], *args: Any) -> Future[Any]:
        with self._lock:
            if not self._accepting:
                raise RuntimeError("SubmissionWorker is shut down.")
            existing = self._in_flight.get(submission_id)
            if existing is not None and not existing.done():
                logger.warning(f"Submission {submission_id} is already being processed")
                return existing
            future = self._executor.submit(task, *args)
            self._in_flight[submission_id] = future

        logger.debug(f"Queued processing for submission {submission_id}")
        future.add_done_callback(lambda f: self._on_done(submission_id, f))
        return future

    def _on_done(self, submission_id: str, future: Future[Any]) -> None:
        with self._lock:
            if self._in_flight.get(submission_id) is future:
                del self._in_flight[submission_id]
        if future.cancelled():
            logger.warning(f"Processing for submission {submission_id} was cancelled")
            return
        exc = future.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"Background processing crashed for submission {submission_id}")

    def in_flight(self) -> List[str]:
        with self._lock:
            return [sid for sid, f in self._in_flight.items() if not f.done()]

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until every in-flight task finishes. False if `timeout` expired first."""
        with self._lock:
            futures = [f for f in self._in_flight.values() if not f.done()]
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self, grace_period: float = 10.0) -> List[str]:
        """
        Stops accepting work and waits up to `grace_period` seconds for in-flight tasks.

        Returns:
            Ids of submissions still in flight when the grace period ran out.
        """
        with self._lock:
            self._accepting = False

        logger.info(f"Draining submission worker ({len(self.in_flight())} in flight, grace {grace_period}s)")
        if not self.wait(grace_period):
            logger.warning(f"Grace period expired with submissions still processing: {self.in_flight()}")
        remaining = self.in_flight()
        self._executor.shutdown(wait=False, cancel_futures=True)
        return remaining

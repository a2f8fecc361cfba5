"""Grading job queue.

The lifecycle controller only hands submission ids to a ``GradingQueue``;
accepting a submission and finishing its grading are separate events.
``BackgroundGradingQueue`` runs jobs on its own event loop in a worker
thread so request handlers return as soon as the pending row is stored.
"""

import asyncio
import concurrent.futures
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple

from ..config import GRADING_SHUTDOWN_GRACE_SECONDS, GRADING_TIMEOUT_SECONDS
from .dispatcher import GradingDispatcher

logger = logging.getLogger(__name__)


class GradingQueue(ABC):
    """Where the lifecycle controller drops grading jobs."""

    @abstractmethod
    def enqueue(self, submission_id: str) -> None:
        """Schedule grading for one submission without waiting for it."""

    @abstractmethod
    def enqueue_batch(self, submission_ids: Iterable[str]) -> None:
        """Schedule throttled grading for several submissions."""


class BackgroundGradingQueue(GradingQueue):
    """Runs dispatcher jobs on a dedicated event loop thread.

    Jobs are never cancelled while the worker runs. On shutdown, jobs that
    outlive the grace period are cut off and their submissions are marked
    failed, so no row is left in processing.
    """

    def __init__(self, dispatcher: GradingDispatcher):
        self.dispatcher = dispatcher
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._jobs: Dict[concurrent.futures.Future, Tuple[str, ...]] = {}
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._jobs)

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._run_loop, name="grading-worker", daemon=True
            )
            self._thread.start()
        logger.info("Grading worker started")

    def _run_loop(self) -> None:
        loop = self._loop
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            # Unwind jobs cut off by shutdown before the loop goes away
            leftover = asyncio.all_tasks(loop)
            for task in leftover:
                task.cancel()
            if leftover:
                loop.run_until_complete(asyncio.gather(*leftover, return_exceptions=True))
            loop.close()

    def enqueue(self, submission_id: str) -> None:
        logger.info(f"Queued grading for submission {submission_id}")
        self._submit(
            self.dispatcher.grade_submission(submission_id),
            (submission_id,),
            f"submission {submission_id}",
        )

    def enqueue_batch(self, submission_ids: Iterable[str]) -> None:
        ids = tuple(submission_ids)
        if not ids:
            return
        logger.info(f"Queued batch grading for {len(ids)} submissions")
        self._submit(self.dispatcher.batch_grade(list(ids)), ids, f"batch of {len(ids)}")

    def _submit(self, coro, submission_ids: Tuple[str, ...], label: str) -> None:
        if not self.running:
            self.start()
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        with self._lock:
            self._jobs[future] = submission_ids

        def _done(f: concurrent.futures.Future) -> None:
            with self._lock:
                self._jobs.pop(f, None)
            if not f.cancelled() and f.exception() is not None:
                logger.error(f"Grading job for {label} crashed", exc_info=f.exception())

        future.add_done_callback(_done)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued jobs; True if all finished within ``timeout``."""
        with self._lock:
            futures = list(self._jobs)
        if not futures:
            return True
        _, not_done = concurrent.futures.wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Let in-flight jobs finish, then stop the worker loop.

        ``timeout`` defaults to one model call plus a grace period. Jobs still
        running after it are cut off and their submissions fail.
        """
        if not self.running:
            return
        if timeout is None:
            timeout = GRADING_TIMEOUT_SECONDS + GRADING_SHUTDOWN_GRACE_SECONDS

        stranded: List[str] = []
        if not self.drain(timeout):
            with self._lock:
                for future, ids in self._jobs.items():
                    if not future.done():
                        stranded.extend(ids)
            logger.warning(f"Stopping grading worker with {len(stranded)} submission(s) unfinished")

        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._thread = None
        if stranded:
            self.dispatcher.fail_interrupted(stranded)
        logger.info("Grading worker stopped")

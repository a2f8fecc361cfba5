"""Grading dispatcher.

Turns a pending submission into a completed or failed one by calling the
grading service. Status moves pending -> processing -> completed|failed;
the first step is a conditional update so two jobs for the same
submission never grade it twice.
"""

import asyncio
import logging
from dataclasses import dataclass
from concurrent.futures import Executor
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from grading import GradingClient, determine_complexity

from ..config import GRADING_BATCH_DELAY_SECONDS, GRADING_BATCH_SIZE
from ..database import SessionLocal, session_scope, utcnow
from ..models import Submission, SubmissionStatus

logger = logging.getLogger(__name__)

INTERRUPTED = "grading was interrupted before it finished"


@dataclass(frozen=True)
class _GradingInput:
    content: str
    base_example: str
    question: Mapping[str, Optional[str]]
    kind: str


class _GradingAborted(Exception):
    pass


class GradingDispatcher:
    """
    Grades submissions by id.

    Args:
        grader: Object with an async ``assess`` method, normally a GradingClient.
        session_factory: Callable returning a new Session.
        batch_size: Submissions graded concurrently by ``batch_grade``.
        batch_delay: Seconds to pause between batch groups.
        db_executor: Executor for the blocking database steps; None uses the
            event loop's default thread pool.
    """

    def __init__(
        self,
        grader: Optional[GradingClient] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        batch_size: int = GRADING_BATCH_SIZE,
        batch_delay: float = GRADING_BATCH_DELAY_SECONDS,
        db_executor: Optional[Executor] = None,
    ):
        self.grader = grader or GradingClient()
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.db_executor = db_executor

    async def _in_db_thread(self, func, *args):
        return await asyncio.get_running_loop().run_in_executor(self.db_executor, func, *args)

    async def grade_submission(self, submission_id: str) -> Optional[SubmissionStatus]:
        """Grade one submission; returns its final status, or None if it was not pending."""
        if not await self._in_db_thread(self._claim, submission_id):
            logger.warning(f"Submission {submission_id} is not pending; skipping grading")
            return None
        logger.info(f"Grading submission {submission_id}")

        try:
            grading_input = await self._in_db_thread(self._load_input, submission_id)
            tier = determine_complexity(grading_input.kind, len(grading_input.content))
            verdict = await self.grader.assess(
                grading_input.content,
                grading_input.base_example,
                grading_input.question,
                grading_input.kind,
                tier=tier,
            )
        except _GradingAborted as e:
            return await self._in_db_thread(self._fail, submission_id, str(e))
        except Exception as e:
            logger.error(f"Grading submission {submission_id} raised: {e}", exc_info=True)
            return await self._in_db_thread(self._fail, submission_id, str(e) or e.__class__.__name__)

        return await self._in_db_thread(self._complete, submission_id, {
            "score": verdict.score,
            "feedback": verdict.feedback,
            "confidence": verdict.confidence,
            "comparison_data": verdict.comparison.model_dump(),
        })

    async def batch_grade(self, submission_ids: List[str]) -> Dict[str, Optional[SubmissionStatus]]:
        """Grade in fixed-size concurrent groups with a pause between groups."""
        results: Dict[str, Optional[SubmissionStatus]] = {}
        for start in range(0, len(submission_ids), self.batch_size):
            group = submission_ids[start:start + self.batch_size]
            statuses = await asyncio.gather(*(self.grade_submission(sid) for sid in group))
            results.update(zip(group, statuses))
            if start + self.batch_size < len(submission_ids):
                await asyncio.sleep(self.batch_delay)
        return results

    def _claim(self, submission_id: str) -> bool:
        with session_scope(self.session_factory) as db:
            claimed = db.execute(
                update(Submission)
                .where(Submission.id == submission_id, Submission.status == SubmissionStatus.pending)
                .values(status=SubmissionStatus.processing)
            ).rowcount
        return claimed == 1

    def _load_input(self, submission_id: str) -> _GradingInput:
        with session_scope(self.session_factory) as db:
            submission = db.get(Submission, submission_id)
            if submission is None:
                raise _GradingAborted("submission no longer exists")
            question = submission.question
            if question.base_example is None:
                raise _GradingAborted("no base example for this question")
            content = submission.get_content()
            if content is None:
                raise _GradingAborted(f"no {question.submission_type.value} content to grade")
            return _GradingInput(
                content=content.value,
                base_example=question.base_example.content,
                question=question.meta(),
                kind=question.submission_type.value,
            )

    def _finish(self, submission_id: str, values: dict) -> bool:
        with session_scope(self.session_factory) as db:
            updated = db.execute(
                update(Submission)
                .where(Submission.id == submission_id, Submission.status == SubmissionStatus.processing)
                .values(processed_at=utcnow(), **values)
            ).rowcount
        return updated == 1

    def _complete(self, submission_id: str, verdict: dict) -> Optional[SubmissionStatus]:
        if not self._finish(submission_id, dict(verdict, status=SubmissionStatus.completed)):
            logger.warning(f"Submission {submission_id} left processing before its verdict was stored")
            return None
        logger.info(f"Submission {submission_id} completed with score {verdict['score']}")
        return SubmissionStatus.completed

    def _fail(self, submission_id: str, reason: str) -> Optional[SubmissionStatus]:
        logger.warning(f"Submission {submission_id} failed: {reason}")
        values = {
            "status": SubmissionStatus.failed,
            "feedback": f"Assessment failed: {reason}",
            "score": None,
            "confidence": None,
            "comparison_data": None,
        }
        if not self._finish(submission_id, values):
            return None
        return SubmissionStatus.failed

    def fail_interrupted(self, submission_ids: Optional[Iterable[str]] = None) -> int:
        """Fail submissions stuck in processing whose grading job is gone.

        With no ids, every processing row is failed; only call it that way
        while no worker is grading.
        """
        query = update(Submission).where(Submission.status == SubmissionStatus.processing)
        if submission_ids is not None:
            ids = list(submission_ids)
            if not ids:
                return 0
            query = query.where(Submission.id.in_(ids))
        with session_scope(self.session_factory) as db:
            failed = db.execute(query.values(
                status=SubmissionStatus.failed,
                feedback=f"Assessment failed: {INTERRUPTED}",
                score=None,
                confidence=None,
                comparison_data=None,
                processed_at=utcnow(),
            )).rowcount
        if failed:
            logger.warning(f"Marked {failed} submission(s) failed: {INTERRUPTED}")
        return failed

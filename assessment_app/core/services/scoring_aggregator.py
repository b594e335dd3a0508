"""Service turning recorded responses into scores and immutable reports."""

from __future__ import annotations

import logging
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from functools import partial
from uuid import uuid4

from assessment_app.constants.assessment_constants import (
    IMAGE_POSITION_LABELS,
    STORE_CALL_TIMEOUT_SECONDS,
)
from assessment_app.core.errors import (
    AssessmentError,
    ContentNotFound,
    PersistenceFailure,
    StoreCallTimedOut,
)
from assessment_app.core.models import (
    ImageSnapshot,
    Response,
    ResponseSnapshot,
    ScoreReport,
)
from assessment_app.core.services.content_repository import ContentRepository
from assessment_app.core.services.response_store import ResponseStore
from assessment_app.core.services.score_store import ScoreStore
from assessment_app.utils.keyed_locks import KeyedLocks
from assessment_app.utils.timeouts import call_with_timeout

logger = logging.getLogger(__name__)


class ScoringAggregator:
    """Recomputes a patient's score from the Response Store and snapshots it."""

    def __init__(
        self,
        content: ContentRepository,
        responses: ResponseStore,
        scores: ScoreStore,
        timeout_seconds: float | None = STORE_CALL_TIMEOUT_SECONDS,
    ) -> None:
        self._content = content
        self._responses = responses
        self._scores = scores
        self._timeout = timeout_seconds
        self._patient_locks = KeyedLocks()
        self._last_taken_at: dict[int, datetime] = {}

    def recompute(self, patient_id: int) -> ScoreReport:
        """Count correct responses, overwrite Patient.score and append a report.

        Calls for the same patient are serialized. The score and the report are
        committed together or not at all. When the commit times out its outcome is
        unknown: the patient stays locked until the abandoned commit settles, and a
        late success is logged and kept in the report history.
        """
        if not self._patient_locks.acquire(patient_id, timeout=self._timeout):
            raise PersistenceFailure(f"An earlier score commit for patient {patient_id} is still in flight.")
        report = None
        pending = None
        try:
            responses = self._call(self._responses.list_responses, patient_id)
            score = sum(1 for response in responses if response.is_correct)
            detail = tuple(self._snapshot(response) for response in responses)
            report = ScoreReport(
                id=uuid4().hex,
                patient_id=patient_id,
                score=score,
                taken_at=self._next_timestamp(patient_id),
                detail=detail,
            )
            self._call(self._scores.commit_score, patient_id, report)
            self._last_taken_at[patient_id] = report.taken_at
        except StoreCallTimedOut as exc:
            pending = exc.pending
            raise
        finally:
            if pending is None:
                self._patient_locks.release(patient_id)
            else:
                pending.add_done_callback(partial(self._settle_abandoned_call, patient_id, report))
        logger.info("Committed score report %s for patient %s: score=%d", report.id, patient_id, score)
        return report

    def list_reports(
        self,
        patient_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[ScoreReport]:
        """Reports for ``patient_id`` within the inclusive window, newest first."""
        return self._call(
            self._scores.list_reports,
            patient_id,
            _as_utc(start) if start else None,
            _as_utc(end) if end else None,
        )

    def get_report(self, report_id: str) -> ScoreReport:
        return self._call(self._scores.get_report, report_id)

    def _snapshot(self, response: Response) -> ResponseSnapshot:
        try:
            question, screen = self._call(self._content.get_question, response.question_id)
        except ContentNotFound:
            logger.warning(
                "Question %s no longer exists; snapshotting response without content.",
                response.question_id,
            )
            return ResponseSnapshot(
                question_id=response.question_id,
                question_text=None,
                selected_image_id=response.selected_image_id,
                answer_image_id=None,
                is_correct=response.is_correct,
            )
        images = tuple(
            ImageSnapshot(
                image_id=image.id,
                url=image.url,
                label=IMAGE_POSITION_LABELS[image.position]
                if image.position < len(IMAGE_POSITION_LABELS)
                else str(image.position + 1),
            )
            for image in sorted(screen.images, key=lambda image: image.position)
        )
        answer_key_resolved = question.answer_image_id in screen.image_ids()
        if not answer_key_resolved:
            logger.error(
                "Answer key %s of question %s is not an image of screen %s; flagging it in the report.",
                question.answer_image_id,
                question.id,
                screen.id,
            )
        return ResponseSnapshot(
            question_id=question.id,
            question_text=question.text,
            selected_image_id=response.selected_image_id,
            answer_image_id=question.answer_image_id,
            is_correct=response.is_correct,
            options=tuple(option.text for option in question.options),
            images=images,
            answer_key_resolved=answer_key_resolved,
        )

    def _settle_abandoned_call(self, patient_id: int, report: ScoreReport | None, future: Future) -> None:
        # Runs once a timed-out call finally settles; the patient lock is still held.
        try:
            if report is not None and not future.cancelled() and future.exception() is None:
                self._last_taken_at[patient_id] = report.taken_at
                logger.warning(
                    "Score report %s for patient %s was committed after its call timed out.",
                    report.id,
                    patient_id,
                )
        finally:
            self._patient_locks.release(patient_id)

    def _call(self, func, *args):
        try:
            return call_with_timeout(func, *args, timeout=self._timeout)
        except AssessmentError:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"Score store call {func.__name__} failed.") from exc

    def _next_timestamp(self, patient_id: int) -> datetime:
        # Strictly increasing per patient so consecutive reports stay distinguishable.
        now = datetime.now(timezone.utc)
        previous = self._last_taken_at.get(patient_id)
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        return now


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

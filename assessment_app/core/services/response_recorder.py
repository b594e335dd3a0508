"""Service validating and persisting a subject's answers."""

from __future__ import annotations

import logging

from assessment_app.constants.assessment_constants import STORE_CALL_TIMEOUT_SECONDS
from assessment_app.core.errors import (
    AssessmentError,
    ContentNotFound,
    InvalidSelection,
    PersistenceFailure,
    StoreCallTimedOut,
)
from assessment_app.core.models import Response
from assessment_app.core.services.content_repository import ContentRepository
from assessment_app.core.services.response_store import ResponseStore
from assessment_app.utils.keyed_locks import KeyedLocks
from assessment_app.utils.timeouts import call_with_timeout

logger = logging.getLogger(__name__)


class ResponseRecorder:
    """Computes correctness against the answer key and upserts one row per question."""

    def __init__(
        self,
        content: ContentRepository,
        store: ResponseStore,
        timeout_seconds: float | None = STORE_CALL_TIMEOUT_SECONDS,
    ) -> None:
        self._content = content
        self._store = store
        self._timeout = timeout_seconds
        self._key_locks = KeyedLocks()

    def record(self, patient_id: int, question_id: int, selected_image_id: int) -> Response:
        """Persist the selection for (patient, question); the last call wins.

        Raises:
            ContentNotFound: the question is unknown or its answer key does not
                resolve to an image of its own screen.
            InvalidSelection: the selected image is not on the question's screen.
            PersistenceFailure: the store failed or timed out, or an earlier write
                for the same key is still in flight.
        """
        question, screen = call_with_timeout(
            self._content.get_question, question_id, timeout=self._timeout
        )
        screen_images = screen.image_ids()
        if question.answer_image_id not in screen_images:
            raise ContentNotFound(
                f"Answer key {question.answer_image_id} of question {question_id} "
                f"is not an image of screen {screen.id}."
            )
        if selected_image_id not in screen_images:
            raise InvalidSelection(
                f"Image {selected_image_id} is not shown on screen {screen.id}."
            )

        is_correct = selected_image_id == question.answer_image_id
        key = (patient_id, question_id)
        # Writes for one key are serialized, including abandoned ones that are still
        # running, so an earlier selection can never land after a later one.
        if not self._key_locks.acquire(key, timeout=self._timeout):
            raise PersistenceFailure(
                f"An earlier answer of patient {patient_id} to question {question_id} is still being saved."
            )
        pending = None
        try:
            response = call_with_timeout(
                self._store.upsert_response,
                patient_id,
                question_id,
                selected_image_id,
                is_correct,
                timeout=self._timeout,
            )
        except StoreCallTimedOut as exc:
            pending = exc.pending
            raise
        except AssessmentError:
            raise
        except Exception as exc:
            raise PersistenceFailure(
                f"Could not save response of patient {patient_id} to question {question_id}."
            ) from exc
        finally:
            if pending is None:
                self._key_locks.release(key)
            else:
                pending.add_done_callback(lambda _future: self._key_locks.release(key))
        logger.debug(
            "Recorded patient=%s question=%s image=%s correct=%s",
            patient_id,
            question_id,
            selected_image_id,
            is_correct,
        )
        return response

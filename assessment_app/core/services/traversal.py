"""State machine walking a subject through levels, screens and questions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Callable

from assessment_app.constants.assessment_constants import (
    AUTO_ADVANCE_DELAY_MS,
    IMAGE_POSITION_LABELS,
    IMAGE_POSITION_NAMES,
    NARRATION_LANGUAGE,
    STORE_CALL_TIMEOUT_SECONDS,
    level_display_name,
)
from assessment_app.core.errors import (
    ContentNotFound,
    InvalidSelection,
    InvalidTransition,
    PersistenceFailure,
)
from assessment_app.core.models import Cursor, Image, LevelContent, Question, Response, Screen
from assessment_app.core.services.content_repository import ContentRepository
from assessment_app.core.services.narration import Narrator, SilentNarrator, narrate_safely
from assessment_app.core.services.response_recorder import ResponseRecorder
from assessment_app.core.services.scheduler import ScheduledCall, Scheduler, ThreadingScheduler
from assessment_app.utils.timeouts import call_with_timeout

logger = logging.getLogger(__name__)


class TraversalState(Enum):
    LOADING = "loading"
    PRESENTING = "presenting"
    ENDED = "ended"


@dataclass(slots=True)
class _PendingAdvance:
    """Auto-advance issued for ``cursor``; identity is the cancellation token."""

    cursor: Cursor
    handle: ScheduledCall | None = None


class TraversalStateMachine:
    """Owns the cursor, the per-screen answer buffer and the single pending auto-advance.

    All transitions run under one re-entrant lock, so the machine reacts to one event
    at a time whether it comes from the subject, a navigation command or a timer.
    Every transition cancels the pending auto-advance before touching the cursor.
    """

    def __init__(
        self,
        content: ContentRepository,
        patient_id: int | None = None,
        recorder: ResponseRecorder | None = None,
        narrator: Narrator | None = None,
        scheduler: Scheduler | None = None,
        auto_advance_delay_ms: int = AUTO_ADVANCE_DELAY_MS,
        narration_language: str = NARRATION_LANGUAGE,
        timeout_seconds: float | None = STORE_CALL_TIMEOUT_SECONDS,
        on_end: Callable[[], None] | None = None,
        on_exit: Callable[[], None] | None = None,
    ) -> None:
        self._content = content
        self._patient_id = patient_id
        self._recorder = recorder
        self._narrator: Narrator = narrator or SilentNarrator()
        self._scheduler: Scheduler = scheduler or ThreadingScheduler()
        self._delay_seconds = auto_advance_delay_ms / 1000
        self._language = narration_language
        self._timeout = timeout_seconds
        self._on_end = on_end
        self._on_exit = on_exit

        self._lock = RLock()
        self._state = TraversalState.LOADING
        self._started = False
        self._level_ordinals: list[int] = []
        self._level: LevelContent | None = None
        self._screen_index: int = 0
        self._question_index: int = 0
        self._selected: dict[int, int] = {}
        self._pending: _PendingAdvance | None = None

    # --- Lifecycle ---

    def start(self) -> None:
        """Load the level index once and enter the first level."""
        with self._lock:
            if self._started:
                raise InvalidTransition("Traversal has already been started.")
            self._started = True
            self._restart_from_first_level()

    def retake(self) -> None:
        """Reset to the first level with an empty answer buffer."""
        with self._lock:
            self._cancel_pending()
            self._started = True
            self._selected.clear()
            logger.info("Retake requested for patient %s", self._patient_id)
            self._restart_from_first_level()

    def exit(self) -> None:
        """Force the Ended state from anywhere and notify the owner."""
        with self._lock:
            self._cancel_pending()
            self._state = TraversalState.ENDED
            logger.info("Patient %s exited the assessment", self._patient_id)
            self._notify(self._on_exit, "on_exit")

    # --- Queries ---

    @property
    def state(self) -> TraversalState:
        with self._lock:
            return self._state

    def is_ended(self) -> bool:
        with self._lock:
            return self._state is TraversalState.ENDED

    def current_cursor(self) -> Cursor | None:
        with self._lock:
            if self._state is not TraversalState.PRESENTING:
                return None
            return self._cursor()

    def current_question(self) -> Question | None:
        with self._lock:
            if self._state is not TraversalState.PRESENTING:
                return None
            return self._current_question()

    def current_prompt(self) -> str | None:
        question = self.current_question()
        return question.text if question else None

    def current_images(self) -> list[Image]:
        with self._lock:
            if self._state is not TraversalState.PRESENTING:
                return []
            return list(self._current_screen().images)

    def is_answered(self) -> bool:
        with self._lock:
            if self._state is not TraversalState.PRESENTING:
                return False
            return self._current_question().id in self._selected

    def has_pending_advance(self) -> bool:
        with self._lock:
            return self._pending is not None

    def snapshot(self) -> dict[str, object]:
        """Plain view of the traversal for presentation clients."""
        with self._lock:
            if self._state is not TraversalState.PRESENTING:
                return {"state": self._state.value, "ended": self._state is TraversalState.ENDED}
            screen = self._current_screen()
            question = self._current_question()
            ordinal = self._level.level.ordinal
            return {
                "state": self._state.value,
                "ended": False,
                "level": ordinal,
                "level_name": level_display_name(ordinal),
                "screen_number": screen.screen_number,
                "question_number": self._question_index + 1,
                "question_id": question.id,
                "prompt": question.text,
                "images": [
                    {
                        "id": image.id,
                        "url": image.url,
                        "label": IMAGE_POSITION_LABELS[image.position],
                        "position": IMAGE_POSITION_NAMES[image.position],
                    }
                    for image in screen.images
                ],
                "selected_image_id": self._selected.get(question.id),
                "answered": question.id in self._selected,
                "can_go_back": self._question_index > 0
                or self._previous_presentable_screen(self._screen_index) is not None,
            }

    # --- Subject events ---

    def select(self, image_id: int) -> Response | None:
        """Register the subject's pick for the current question and schedule auto-advance.

        A persistence failure is logged and the selection stays buffered; the subject
        can re-select to retry. A content defect in the answer key propagates.
        """
        with self._lock:
            self._require_presenting()
            screen = self._current_screen()
            question = self._current_question()
            if image_id not in screen.image_ids():
                raise InvalidSelection(f"Image {image_id} is not shown on the current screen.")

            response = None
            if self._recorder is not None and self._patient_id is not None:
                try:
                    response = self._recorder.record(self._patient_id, question.id, image_id)
                except PersistenceFailure:
                    logger.warning(
                        "Could not save answer of patient %s to question %s",
                        self._patient_id,
                        question.id,
                        exc_info=True,
                    )
            self._selected[question.id] = image_id
            self._schedule_advance()
            return response

    def repeat_prompt(self) -> None:
        with self._lock:
            self._require_presenting()
            narrate_safely(self._narrator, self._current_question().text, self._language)

    # --- Navigation ---

    def next(self) -> None:
        """Manual "Next": same rule as auto-advance, only once the question is answered."""
        with self._lock:
            self._require_presenting()
            if self._current_question().id not in self._selected:
                raise InvalidTransition("The current question has not been answered yet.")
            self._cancel_pending()
            self._advance()

    def previous(self) -> None:
        """Step back one question, crossing into the previous presentable screen if needed."""
        with self._lock:
            self._require_presenting()
            if self._question_index > 0:
                self._cancel_pending()
                self._question_index -= 1
            else:
                target = self._previous_presentable_screen(self._screen_index)
                if target is None:
                    raise InvalidTransition("Already at the first question of this level.")
                self._cancel_pending()
                self._screen_index = target
                self._question_index = len(self._level.screens[target].questions) - 1
            self._selected.clear()
            self._present()

    def previous_level(self) -> None:
        """Go back one level and re-enter it through the normal level validation."""
        with self._lock:
            self._require_presenting()
            current = self._level.level.ordinal
            earlier = [ordinal for ordinal in self._level_ordinals if ordinal < current]
            if not earlier:
                raise InvalidTransition("Already at the first level.")
            self._cancel_pending()
            self._selected.clear()
            self._enter_level(earlier[-1])

    # --- Internals ---

    def _restart_from_first_level(self) -> None:
        self._level = None
        self._state = TraversalState.LOADING
        try:
            levels = call_with_timeout(self._content.list_levels, timeout=self._timeout)
        except Exception:
            logger.warning("Could not load the level index; ending traversal.", exc_info=True)
            self._level_ordinals = []
            self._end()
            return
        self._level_ordinals = sorted(level.ordinal for level in levels)
        if not self._level_ordinals:
            self._end()
            return
        self._enter_level(self._level_ordinals[0])

    def _enter_level(self, ordinal: int) -> None:
        """Present the first level at or after ``ordinal`` that has a question.

        Bounded by the level index: missing or empty levels are skipped, any other
        fetch failure ends the traversal.
        """
        self._state = TraversalState.LOADING
        for candidate in (value for value in self._level_ordinals if value >= ordinal):
            try:
                content = call_with_timeout(self._content.get_level, candidate, timeout=self._timeout)
            except ContentNotFound:
                logger.warning("Level %s could not be found; skipping it.", candidate)
                continue
            except Exception:
                logger.warning("Fetching level %s failed; ending traversal.", candidate, exc_info=True)
                self._end()
                return
            first = self._next_presentable_screen(content.screens, 0)
            if first is None:
                logger.info("Level %s has no questions; skipping it.", candidate)
                continue
            self._level = content
            self._screen_index = first
            self._question_index = 0
            logger.info("Patient %s entered level %s", self._patient_id, candidate)
            self._present()
            return
        self._end()

    def _advance(self) -> None:
        screen = self._current_screen()
        if self._question_index < len(screen.questions) - 1:
            self._question_index += 1
            self._present()
            return
        following = self._next_presentable_screen(self._level.screens, self._screen_index + 1)
        if following is not None:
            self._screen_index = following
            self._question_index = 0
            self._present()
            return
        self._selected.clear()
        self._enter_level(self._level.level.ordinal + 1)

    def _present(self) -> None:
        self._state = TraversalState.PRESENTING
        narrate_safely(self._narrator, self._current_question().text, self._language)

    def _end(self) -> None:
        self._cancel_pending()
        self._state = TraversalState.ENDED
        logger.info("Traversal ended for patient %s", self._patient_id)
        self._notify(self._on_end, "on_end")

    def _schedule_advance(self) -> None:
        self._cancel_pending()
        pending = _PendingAdvance(cursor=self._cursor())
        self._pending = pending
        pending.handle = self._scheduler.schedule(
            self._delay_seconds, lambda: self._run_pending_advance(pending)
        )

    def _run_pending_advance(self, pending: _PendingAdvance) -> None:
        with self._lock:
            if self._pending is not pending:
                return
            self._pending = None
            if self._state is not TraversalState.PRESENTING or self._cursor() != pending.cursor:
                return
            if self._current_question().id not in self._selected:
                return
            self._advance()

    def _cancel_pending(self) -> None:
        pending, self._pending = self._pending, None
        if pending is not None and pending.handle is not None:
            pending.handle.cancel()

    def _require_presenting(self) -> None:
        if self._state is not TraversalState.PRESENTING:
            raise InvalidTransition(f"No question is being presented (state: {self._state.value}).")

    def _cursor(self) -> Cursor:
        ordinal = self._level.level.ordinal if self._level else 0
        return Cursor(level=ordinal, screen_index=self._screen_index, question_index=self._question_index)

    def _current_screen(self) -> Screen:
        return self._level.screens[self._screen_index]

    def _current_question(self) -> Question:
        return self._current_screen().questions[self._question_index]

    def _previous_presentable_screen(self, before: int) -> int | None:
        screens = self._level.screens if self._level else []
        for index in range(min(before, len(screens)) - 1, -1, -1):
            if screens[index].has_questions:
                return index
        return None

    @staticmethod
    def _next_presentable_screen(screens: list[Screen], start: int) -> int | None:
        for index in range(start, len(screens)):
            if screens[index].has_questions:
                return index
        return None

    def _notify(self, callback: Callable[[], None] | None, name: str) -> None:
        if callback is None:
            return
        try:
            callback()
        except Exception:
            logger.exception("Traversal %s callback failed", name)

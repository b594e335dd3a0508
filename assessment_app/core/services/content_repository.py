"""Service holding the catalog of levels, screens, images and questions."""

from __future__ import annotations

import copy
from threading import Lock
from typing import Protocol

from assessment_app.constants.assessment_constants import MAX_IMAGES_PER_SCREEN
from assessment_app.core.errors import ContentNotFound
from assessment_app.core.models import (
    Image,
    LevelContent,
    Question,
    QuestionOption,
    Screen,
    TestLevel,
)


class ContentRepository(Protocol):
    """Read side of the catalog consumed by the traversal and scoring services."""

    def list_levels(self) -> list[TestLevel]:
        """Return every level ordered by ordinal."""
        ...

    def get_level(self, ordinal: int) -> LevelContent:
        """Return a level with its screens ordered by screen number.

        Raises ``ContentNotFound`` when no level carries ``ordinal``.
        """
        ...

    def get_question(self, question_id: int) -> tuple[Question, Screen]:
        """Return a question and the screen it belongs to, or raise ``ContentNotFound``."""
        ...


class InMemoryContentRepository:
    """Manages the lifecycle and storage of assessment content."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._levels: dict[int, TestLevel] = {}
        self._screens: dict[int, Screen] = {}
        self._questions: dict[int, Question] = {}
        self._image_counter: int = 0
        self._level_counter: int = 0
        self._screen_counter: int = 0
        self._question_counter: int = 0
        self._option_counter: int = 0

    # --- Read side ---

    def list_levels(self) -> list[TestLevel]:
        with self._lock:
            return [
                TestLevel(id=level.id, ordinal=level.ordinal)
                for level in sorted(self._levels.values(), key=lambda lvl: lvl.ordinal)
            ]

    def get_level(self, ordinal: int) -> LevelContent:
        with self._lock:
            level = self._level_by_ordinal(ordinal)
            screens = sorted(
                (screen for screen in self._screens.values() if screen.level_id == level.id),
                key=lambda screen: screen.screen_number,
            )
            # Deep copies keep callers from mutating the catalog mid-session.
            return LevelContent(
                level=TestLevel(id=level.id, ordinal=level.ordinal),
                screens=[copy.deepcopy(screen) for screen in screens],
            )

    def get_question(self, question_id: int) -> tuple[Question, Screen]:
        with self._lock:
            question = self._questions.get(question_id)
            if question is None:
                raise ContentNotFound(f"Question {question_id} does not exist.")
            screen = self._screens.get(question.screen_id)
            if screen is None:
                raise ContentNotFound(f"Screen {question.screen_id} of question {question_id} does not exist.")
            return copy.deepcopy(question), copy.deepcopy(screen)

    # --- Authoring ---

    def add_level(self, ordinal: int) -> TestLevel:
        if not isinstance(ordinal, int) or ordinal <= 0:
            raise ValueError("Level ordinal must be a positive integer.")
        with self._lock:
            if any(level.ordinal == ordinal for level in self._levels.values()):
                raise ValueError(f"Level {ordinal} already exists.")
            self._level_counter += 1
            level = TestLevel(id=self._level_counter, ordinal=ordinal)
            self._levels[level.id] = level
            return level

    def add_screen(self, level_ordinal: int, screen_number: int) -> Screen:
        with self._lock:
            level = self._level_by_ordinal(level_ordinal)
            if any(
                screen.level_id == level.id and screen.screen_number == screen_number
                for screen in self._screens.values()
            ):
                raise ValueError(f"Screen {screen_number} already exists in level {level_ordinal}.")
            self._screen_counter += 1
            screen = Screen(id=self._screen_counter, level_id=level.id, screen_number=screen_number)
            self._screens[screen.id] = screen
            return screen

    def add_image(self, screen_id: int, url: str) -> Image:
        cleaned_url = url.strip()
        if not cleaned_url:
            raise ValueError("Image URL must not be empty.")
        with self._lock:
            screen = self._screen_by_id(screen_id)
            if len(screen.images) >= MAX_IMAGES_PER_SCREEN:
                raise ValueError(f"A screen holds at most {MAX_IMAGES_PER_SCREEN} images.")
            self._image_counter += 1
            image = Image(
                id=self._image_counter,
                screen_id=screen.id,
                url=cleaned_url,
                position=len(screen.images),
            )
            screen.images.append(image)
            return image

    def add_question(
        self,
        screen_id: int,
        text: str,
        answer_image_id: int,
        options: list[str] | None = None,
    ) -> Question:
        cleaned_text = text.strip()
        if not cleaned_text:
            raise ValueError("Question text must not be empty.")
        with self._lock:
            screen = self._screen_by_id(screen_id)
            if answer_image_id not in screen.image_ids():
                raise ContentNotFound(
                    f"Answer image {answer_image_id} is not one of screen {screen_id}'s images."
                )
            self._question_counter += 1
            question = Question(
                id=self._question_counter,
                screen_id=screen.id,
                text=cleaned_text,
                answer_image_id=answer_image_id,
                options=[self._prepare_option(option) for option in options or []],
            )
            screen.questions.append(question)
            self._questions[question.id] = question
            return question

    def update_question_text(self, question_id: int, text: str) -> None:
        cleaned_text = text.strip()
        if not cleaned_text:
            raise ValueError("Question text must not be empty.")
        with self._lock:
            question = self._questions.get(question_id)
            if question is None:
                raise ContentNotFound(f"Question {question_id} does not exist.")
            question.text = cleaned_text

    def delete_question(self, question_id: int) -> None:
        with self._lock:
            question = self._questions.pop(question_id, None)
            if question is None:
                raise ContentNotFound(f"Question {question_id} does not exist.")
            screen = self._screens[question.screen_id]
            screen.questions = [q for q in screen.questions if q.id != question_id]

    def _prepare_option(self, text: str) -> QuestionOption:
        cleaned = text.strip()
        if not cleaned:
            raise ValueError("Option text cannot be empty.")
        self._option_counter += 1
        return QuestionOption(id=self._option_counter, text=cleaned)

    def _level_by_ordinal(self, ordinal: int) -> TestLevel:
        level = next((lvl for lvl in self._levels.values() if lvl.ordinal == ordinal), None)
        if level is None:
            raise ContentNotFound(f"Level {ordinal} does not exist.")
        return level

    def _screen_by_id(self, screen_id: int) -> Screen:
        screen = self._screens.get(screen_id)
        if screen is None:
            raise ContentNotFound(f"Screen {screen_id} does not exist.")
        return screen

"""Shared fixtures: deterministic timers, a recording narrator and catalog builders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import pytest

from assessment_app.core.services.content_repository import InMemoryContentRepository
from assessment_app.core.services.response_recorder import ResponseRecorder
from assessment_app.core.services.response_store import InMemoryResponseStore
from assessment_app.core.services.score_store import InMemoryScoreStore


@dataclass
class ManualCall:
    delay_seconds: float
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.callback()


@dataclass
class ManualScheduler:
    """Scheduler whose timers only fire when the test says so."""

    calls: list[ManualCall] = field(default_factory=list)

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> ManualCall:
        call = ManualCall(delay_seconds, callback)
        self.calls.append(call)
        return call

    def pending(self) -> list[ManualCall]:
        return [call for call in self.calls if not call.cancelled and not call.fired]

    def fire_all(self) -> int:
        pending = self.pending()
        for call in pending:
            call.fire()
        return len(pending)


@dataclass
class RecordingNarrator:
    spoken: list[tuple[str, str]] = field(default_factory=list)

    def speak(self, text: str, language: str) -> None:
        self.spoken.append((text, language))

    @property
    def texts(self) -> list[str]:
        return [text for text, _language in self.spoken]


def build_repository(
    levels: dict[int, list[list[int]]],
    images_per_screen: int = 2,
) -> InMemoryContentRepository:
    """Build a catalog from ``{ordinal: [screen, ...]}``.

    Each screen is the list of answer positions of its questions, so ``[]`` is an
    inert screen. Prompts read ``L<ordinal> S<screen> Q<n>``.
    """
    repository = InMemoryContentRepository()
    for ordinal, screens in levels.items():
        repository.add_level(ordinal)
        for number, answers in enumerate(screens, start=1):
            screen = repository.add_screen(ordinal, number)
            images = [
                repository.add_image(screen.id, f"https://img.test/{ordinal}/{number}/{index}.png")
                for index in range(images_per_screen)
            ]
            for question_number, position in enumerate(answers, start=1):
                repository.add_question(
                    screen.id,
                    f"L{ordinal} S{number} Q{question_number}",
                    images[position].id,
                )
    return repository


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def narrator() -> RecordingNarrator:
    return RecordingNarrator()


@pytest.fixture
def response_store() -> InMemoryResponseStore:
    return InMemoryResponseStore()


@pytest.fixture
def score_store() -> InMemoryScoreStore:
    store = InMemoryScoreStore()
    store.register_patient(1, "Asha")
    return store


@pytest.fixture
def single_question_repository() -> InMemoryContentRepository:
    # Level 1: one screen with images {A, B}; the question's answer is A.
    return build_repository({1: [[0]]})


@pytest.fixture
def make_recorder(response_store):
    def factory(repository: InMemoryContentRepository) -> ResponseRecorder:
        return ResponseRecorder(repository, response_store, timeout_seconds=None)

    return factory

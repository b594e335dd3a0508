"""Domain models for the picture assessment."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class TestLevel:
    """An ordered stage of the assessment."""

    __test__ = False  # keep pytest from collecting this as a test class

    id: int
    ordinal: int


@dataclass(slots=True)
class Image:
    """Stimulus image shown on a screen; position is the presentation order (0..3)."""

    id: int
    screen_id: int
    url: str
    position: int = 0


@dataclass(slots=True)
class QuestionOption:
    """Word option authored against a question."""

    id: int
    text: str


@dataclass(slots=True)
class Question:
    """Prompt tied to a screen, with the image that answers it."""

    id: int
    screen_id: int
    text: str
    answer_image_id: int
    options: list[QuestionOption] = field(default_factory=list)


@dataclass(slots=True)
class Screen:
    """Single presentation unit holding up to four images and ordered questions."""

    id: int
    level_id: int
    screen_number: int
    images: list[Image] = field(default_factory=list)
    questions: list[Question] = field(default_factory=list)

    @property
    def has_questions(self) -> bool:
        return bool(self.questions)

    def image_ids(self) -> set[int]:
        return {image.id for image in self.images}


@dataclass(slots=True)
class LevelContent:
    """A level together with its screens ordered by screen number."""

    level: TestLevel
    screens: list[Screen] = field(default_factory=list)

    @property
    def has_presentable_screens(self) -> bool:
        return any(screen.has_questions for screen in self.screens)


@dataclass(slots=True)
class Response:
    """A patient's recorded selection for one question."""

    patient_id: int
    question_id: int
    selected_image_id: int
    is_correct: bool
    answered_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ImageSnapshot:
    image_id: int
    url: str
    label: str


@dataclass(frozen=True, slots=True)
class ResponseSnapshot:
    """Response joined with the content it referred to at report time."""

    question_id: int
    question_text: str | None
    selected_image_id: int
    answer_image_id: int | None
    is_correct: bool
    options: tuple[str, ...] = ()
    images: tuple[ImageSnapshot, ...] = ()
    answer_key_resolved: bool = True


@dataclass(frozen=True, slots=True)
class ScoreReport:
    """Immutable, timestamped snapshot of a patient's score."""

    id: str
    patient_id: int
    score: int
    taken_at: datetime
    detail: tuple[ResponseSnapshot, ...] = ()


@dataclass(slots=True)
class Patient:
    """Test subject with the running score written by the scoring aggregator."""

    id: int
    display_name: str
    score: int = 0


@dataclass(frozen=True, slots=True)
class Cursor:
    """Position of the traversal: level ordinal, screen index, question index."""

    level: int
    screen_index: int
    question_index: int

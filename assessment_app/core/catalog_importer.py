"""Utilities for importing an assessment catalog from a human-friendly text file.

File format (blank lines are ignored, ``#`` starts a comment line):

    LEVEL: 1
    SCREEN: 1
    IMAGE: https://cdn.example.org/cat.png
    IMAGE: https://cdn.example.org/dog.png
    Q: Show me the **cat**
    ANSWER: A
    OPTIONS: cat | kitten        (optional word options)
    Q: Show me the dog
    ANSWER: B

    SCREEN: 2
    ...
    LEVEL: 2
    ...

IMAGE lines are positional: the first is A (top-left), then B, C, D. ANSWER names
the image on the same screen that answers the question. Text after ``Q:`` may
continue on the following lines until the next marker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from assessment_app.constants.assessment_constants import IMAGE_POSITION_LABELS, MAX_IMAGES_PER_SCREEN
from assessment_app.core.errors import ContentNotFound
from assessment_app.core.services.content_repository import InMemoryContentRepository


class CatalogImportError(Exception):
    """Raised when a catalog definition cannot be parsed."""


@dataclass(slots=True)
class ImportedCatalog:
    """Container for the populated repository and import statistics."""

    source_path: Path | None
    repository: InMemoryContentRepository
    level_count: int
    question_count: int


@dataclass(slots=True)
class _QuestionDraft:
    text_lines: list[str]
    answer_label: str | None = None
    options: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _ScreenDraft:
    number: int
    images: list[str] = field(default_factory=list)
    questions: list[_QuestionDraft] = field(default_factory=list)


@dataclass(slots=True)
class _LevelDraft:
    ordinal: int
    screens: list[_ScreenDraft] = field(default_factory=list)


def load_catalog_from_file(
    file_path: Path,
    repository: InMemoryContentRepository | None = None,
) -> ImportedCatalog:
    text = file_path.read_text(encoding="utf-8")
    catalog = load_catalog_text(text, repository)
    catalog.source_path = file_path
    return catalog


def load_catalog_text(
    text: str,
    repository: InMemoryContentRepository | None = None,
) -> ImportedCatalog:
    levels = _parse_catalog_text(text)
    if not levels:
        raise CatalogImportError("Catalog did not contain any levels.")
    target = repository or InMemoryContentRepository()
    question_count = _populate(target, levels)
    return ImportedCatalog(
        source_path=None,
        repository=target,
        level_count=len(levels),
        question_count=question_count,
    )


def _parse_catalog_text(text: str) -> list[_LevelDraft]:
    levels: list[_LevelDraft] = []
    question: _QuestionDraft | None = None

    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        marker, _, value = line.partition(":")
        marker = marker.strip().upper()
        value = value.strip()

        if marker == "LEVEL":
            levels.append(_LevelDraft(ordinal=_parse_int(value, "LEVEL", line_number)))
            question = None
        elif marker == "SCREEN":
            level = _require(levels, "SCREEN", "LEVEL", line_number)
            level.screens.append(_ScreenDraft(number=_parse_int(value, "SCREEN", line_number)))
            question = None
        elif marker == "IMAGE":
            screen = _require(_require(levels, "IMAGE", "LEVEL", line_number).screens, "IMAGE", "SCREEN", line_number)
            if screen.questions:
                raise CatalogImportError(f"Line {line_number}: IMAGE lines must precede the screen's questions.")
            if len(screen.images) >= MAX_IMAGES_PER_SCREEN:
                raise CatalogImportError(f"Line {line_number}: a screen holds at most {MAX_IMAGES_PER_SCREEN} images.")
            if not value:
                raise CatalogImportError(f"Line {line_number}: IMAGE must include a URL.")
            screen.images.append(value)
        elif marker == "Q":
            screen = _require(_require(levels, "Q", "LEVEL", line_number).screens, "Q", "SCREEN", line_number)
            question = _QuestionDraft(text_lines=[value])
            screen.questions.append(question)
        elif marker == "ANSWER":
            if question is None:
                raise CatalogImportError(f"Line {line_number}: ANSWER must follow a question.")
            question.answer_label = value.upper()
        elif marker == "OPTIONS":
            if question is None:
                raise CatalogImportError(f"Line {line_number}: OPTIONS must follow a question.")
            question.options = [option.strip() for option in value.split("|") if option.strip()]
        elif question is not None and question.answer_label is None:
            question.text_lines.append(line)
        else:
            raise CatalogImportError(f"Line {line_number}: encountered text outside of a known section: '{line}'.")

    return levels


def _populate(repository: InMemoryContentRepository, levels: list[_LevelDraft]) -> int:
    question_count = 0
    for level in levels:
        try:
            repository.add_level(level.ordinal)
        except ValueError as exc:
            raise CatalogImportError(str(exc)) from exc
        for screen_draft in level.screens:
            try:
                screen = repository.add_screen(level.ordinal, screen_draft.number)
                image_ids = [repository.add_image(screen.id, url).id for url in screen_draft.images]
            except ValueError as exc:
                raise CatalogImportError(str(exc)) from exc
            for question in screen_draft.questions:
                text = "\n".join(question.text_lines).strip()
                if not text:
                    raise CatalogImportError(f"Level {level.ordinal} screen {screen_draft.number}: question text missing.")
                if question.answer_label is None:
                    raise CatalogImportError(f"Question '{text}' has no ANSWER.")
                if question.answer_label not in IMAGE_POSITION_LABELS:
                    raise CatalogImportError(
                        f"ANSWER of '{text}' must be one of {', '.join(IMAGE_POSITION_LABELS)}."
                    )
                position = IMAGE_POSITION_LABELS.index(question.answer_label)
                if position >= len(image_ids):
                    raise CatalogImportError(
                        f"ANSWER {question.answer_label} of '{text}' refers to a missing image."
                    )
                try:
                    repository.add_question(screen.id, text, image_ids[position], question.options)
                except (ValueError, ContentNotFound) as exc:
                    raise CatalogImportError(str(exc)) from exc
                question_count += 1
    return question_count


def _require(items: list, marker: str, parent: str, line_number: int):
    if not items:
        raise CatalogImportError(f"Line {line_number}: {marker} must appear inside a {parent} section.")
    return items[-1]


def _parse_int(raw_value: str, marker: str, line_number: int) -> int:
    try:
        parsed = int(raw_value)
    except ValueError as exc:
        raise CatalogImportError(f"Line {line_number}: {marker} must be an integer.") from exc
    if parsed <= 0:
        raise CatalogImportError(f"Line {line_number}: {marker} must be a positive integer.")
    return parsed

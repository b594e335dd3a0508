from __future__ import annotations

from pathlib import Path

import pytest

from assessment_app.constants.assessment_constants import DEFAULT_CATALOG_PATH
from assessment_app.core.catalog_importer import (
    CatalogImportError,
    load_catalog_from_file,
    load_catalog_text,
)


def test_sample_catalog_loads():
    catalog = load_catalog_from_file(DEFAULT_CATALOG_PATH)

    assert catalog.source_path == DEFAULT_CATALOG_PATH
    assert catalog.level_count == 3
    assert catalog.question_count == 6
    level_one = catalog.repository.get_level(1)
    assert [len(screen.questions) for screen in level_one.screens] == [2, 1]
    dog = level_one.screens[0].questions[1]
    assert dog.answer_image_id == level_one.screens[0].images[3].id
    assert [option.text for option in dog.options] == ["dog", "puppy"]


def test_multiline_prompt_and_comments(tmp_path: Path):
    source = tmp_path / "catalog.txt"
    source.write_text(
        "# comment\n"
        "LEVEL: 1\n"
        "SCREEN: 1\n"
        "IMAGE: https://img.test/a.png\n"
        "IMAGE: https://img.test/b.png\n"
        "Q: Look at the pictures.\n"
        "Which one is the *bird*?\n"
        "ANSWER: b\n",
        encoding="utf-8",
    )

    catalog = load_catalog_from_file(source)
    question = catalog.repository.get_level(1).screens[0].questions[0]

    assert question.text == "Look at the pictures.\nWhich one is the *bird*?"
    assert question.answer_image_id == catalog.repository.get_level(1).screens[0].images[1].id


def test_screens_without_questions_are_kept():
    catalog = load_catalog_text(
        "LEVEL: 1\nSCREEN: 1\nIMAGE: https://img.test/a.png\n"
        "SCREEN: 2\nIMAGE: https://img.test/b.png\nQ: Show me b\nANSWER: A\n"
    )

    screens = catalog.repository.get_level(1).screens
    assert [screen.has_questions for screen in screens] == [False, True]
    assert catalog.question_count == 1


def test_import_into_existing_repository_rejects_duplicate_levels():
    catalog = load_catalog_text("LEVEL: 1\n")
    with pytest.raises(CatalogImportError):
        load_catalog_text("LEVEL: 1\n", catalog.repository)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "SCREEN: 1\n",
        "LEVEL: one\n",
        "LEVEL: 0\n",
        "LEVEL: 1\nSCREEN: 1\nIMAGE: a\nQ: pick\n",
        "LEVEL: 1\nSCREEN: 1\nIMAGE: a\nQ: pick\nANSWER: C\n",
        "LEVEL: 1\nSCREEN: 1\nIMAGE: a\nQ: pick\nANSWER: Z\n",
        "LEVEL: 1\nSCREEN: 1\nQ: pick\nANSWER: A\nIMAGE: a\n",
        "LEVEL: 1\nSCREEN: 1\n" + "IMAGE: x\n" * 5,
        "LEVEL: 1\nANSWER: A\n",
        "LEVEL: 1\nstray text\n",
    ],
)
def test_malformed_catalogs_are_rejected(text):
    with pytest.raises(CatalogImportError):
        load_catalog_text(text)

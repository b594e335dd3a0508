from __future__ import annotations

import pytest

from assessment_app.core.errors import ContentNotFound
from assessment_app.core.services.content_repository import InMemoryContentRepository


@pytest.fixture
def repository():
    repo = InMemoryContentRepository()
    repo.add_level(2)
    repo.add_level(1)
    return repo


def test_levels_are_listed_by_ordinal(repository):
    assert [level.ordinal for level in repository.list_levels()] == [1, 2]


def test_screens_come_back_ordered_by_number(repository):
    repository.add_screen(1, 3)
    repository.add_screen(1, 1)
    repository.add_screen(1, 2)

    assert [screen.screen_number for screen in repository.get_level(1).screens] == [1, 2, 3]


def test_missing_level_raises(repository):
    with pytest.raises(ContentNotFound):
        repository.get_level(9)


def test_level_content_is_a_copy(repository):
    screen = repository.add_screen(1, 1)
    image = repository.add_image(screen.id, "https://img.test/cat.png")
    repository.add_question(screen.id, "Show me the cat", image.id)

    fetched = repository.get_level(1)
    fetched.screens[0].questions.clear()

    assert repository.get_level(1).screens[0].has_questions


def test_images_get_positions_and_are_capped(repository):
    screen = repository.add_screen(1, 1)
    positions = [repository.add_image(screen.id, f"https://img.test/{i}.png").position for i in range(4)]

    assert positions == [0, 1, 2, 3]
    with pytest.raises(ValueError):
        repository.add_image(screen.id, "https://img.test/extra.png")


def test_answer_must_be_on_the_same_screen(repository):
    first = repository.add_screen(1, 1)
    second = repository.add_screen(1, 2)
    foreign = repository.add_image(second.id, "https://img.test/dog.png")
    repository.add_image(first.id, "https://img.test/cat.png")

    with pytest.raises(ContentNotFound):
        repository.add_question(first.id, "Show me the dog", foreign.id)


def test_get_question_returns_question_and_screen(repository):
    screen = repository.add_screen(1, 1)
    image = repository.add_image(screen.id, "https://img.test/cat.png")
    question = repository.add_question(screen.id, "Show me the cat", image.id, ["cat", "kitten"])

    fetched, owner = repository.get_question(question.id)

    assert fetched.text == "Show me the cat"
    assert [option.text for option in fetched.options] == ["cat", "kitten"]
    assert owner.id == screen.id
    assert owner.image_ids() == {image.id}


def test_duplicates_and_bad_ordinals_are_rejected(repository):
    with pytest.raises(ValueError):
        repository.add_level(1)
    with pytest.raises(ValueError):
        repository.add_level(0)
    repository.add_screen(1, 1)
    with pytest.raises(ValueError):
        repository.add_screen(1, 1)


def test_delete_question_removes_it_from_its_screen(repository):
    screen = repository.add_screen(1, 1)
    image = repository.add_image(screen.id, "https://img.test/cat.png")
    question = repository.add_question(screen.id, "Show me the cat", image.id)

    repository.delete_question(question.id)

    assert not repository.get_level(1).screens[0].has_questions
    assert not repository.get_level(1).has_presentable_screens
    with pytest.raises(ContentNotFound):
        repository.get_question(question.id)

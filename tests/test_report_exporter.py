from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from assessment_app.core.models import ImageSnapshot, ResponseSnapshot, ScoreReport
from assessment_app.core.report_exporter import save_reports_to_file

_IMAGES = (
    ImageSnapshot(image_id=10, url="https://img.test/apple.png", label="A"),
    ImageSnapshot(image_id=11, url="https://img.test/ball.png", label="B"),
)


def _report(report_id: str, score: int, detail: tuple[ResponseSnapshot, ...]) -> ScoreReport:
    return ScoreReport(
        id=report_id,
        patient_id=1,
        score=score,
        taken_at=datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
        detail=detail,
    )


def test_export_writes_every_report(tmp_path: Path):
    detail = (
        ResponseSnapshot(
            question_id=1,
            question_text="Show me the **apple**",
            selected_image_id=10,
            answer_image_id=10,
            is_correct=True,
            options=("apple", "fruit"),
            images=_IMAGES,
        ),
        ResponseSnapshot(
            question_id=2,
            question_text="Show me the\nball",
            selected_image_id=10,
            answer_image_id=11,
            is_correct=False,
            images=_IMAGES,
        ),
        ResponseSnapshot(
            question_id=3,
            question_text=None,
            selected_image_id=12,
            answer_image_id=None,
            is_correct=False,
        ),
    )
    target = tmp_path / "out" / "reports.txt"

    save_reports_to_file(target, [_report("r2", 1, detail), _report("r1", 0, ())], patient_name="Asha")

    content = target.read_text(encoding="utf-8")
    assert content.startswith("Patient: Asha\n\nReport: r2\n")
    assert "Taken at: 2024-03-01T09:30:00+00:00" in content
    assert "Score: 1/3" in content
    assert "  1. Show me the **apple** -> picked A [correct] (options: apple, fruit)" in content
    assert "  2. Show me the ball -> picked A [wrong], expected B" in content
    assert "  3. (question 3 removed) -> picked 12 [wrong]" in content
    assert "\n\n---\n\nReport: r1\n" in content
    assert content.index("Report: r2") < content.index("Report: r1")


def test_export_without_name_uses_patient_id(tmp_path: Path):
    target = tmp_path / "reports.txt"
    save_reports_to_file(target, [_report("r1", 0, ())])
    assert target.read_text(encoding="utf-8").startswith("Patient: 1\n")


def test_export_rejects_empty_list(tmp_path: Path):
    with pytest.raises(ValueError):
        save_reports_to_file(tmp_path / "reports.txt", [])


def test_export_marks_answer_key_missing_from_screen(tmp_path: Path):
    detail = (
        ResponseSnapshot(
            question_id=4,
            question_text="Show me the cat",
            selected_image_id=10,
            answer_image_id=99,
            is_correct=False,
            images=_IMAGES,
            answer_key_resolved=False,
        ),
    )
    target = tmp_path / "reports.txt"

    save_reports_to_file(target, [_report("r1", 0, detail)])

    content = target.read_text(encoding="utf-8")
    assert "  1. Show me the cat -> picked A [wrong], expected 99 [answer key missing from screen]" in content

"""Utilities for exporting score reports to a printable plain-text file."""

from __future__ import annotations

from pathlib import Path

from assessment_app.core.models import ResponseSnapshot, ScoreReport


def save_reports_to_file(file_path: Path, reports: list[ScoreReport], patient_name: str | None = None) -> None:
    """Write the given reports, in the order provided, to ``file_path``."""

    if not reports:
        raise ValueError("Cannot export an empty report list.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    document = _serialize_reports(reports, patient_name)
    file_path.write_text(document, encoding="utf-8")


def _serialize_reports(reports: list[ScoreReport], patient_name: str | None) -> str:
    header = f"Patient: {patient_name}" if patient_name else f"Patient: {reports[0].patient_id}"
    blocks = [_serialize_report(report) for report in reports]
    return header + "\n\n" + "\n\n---\n\n".join(blocks) + "\n"


def _serialize_report(report: ScoreReport) -> str:
    lines = [
        f"Report: {report.id}",
        f"Taken at: {report.taken_at.isoformat()}",
        f"Score: {report.score}/{len(report.detail)}",
    ]
    for index, snapshot in enumerate(report.detail, start=1):
        lines.append(_serialize_snapshot(index, snapshot))
    return "\n".join(lines)


def _serialize_snapshot(index: int, snapshot: ResponseSnapshot) -> str:
    mark = "correct" if snapshot.is_correct else "wrong"
    if snapshot.question_text is None:
        text = f"(question {snapshot.question_id} removed)"
    else:
        text = " ".join(snapshot.question_text.split())
    labels = {image.image_id: image.label for image in snapshot.images}
    picked = labels.get(snapshot.selected_image_id, str(snapshot.selected_image_id))
    line = f"  {index}. {text} -> picked {picked} [{mark}]"
    if not snapshot.is_correct and snapshot.answer_image_id is not None:
        expected = labels.get(snapshot.answer_image_id, str(snapshot.answer_image_id))
        line += f", expected {expected}"
    if snapshot.options:
        line += f" (options: {', '.join(snapshot.options)})"
    if not snapshot.answer_key_resolved:
        line += " [answer key missing from screen]"
    return line

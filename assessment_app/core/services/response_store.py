"""Service persisting one response per (patient, question)."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Protocol

from assessment_app.core.models import Response


class ResponseStore(Protocol):
    """Keyed store of (patient, question) -> selection and correctness."""

    def upsert_response(
        self,
        patient_id: int,
        question_id: int,
        selected_image_id: int,
        is_correct: bool,
    ) -> Response:
        ...

    def list_responses(self, patient_id: int) -> list[Response]:
        ...


class InMemoryResponseStore:
    """Thread-safe response store; re-answering overwrites instead of appending."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._responses: dict[tuple[int, int], Response] = {}

    def upsert_response(
        self,
        patient_id: int,
        question_id: int,
        selected_image_id: int,
        is_correct: bool,
    ) -> Response:
        response = Response(
            patient_id=patient_id,
            question_id=question_id,
            selected_image_id=selected_image_id,
            is_correct=is_correct,
            answered_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._responses[(patient_id, question_id)] = response
        return _copy(response)

    def list_responses(self, patient_id: int) -> list[Response]:
        with self._lock:
            matching = [
                response
                for (owner, _question_id), response in self._responses.items()
                if owner == patient_id
            ]
        return [_copy(response) for response in sorted(matching, key=lambda r: r.question_id)]

    def count(self) -> int:
        with self._lock:
            return len(self._responses)


def _copy(response: Response) -> Response:
    return Response(
        patient_id=response.patient_id,
        question_id=response.question_id,
        selected_image_id=response.selected_image_id,
        is_correct=response.is_correct,
        answered_at=response.answered_at,
    )

"""Service holding patients' running scores and their append-only report history."""

from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Protocol

from assessment_app.core.errors import ContentNotFound
from assessment_app.core.models import Patient, ScoreReport


class ScoreStore(Protocol):
    """Persistence for Patient.score and ScoreReport rows."""

    def register_patient(self, patient_id: int, display_name: str) -> Patient:
        ...

    def get_patient(self, patient_id: int) -> Patient:
        ...

    def commit_score(self, patient_id: int, report: ScoreReport) -> None:
        """Overwrite the patient's score and append ``report``: both or neither."""
        ...

    def list_reports(
        self,
        patient_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[ScoreReport]:
        ...

    def get_report(self, report_id: str) -> ScoreReport:
        ...


class InMemoryScoreStore:
    """Patient registry plus score reports kept in memory."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._patients: dict[int, Patient] = {}
        self._reports: list[ScoreReport] = []

    def register_patient(self, patient_id: int, display_name: str) -> Patient:
        cleaned = display_name.strip()
        if not cleaned:
            raise ValueError("Patient name must not be empty.")
        with self._lock:
            if patient_id in self._patients:
                raise ValueError(f"Patient {patient_id} already exists.")
            patient = Patient(id=patient_id, display_name=cleaned)
            self._patients[patient_id] = patient
            return Patient(id=patient.id, display_name=patient.display_name, score=patient.score)

    def get_patient(self, patient_id: int) -> Patient:
        with self._lock:
            patient = self._lookup(patient_id)
            return Patient(id=patient.id, display_name=patient.display_name, score=patient.score)

    def commit_score(self, patient_id: int, report: ScoreReport) -> None:
        if report.patient_id != patient_id:
            raise ValueError("Report belongs to a different patient.")
        with self._lock:
            patient = self._lookup(patient_id)
            self._reports.append(report)
            patient.score = report.score

    def list_reports(
        self,
        patient_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[ScoreReport]:
        with self._lock:
            matching = [
                report
                for report in self._reports
                if report.patient_id == patient_id
                and (start is None or report.taken_at >= start)
                and (end is None or report.taken_at <= end)
            ]
        return sorted(matching, key=lambda report: report.taken_at, reverse=True)

    def get_report(self, report_id: str) -> ScoreReport:
        with self._lock:
            report = next((r for r in self._reports if r.id == report_id), None)
        if report is None:
            raise ContentNotFound(f"Score report {report_id} does not exist.")
        return report

    def _lookup(self, patient_id: int) -> Patient:
        patient = self._patients.get(patient_id)
        if patient is None:
            raise ContentNotFound(f"Patient {patient_id} does not exist.")
        return patient

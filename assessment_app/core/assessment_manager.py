"""Business logic shared between the HTTP layer and the traversal/scoring services."""

from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from pathlib import Path
from threading import Lock
from typing import Callable

from assessment_app.constants.assessment_constants import (
    AUTO_ADVANCE_DELAY_MS,
    SCORE_ACTION,
    SCORE_ON_COMPLETION,
    STORE_CALL_TIMEOUT_SECONDS,
    TAKE_TEST_ACTION,
    VIEW_REPORTS_ACTION,
)
from assessment_app.core.errors import AccessDenied, AssessmentError, ContentNotFound, InvalidTransition
from assessment_app.core.models import Patient, Response, ScoreReport
from assessment_app.core.report_exporter import save_reports_to_file
from assessment_app.core.services.access_control import AccessControlService, AllowAllAccessControl
from assessment_app.core.services.content_repository import ContentRepository
from assessment_app.core.services.narration import Narrator, SilentNarrator
from assessment_app.core.services.response_recorder import ResponseRecorder
from assessment_app.core.services.response_store import ResponseStore
from assessment_app.core.services.scheduler import Scheduler, ThreadingScheduler
from assessment_app.core.services.score_store import ScoreStore
from assessment_app.core.services.scoring_aggregator import ScoringAggregator
from assessment_app.core.services.traversal import TraversalStateMachine

logger = logging.getLogger(__name__)


class AssessmentManager:
    """Facade for the assessment services: sessions, recording, scoring and access checks.

    Holds one traversal per patient. Navigation that the current state forbids is
    absorbed here and reported as ``False`` instead of an exception.
    """

    def __init__(
        self,
        content: ContentRepository,
        responses: ResponseStore,
        scores: ScoreStore,
        access: AccessControlService | None = None,
        narrator: Narrator | None = None,
        scheduler: Scheduler | None = None,
        auto_advance_delay_ms: int = AUTO_ADVANCE_DELAY_MS,
        score_on_completion: bool = SCORE_ON_COMPLETION,
        timeout_seconds: float | None = STORE_CALL_TIMEOUT_SECONDS,
    ) -> None:
        self._lock = Lock()
        self._content = content
        self._scores = scores
        self._access: AccessControlService = access or AllowAllAccessControl()
        self._narrator: Narrator = narrator or SilentNarrator()
        self._scheduler: Scheduler = scheduler or ThreadingScheduler()
        self._auto_advance_delay_ms = auto_advance_delay_ms
        self._score_on_completion = score_on_completion
        self._timeout = timeout_seconds

        # Services
        self._recorder = ResponseRecorder(content, responses, timeout_seconds=timeout_seconds)
        self._aggregator = ScoringAggregator(content, responses, scores, timeout_seconds=timeout_seconds)
        self._sessions: dict[int, TraversalStateMachine] = {}

    # --- Patients ---

    def register_patient(self, patient_id: int, display_name: str) -> Patient:
        return self._scores.register_patient(patient_id, display_name)

    def get_patient(self, actor: str | None, patient_id: int) -> Patient:
        self._check_access(actor, patient_id, VIEW_REPORTS_ACTION)
        return self._scores.get_patient(patient_id)

    # --- Sessions ---

    def start_session(self, actor: str | None, patient_id: int, restart: bool = False) -> TraversalStateMachine:
        """Return the patient's traversal, creating and starting it when needed."""
        self._check_access(actor, patient_id, TAKE_TEST_ACTION)
        self._scores.get_patient(patient_id)
        with self._lock:
            session = self._sessions.get(patient_id)
            if session is not None and not restart:
                return session
            if session is not None:
                session.exit()
            session = TraversalStateMachine(
                self._content,
                patient_id=patient_id,
                recorder=self._recorder,
                narrator=self._narrator,
                scheduler=self._scheduler,
                auto_advance_delay_ms=self._auto_advance_delay_ms,
                timeout_seconds=self._timeout,
                on_end=partial(self._handle_completion, patient_id),
            )
            self._sessions[patient_id] = session
            session.start()
            return session

    def get_session(self, actor: str | None, patient_id: int) -> TraversalStateMachine:
        self._check_access(actor, patient_id, TAKE_TEST_ACTION)
        with self._lock:
            session = self._sessions.get(patient_id)
        if session is None:
            raise ContentNotFound(f"No assessment session for patient {patient_id}.")
        return session

    def select(self, actor: str | None, patient_id: int, image_id: int) -> tuple[bool, Response | None]:
        session = self.get_session(actor, patient_id)
        try:
            return True, session.select(image_id)
        except InvalidTransition as exc:
            logger.debug("Ignored selection for patient %s: %s", patient_id, exc)
            return False, None

    def next(self, actor: str | None, patient_id: int) -> bool:
        return self._navigate(actor, patient_id, TraversalStateMachine.next)

    def previous(self, actor: str | None, patient_id: int) -> bool:
        return self._navigate(actor, patient_id, TraversalStateMachine.previous)

    def previous_level(self, actor: str | None, patient_id: int) -> bool:
        return self._navigate(actor, patient_id, TraversalStateMachine.previous_level)

    def exit(self, actor: str | None, patient_id: int) -> bool:
        return self._navigate(actor, patient_id, TraversalStateMachine.exit)

    def retake(self, actor: str | None, patient_id: int) -> bool:
        return self._navigate(actor, patient_id, TraversalStateMachine.retake)

    def repeat_prompt(self, actor: str | None, patient_id: int) -> bool:
        return self._navigate(actor, patient_id, TraversalStateMachine.repeat_prompt)

    # --- Scoring ---

    def recompute_score(self, actor: str | None, patient_id: int) -> dict[str, object]:
        self._check_access(actor, patient_id, SCORE_ACTION)
        report = self._aggregator.recompute(patient_id)
        return {"score": report.score, "report_id": report.id}

    def list_reports(
        self,
        actor: str | None,
        patient_id: int,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[ScoreReport]:
        self._check_access(actor, patient_id, VIEW_REPORTS_ACTION)
        return self._aggregator.list_reports(patient_id, start_date, end_date)

    def get_report(self, actor: str | None, report_id: str) -> ScoreReport:
        report = self._aggregator.get_report(report_id)
        self._check_access(actor, report.patient_id, VIEW_REPORTS_ACTION)
        return report

    def export_reports(
        self,
        actor: str | None,
        patient_id: int,
        file_path: Path,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> int:
        """Write the patient's reports, newest first, to a text file. Returns the count."""
        reports = self.list_reports(actor, patient_id, start_date, end_date)
        if not reports:
            return 0
        patient = self._scores.get_patient(patient_id)
        save_reports_to_file(file_path, reports, patient_name=patient.display_name)
        return len(reports)

    # --- Internals ---

    def _navigate(
        self,
        actor: str | None,
        patient_id: int,
        transition: Callable[[TraversalStateMachine], None],
    ) -> bool:
        session = self.get_session(actor, patient_id)
        try:
            transition(session)
        except InvalidTransition as exc:
            logger.debug("Ignored %s for patient %s: %s", transition.__name__, patient_id, exc)
            return False
        return True

    def _handle_completion(self, patient_id: int) -> None:
        # Runs on whichever thread ended the traversal; must not take self._lock.
        if not self._score_on_completion:
            return
        try:
            self._aggregator.recompute(patient_id)
        except AssessmentError:
            logger.warning("Automatic scoring failed for patient %s", patient_id, exc_info=True)

    def _check_access(self, actor: str | None, patient_id: int, action: str) -> None:
        if not self._access.can_access_patient(actor, patient_id, action):
            raise AccessDenied(f"{actor or 'anonymous'} may not {action} for patient {patient_id}.")

"""FastAPI server exposing traversal and scoring endpoints to presentation clients."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel
import uvicorn

from assessment_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from assessment_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from assessment_app.core.assessment_manager import AssessmentManager
from assessment_app.core.errors import (
    AccessDenied,
    AssessmentError,
    ContentNotFound,
    InvalidSelection,
    PersistenceFailure,
)
from assessment_app.core.models import ScoreReport
from assessment_app.core.prompt_renderer import renderer
from assessment_app.core.services.traversal import TraversalStateMachine


class StartSessionPayload(BaseModel):
    """Payload schema for starting (or resuming) an assessment."""

    patient_id: int
    restart: bool = False


class SelectionPayload(BaseModel):
    """Payload schema for the subject's image pick."""

    image_id: int


class PatientPayload(BaseModel):
    patient_id: int
    display_name: str


def _get_manager_dependency(manager: AssessmentManager):
    def dependency() -> AssessmentManager:
        return manager

    return dependency


def _http_error(exc: AssessmentError) -> HTTPException:
    if isinstance(exc, AccessDenied):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, ContentNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidSelection):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, PersistenceFailure):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=409, detail=str(exc))


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.astimezone(timezone.utc).isoformat()


def _session_view(session: TraversalStateMachine, changed: bool | None = None) -> dict[str, object]:
    view = session.snapshot()
    if "prompt" in view:
        view["prompt_html"] = renderer.render_fragment(view["prompt"])
    if changed is not None:
        view["changed"] = changed
    return view


def _report_view(report: ScoreReport) -> dict[str, object]:
    return {
        "id": report.id,
        "patient_id": report.patient_id,
        "score": report.score,
        "taken_at": _iso(report.taken_at),
        "detail": [
            {
                "question_id": snapshot.question_id,
                "question_text": snapshot.question_text,
                "selected_image_id": snapshot.selected_image_id,
                "answer_image_id": snapshot.answer_image_id,
                "is_correct": snapshot.is_correct,
                "answer_key_resolved": snapshot.answer_key_resolved,
                "options": list(snapshot.options),
                "images": [
                    {"id": image.image_id, "url": image.url, "label": image.label}
                    for image in snapshot.images
                ],
            }
            for snapshot in report.detail
        ],
    }


def create_api_app(manager: AssessmentManager) -> FastAPI:
    """Create a FastAPI application wired to the provided assessment manager.

    The caller is identified by the ``actor`` query parameter; authentication is
    handled upstream.
    """
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    manager_dep = _get_manager_dependency(manager)

    @app.post("/patients", status_code=201)
    def register_patient(
        payload: PatientPayload,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            patient = manager.register_patient(payload.patient_id, payload.display_name)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"id": patient.id, "display_name": patient.display_name, "score": patient.score}

    @app.get("/patients/{patient_id}")
    def get_patient(
        patient_id: int,
        actor: str | None = None,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            patient = manager.get_patient(actor, patient_id)
        except AssessmentError as exc:
            raise _http_error(exc) from exc
        return {"id": patient.id, "display_name": patient.display_name, "score": patient.score}

    @app.post("/sessions", status_code=201)
    def start_session(
        payload: StartSessionPayload,
        actor: str | None = None,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            session = manager.start_session(actor, payload.patient_id, restart=payload.restart)
        except AssessmentError as exc:
            raise _http_error(exc) from exc
        return _session_view(session)

    @app.get("/sessions/{patient_id}")
    def get_session(
        patient_id: int,
        actor: str | None = None,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            session = manager.get_session(actor, patient_id)
        except AssessmentError as exc:
            raise _http_error(exc) from exc
        return _session_view(session)

    @app.post("/sessions/{patient_id}/select")
    def select_image(
        patient_id: int,
        payload: SelectionPayload,
        actor: str | None = None,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            changed, response = manager.select(actor, patient_id, payload.image_id)
            session = manager.get_session(actor, patient_id)
        except AssessmentError as exc:
            raise _http_error(exc) from exc
        view = _session_view(session, changed)
        view["saved"] = response is not None
        return view

    navigation = {
        "next": AssessmentManager.next,
        "previous": AssessmentManager.previous,
        "previous-level": AssessmentManager.previous_level,
        "exit": AssessmentManager.exit,
        "retake": AssessmentManager.retake,
        "speak": AssessmentManager.repeat_prompt,
    }

    def _register_navigation(path: str, transition) -> None:
        @app.post(f"/sessions/{{patient_id}}/{path}", name=f"session_{path.replace('-', '_')}")
        def navigate(
            patient_id: int,
            actor: str | None = None,
            manager: AssessmentManager = Depends(manager_dep),
        ) -> dict[str, object]:
            try:
                changed = transition(manager, actor, patient_id)
                session = manager.get_session(actor, patient_id)
            except AssessmentError as exc:
                raise _http_error(exc) from exc
            return _session_view(session, changed)

    for path, transition in navigation.items():
        _register_navigation(path, transition)

    @app.post("/patients/{patient_id}/score")
    def recompute_score(
        patient_id: int,
        actor: str | None = None,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            return manager.recompute_score(actor, patient_id)
        except AssessmentError as exc:
            raise _http_error(exc) from exc

    @app.get("/patients/{patient_id}/reports")
    def list_reports(
        patient_id: int,
        actor: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            reports = manager.list_reports(actor, patient_id, start_date, end_date)
        except AssessmentError as exc:
            raise _http_error(exc) from exc
        return {"reports": [_report_view(report) for report in reports]}

    @app.get("/reports/{report_id}")
    def get_report(
        report_id: str,
        actor: str | None = None,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            report = manager.get_report(actor, report_id)
        except AssessmentError as exc:
            raise _http_error(exc) from exc
        return _report_view(report)

    return app


def start_api_server(
    manager: AssessmentManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="AssessmentApiServer", daemon=True)
    thread.start()
    return thread

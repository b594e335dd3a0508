"""Application entry point for the picture assessment service."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication

from assessment_app.constants.about import APP_NAME, APP_VERSION
from assessment_app.constants.assessment_constants import DEFAULT_CATALOG_PATH
from assessment_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from assessment_app.core.assessment_manager import AssessmentManager
from assessment_app.core.catalog_importer import load_catalog_from_file
from assessment_app.core.services.narration import LoggingNarrator
from assessment_app.core.services.response_store import InMemoryResponseStore
from assessment_app.core.services.score_store import InMemoryScoreStore
from assessment_app.server.api_server import start_api_server
from assessment_app.ui.speech_narrator import QtSpeechNarrator
from assessment_app.utils.logging_config import configure_logging


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"{APP_NAME} assessment server")
    parser.add_argument("--catalog", type=Path, default=DEFAULT_CATALOG_PATH, help="Catalog text file to load")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--no-speech", action="store_true", help="Log prompts instead of speaking them")
    return parser.parse_args(argv)


def main() -> None:
    """Initialize logging, load the catalog, start the API server and run the Qt loop."""
    args = _parse_args(sys.argv[1:])
    logger = configure_logging()
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    catalog = load_catalog_from_file(args.catalog)
    logger.info(
        "Loaded %d level(s) and %d question(s) from %s",
        catalog.level_count,
        catalog.question_count,
        args.catalog,
    )

    # The Qt loop owns the speech engine; API threads hand prompts to it via signals.
    app = QCoreApplication(sys.argv[:1])
    narrator = LoggingNarrator() if args.no_speech else QtSpeechNarrator()
    manager = AssessmentManager(
        content=catalog.repository,
        responses=InMemoryResponseStore(),
        scores=InMemoryScoreStore(),
        narrator=narrator,
    )
    start_api_server(manager=manager, host=args.host, port=args.port)
    logger.info("API available at http://%s:%d/docs", args.host, args.port)
    sys.exit(app.exec())


if __name__ == "__main__":
    main()

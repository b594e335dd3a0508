"""Assessment-related constants shared across core, server and UI layers."""

from __future__ import annotations

import os
from pathlib import Path

AUTO_ADVANCE_DELAY_MS: int = 1000
NARRATION_LANGUAGE: str = "hi-IN"
MAX_IMAGES_PER_SCREEN: int = 4
IMAGE_POSITION_LABELS: tuple[str, ...] = ("A", "B", "C", "D")
IMAGE_POSITION_NAMES: tuple[str, ...] = ("top-left", "top-right", "bottom-left", "bottom-right")

# Applied to every Content Repository / store call; None disables the bound.
STORE_CALL_TIMEOUT_SECONDS: float | None = 5.0

SCORE_ON_COMPLETION: bool = True

DEFAULT_CATALOG_PATH: Path = Path(__file__).resolve().parent.parent / "data" / "sample_catalog.txt"

TAKE_TEST_ACTION: str = "take_test"
VIEW_REPORTS_ACTION: str = "view_reports"
SCORE_ACTION: str = "score"

_DEFAULT_LEVEL_NAMES: dict[int, str] = {
    1: "One Word Level Pictures",
    2: "One Word Action Pictures",
    3: "Two Word Level",
    4: "Three Word Level",
    5: "Four Word Level",
}


def level_display_name(ordinal: int) -> str:
    """Human-readable level name, overridable through ASSESSMENT_LEVEL<n>_NAME."""
    override = os.environ.get(f"ASSESSMENT_LEVEL{ordinal}_NAME")
    if override:
        return override
    return _DEFAULT_LEVEL_NAMES.get(ordinal, f"Level {ordinal}")

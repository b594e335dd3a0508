"""Narration side channel: prompts are spoken to the subject on a best-effort basis."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Narrator(Protocol):
    def speak(self, text: str, language: str) -> None:
        """Queue ``text`` for speech. Must not block the caller."""
        ...


class SilentNarrator:
    def speak(self, text: str, language: str) -> None:
        return None


class LoggingNarrator:
    """Narrator for headless runs: writes every prompt to the log."""

    def speak(self, text: str, language: str) -> None:
        logger.info("Narrating [%s]: %s", language, text)


def narrate_safely(narrator: Narrator, text: str, language: str) -> bool:
    """Fire-and-forget narration. Returns False when the narrator failed."""
    try:
        narrator.speak(text, language)
    except Exception:  # narration must never block traversal
        logger.warning("Narration failed for prompt %r", text, exc_info=True)
        return False
    return True

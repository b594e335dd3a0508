"""Qt text-to-speech narrator for prompts."""

from __future__ import annotations

import logging

from PySide6.QtCore import QLocale, QObject, Signal, Slot
from PySide6.QtTextToSpeech import QTextToSpeech

from assessment_app.constants.assessment_constants import NARRATION_LANGUAGE

logger = logging.getLogger(__name__)


class QtSpeechNarrator(QObject):
    """Speaks prompts through ``QTextToSpeech``.

    ``speak`` may be called from any thread (API workers, auto-advance timers); the
    request is queued onto the thread owning this object, so callers never block.
    """

    _speak_requested = Signal(str, str)

    def __init__(self, language: str = NARRATION_LANGUAGE, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._engine = QTextToSpeech(self)
        self._language: str | None = None
        self._apply_language(language)
        self._speak_requested.connect(self._say)

    def speak(self, text: str, language: str) -> None:
        self._speak_requested.emit(text, language)

    @Slot(str, str)
    def _say(self, text: str, language: str) -> None:
        if language != self._language:
            self._apply_language(language)
        self._engine.say(text)

    def _apply_language(self, language: str) -> None:
        locale = QLocale(language.replace("-", "_"))
        available = {loc.name() for loc in self._engine.availableLocales()}
        if available and locale.name() not in available:
            logger.warning("Speech locale %s is not available; using the engine default.", language)
        else:
            self._engine.setLocale(locale)
        self._language = language

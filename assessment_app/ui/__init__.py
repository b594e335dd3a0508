"""Qt components hosting the assessment's speech output."""

from .speech_narrator import QtSpeechNarrator

__all__ = [
    "QtSpeechNarrator",
]

"""Exception taxonomy for the assessment engine."""

from __future__ import annotations

from concurrent.futures import Future


class AssessmentError(Exception):
    """Base class for every error raised by the assessment engine."""


class ContentNotFound(AssessmentError):
    """A level, screen or question is missing or malformed.

    Also raised when a question's answer key does not resolve to an image on its
    own screen: that is an authoring defect, never a scoring zero.
    """


class PersistenceFailure(AssessmentError):
    """The Response Store or score store is unavailable or did not answer in time."""


class InvalidTransition(AssessmentError):
    """Navigation was requested from a state that forbids it."""


class InvalidSelection(AssessmentError, ValueError):
    """The selected image is not part of the question's screen."""


class AccessDenied(AssessmentError):
    """The access control service refused the requested action."""


class StoreCallTimedOut(PersistenceFailure):
    """A bounded call expired while the underlying call may still be running.

    ``pending`` is the future of the abandoned call. Callers holding a lock for the
    affected key keep it until ``pending`` settles, so no later write can overtake it.
    """

    def __init__(self, message: str, pending: Future | None = None) -> None:
        super().__init__(message)
        self.pending = pending

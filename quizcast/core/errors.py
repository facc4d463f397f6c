"""Exception hierarchy shared by the quiz services and the API layer."""

from __future__ import annotations


class QuizError(Exception):
    """Base class for every error raised by the quiz core."""


class InvalidInputError(QuizError, ValueError):
    """Raised for missing or malformed input. Nothing has been mutated."""


class QuestionImportError(InvalidInputError):
    """Raised when a single question row cannot be accepted."""


class NotFoundError(QuizError, LookupError):
    """Raised when a referenced user, question or game does not exist."""


class AlreadyAnsweredError(QuizError, RuntimeError):
    """Raised when a user submits a second answer for the same question."""


class StoreError(QuizError, RuntimeError):
    """Raised when the persistent store fails; the transaction was rolled back."""

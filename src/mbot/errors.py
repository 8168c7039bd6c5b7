# src/mbot/errors.py

"""
Error taxonomy shared by the task store, the checklist sync and the scheduler.

The API layer maps each kind to an HTTP status; everything else either
re-raises to the caller (NotFound / InvalidInput / Conflict) or logs and keeps
going (PersistenceError / ActionError).
"""

from __future__ import annotations


class MbotError(Exception):
    """Base class for all core errors."""


class NotFound(MbotError):
    """Referenced task id or job name is absent."""


class InvalidInput(MbotError):
    """Empty text, malformed schedule tag or cron expression, unknown action."""


class Conflict(MbotError):
    """Duplicate job name."""


class ParseError(MbotError):
    """Checklist file is structurally malformed."""

    def __init__(self, message: str, *, line_no: int | None = None) -> None:
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)
        self.line_no = line_no


class PersistenceError(MbotError):
    """Writing the checklist file failed."""


class ActionError(MbotError):
    """A job action raised or timed out."""

    def __init__(self, job_name: str, message: str) -> None:
        super().__init__(f"job {job_name!r}: {message}")
        self.job_name = job_name

"""Exceptions raised by collaborators and caught at the tier boundary."""
from typing import Optional


class TriageError(Exception):
    """Base class for recruit_triage errors."""


class CollaboratorFailure(TriageError):
    """A model call, attachment fetch or decode failed (or timed out)."""

    def __init__(self, collaborator: str, message: str = "", cause: Optional[BaseException] = None):
        self.collaborator = collaborator
        self.cause = cause
        super().__init__(f"{collaborator}: {message or cause!r}")


class ModelNotConfiguredError(TriageError):
    """Generative model requested but no API key is configured."""


class ModelInitializationError(TriageError):
    """Statistical models failed to load. Kept so every caller sees the same outcome."""

from __future__ import annotations


class AvatarGenError(Exception):
    """Base class for avatargen failures."""


class InvalidRequestError(AvatarGenError, ValueError):
    """Raised before any backend call when a request cannot be served."""


class BackendError(AvatarGenError):
    """A provider call failed or returned something unusable."""

    def __init__(self, backend: str, message: str):
        super().__init__(f"{backend}: {message}")
        self.backend = backend


class GenerationError(BackendError):
    """A generation backend returned no image bytes."""

"""Exception hierarchy for the fusion engine."""

from __future__ import annotations


class FusionError(Exception):
    """Base class for every error raised by :mod:`emotion_fusion`."""


class InvalidReadingError(FusionError, ValueError):
    """A reading was rejected; the source state was left untouched."""

    def __init__(self, source_id: str, reason: str) -> None:
        super().__init__(f"Invalid reading for source {source_id!r}: {reason}")
        self.source_id = source_id
        self.reason = reason


class UnknownFusionMethodError(FusionError, ValueError):
    """Requested fusion method has no registered strategy."""

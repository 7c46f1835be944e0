"""Exception types raised by the triage engine."""

from __future__ import annotations


class TriageError(Exception):
    """Base class for triage engine errors."""


class HashLengthMismatch(TriageError, ValueError):
    """Two fingerprints of different widths were compared."""

    def __init__(self, length_a: int, length_b: int):
        super().__init__(f"Hashes must be the same length (got {length_a} and {length_b})")
        self.length_a = length_a
        self.length_b = length_b


class AIResponseParseError(TriageError, ValueError):
    """The AI provider returned text that is not a valid analysis object."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class AIProviderError(TriageError, RuntimeError):
    """The AI provider answered without a usable text response."""

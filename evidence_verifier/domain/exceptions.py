"""Exceptions raised by the verification domain."""

from typing import Optional


class VerificationInputError(ValueError):
    """Raised when the document, source registry or claim registry is missing or malformed.

    Input errors are reported before any pipeline stage runs.
    """


class ExcerptNotFoundError(ValueError):
    """Raised when a claim's supporting excerpt cannot be located in its source text."""

    def __init__(self, source_id: str, excerpt: str, reason: Optional[str] = None):
        self.source_id = source_id
        self.excerpt = excerpt
        self.reason = reason or "supporting excerpt not found in source text"
        super().__init__(f"{self.reason} ({source_id}): {excerpt[:80]!r}")


class OracleContractError(ValueError):
    """Raised when oracle output does not conform to the requested contract."""


class OracleUnavailableError(RuntimeError):
    """Raised when the semantic oracle fails, times out or is not configured."""


class CaseNotFoundError(VerificationInputError):
    """Raised when a case directory does not exist."""

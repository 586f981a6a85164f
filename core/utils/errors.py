"""Custom exceptions for core logic."""

from __future__ import annotations


class RuleConfigError(Exception):
    """Raised when a rule configuration cannot be turned into match rules."""

    def __init__(self, message: str, *, problems: list[str] | None = None) -> None:
        super().__init__(message)
        self.problems = list(problems or [])


class DocumentFetchError(Exception):
    """Raised when a remote document cannot be fetched."""

    def __init__(
        self,
        reason: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(f"Failed to fetch: {reason}")
        self.reason = reason
        self.url = url
        self.status_code = status_code


class MarkupParseError(Exception):
    """Raised by a markup parser when text is not well-formed markup."""


class MeasurementError(Exception):
    """Raised when a rendered element has no measurable geometry."""

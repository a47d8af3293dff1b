from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    EMPTY_INPUT = "EMPTY_INPUT"
    INVALID_INPUT = "INVALID_INPUT"
    FETCH_FAILED = "FETCH_FAILED"
    NO_DATA_FOUND = "NO_DATA_FOUND"
    CACHE_UNAVAILABLE = "CACHE_UNAVAILABLE"
    CANCELLED = "CANCELLED"


class GoPkgDocsError(Exception):
    """Raised for all expected failure conditions.

    Per-package failures are collected by the scraper and attached to the
    batch result; only ``EMPTY_INPUT`` escapes ``Scraper.scrape_packages``.
    ``CACHE_UNAVAILABLE`` is always caught and logged by the scraper.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }

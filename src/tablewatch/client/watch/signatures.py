"""Failure signatures of the kbc download tool.

The tool reports failures only as free text on stdout/stderr, so a failed
exit is classified by matching that text against the known phrases below.
All phrases live in this module; bump SIGNATURES_VERSION whenever the table
changes so logged classifications can be traced to the table that produced
them.

Precedence: empty-table defect, then rate limiting, then server errors.
Text matching none of them is a fatal failure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from tablewatch.core.types import ErrorKind

SIGNATURES_VERSION = 4


@dataclass(frozen=True)
class Signature:
    """A known failure phrase."""

    kind: ErrorKind
    pattern: re.Pattern[str]
    description: str

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _sig(kind: ErrorKind, pattern: str, description: str) -> Signature:
    return Signature(kind, re.compile(pattern, re.IGNORECASE), description)


SIGNATURES: list[Signature] = [
    # kbc fails instead of writing an empty file for zero-row tables
    _sig(ErrorKind.EMPTY_RESOURCE_DEFECT, r"\bno slices\b", "sliced file has no slices"),
    _sig(ErrorKind.EMPTY_RESOURCE_DEFECT, r"\bfile is empty\b", "exported file is empty"),
    _sig(ErrorKind.EMPTY_RESOURCE_DEFECT, r"\btable is empty\b", "table has no rows"),
    _sig(ErrorKind.EMPTY_RESOURCE_DEFECT, r"unexpected end of json input", "empty manifest"),
    # Rate limiting
    _sig(
        ErrorKind.RATE_LIMITED,
        r"\b(?:http|status(?:\s+code)?|error)\s*:?\s*429\b",
        "HTTP 429 status",
    ),
    _sig(ErrorKind.RATE_LIMITED, r"too many requests", "Too Many Requests"),
    _sig(ErrorKind.RATE_LIMITED, r"rate limit", "rate limit exceeded"),
    # Server errors
    _sig(
        ErrorKind.TRANSIENT_SERVER_ERROR,
        r"\b(?:http|status(?:\s+code)?|error)\s*:?\s*5\d\d\b",
        "HTTP 5xx status",
    ),
    _sig(ErrorKind.TRANSIENT_SERVER_ERROR, r"internal server error", "500"),
    _sig(ErrorKind.TRANSIENT_SERVER_ERROR, r"bad gateway", "502"),
    _sig(ErrorKind.TRANSIENT_SERVER_ERROR, r"service unavailable", "503"),
    _sig(ErrorKind.TRANSIENT_SERVER_ERROR, r"gateway time-?out", "504"),
]


def match_signature(text: str) -> Signature | None:
    """Find the first known signature in the tool output.

    Args:
        text: Combined stdout and stderr text.

    Returns:
        The matching Signature, or None.
    """
    for signature in SIGNATURES:
        if signature.matches(text):
            return signature
    return None


def classify_failure(text: str) -> ErrorKind:
    """Classify a non-zero exit by its output text.

    Returns:
        The signature's kind, or FATAL_FAILURE when nothing matches.
    """
    signature = match_signature(text)
    if signature is None:
        return ErrorKind.FATAL_FAILURE
    return signature.kind


def classify_status_code(status_code: int | None) -> ErrorKind:
    """Classify an HTTP status code from the metadata service.

    Anything that is not rate limiting or a server error means the signal
    is unavailable for this cycle.
    """
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code is not None and 500 <= status_code < 600:
        return ErrorKind.TRANSIENT_SERVER_ERROR
    return ErrorKind.SIGNAL_UNAVAILABLE

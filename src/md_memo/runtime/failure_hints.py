"""Deterministic hints for failed CLI runs, derived from their output."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureHint(str, Enum):
    """Normalized reasons a CLI run can fail."""

    ACCESS_OR_AUTH = "access_or_auth"
    BILLING_OR_QUOTA = "billing_or_quota"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    UNKNOWN = "unknown"


_BILLING_OR_QUOTA_PATTERNS: tuple[str, ...] = (
    "quota",
    "insufficient",
    "billing",
    "payment",
    "credit balance",
    "usage limit",
)
_ACCESS_OR_AUTH_PATTERNS: tuple[str, ...] = (
    "unauthorized",
    "forbidden",
    "invalid api key",
    "not logged in",
    "please run /login",
    "authentication",
    "oauth token",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "too many requests",
    "rate limit",
    "429",
    "overloaded",
    "try again later",
)
_NETWORK_PATTERNS: tuple[str, ...] = (
    "econnrefused",
    "econnreset",
    "enotfound",
    "etimedout",
    "connection reset",
    "network error",
    "could not resolve host",
)


@dataclass(slots=True, frozen=True)
class FailureClassification:
    """Hint plus the pattern that produced it."""

    hint: FailureHint
    matched_pattern: str | None


def classify_cli_failure(*, stdout: str, stderr: str) -> FailureClassification:
    """Classify a non-zero CLI exit. Earlier rule groups win."""

    haystack = f"{stderr}\n{stdout}".lower()
    for hint, patterns in (
        (FailureHint.BILLING_OR_QUOTA, _BILLING_OR_QUOTA_PATTERNS),
        (FailureHint.ACCESS_OR_AUTH, _ACCESS_OR_AUTH_PATTERNS),
        (FailureHint.RATE_LIMITED, _RATE_LIMIT_PATTERNS),
        (FailureHint.NETWORK, _NETWORK_PATTERNS),
    ):
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return FailureClassification(hint=hint, matched_pattern=pattern)
    return FailureClassification(hint=FailureHint.UNKNOWN, matched_pattern=None)


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None

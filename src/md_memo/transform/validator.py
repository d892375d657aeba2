"""Post-validation of CLI Markdown output, title extraction and record ids."""

from __future__ import annotations

import re
import secrets
from datetime import datetime

from md_memo.errors import InputTooLargeError, InvalidRequestError
from md_memo.models import TransformRequest

MAX_INPUT_CHARS = 20_000
FALLBACK_TITLE_SUFFIX = "無題のメモ"

REQUIRED_SUBSECTIONS: tuple[str, ...] = ("サマリー", "要点", "詳細", "不明点")

# ':' stays: generated titles carry an "HH:mm" timestamp and are never used as file names.
_UNSAFE_TITLE_CHARS = re.compile(r'[\\/*?"<>|\x00-\x1f]')


def validate_request(request: TransformRequest, *, max_chars: int = MAX_INPUT_CHARS) -> None:
    """Reject empty or oversized input before anything is spawned."""

    if not request.text or not request.text.strip():
        raise InvalidRequestError("Input text is empty.")
    if len(request.text) > max_chars:
        raise InputTooLargeError(length=len(request.text), limit=max_chars)


def find_title_line(markdown: str) -> str | None:
    """Text of the first top-level ``# `` heading, ignoring ``##`` and deeper."""

    for line in markdown.splitlines():
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip()
            if title:
                return title
    return None


def validate_markdown(markdown: str) -> list[str]:
    """Return one warning per missing required section. Never raises."""

    warnings: list[str] = []
    if find_title_line(markdown) is None:
        warnings.append("Missing required section: title (# heading)")
    for name in REQUIRED_SUBSECTIONS:
        if f"## {name}" not in markdown:
            warnings.append(f"Missing required section: {name}")
    return warnings


def sanitize_title(title: str) -> str:
    return _UNSAFE_TITLE_CHARS.sub("", title).strip()


def extract_title(markdown: str, now: datetime) -> str:
    """Heading-derived title, or a timestamped placeholder when there is none."""

    heading = find_title_line(markdown)
    if heading is not None:
        title = sanitize_title(heading)
        if title:
            return title
    return f"{now:%Y-%m-%d %H:%M}_{FALLBACK_TITLE_SUFFIX}"


def generate_record_id(now: datetime) -> str:
    """Second-precision timestamp plus a 24-bit random suffix.

    Unlikely to collide within one process lifetime, not guaranteed unique.
    """

    return f"{now:%Y%m%d_%H%M%S}_{secrets.token_hex(3)}"

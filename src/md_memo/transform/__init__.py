"""Transform pipeline from free-form text to structured Markdown."""

from md_memo.transform.prompts import build_prompt
from md_memo.transform.service import HistoryWriter, TransformService
from md_memo.transform.validator import extract_title, validate_markdown, validate_request

__all__ = [
    "HistoryWriter",
    "TransformService",
    "build_prompt",
    "extract_title",
    "validate_markdown",
    "validate_request",
]

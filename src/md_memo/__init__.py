"""Structured Markdown memos produced by a locally provisioned Claude Code CLI."""

__version__ = "0.1.0"

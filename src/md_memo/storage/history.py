"""File-based history: ``{id}.input.txt``, ``{id}.output.md``, ``{id}.meta.json``."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from md_memo.models import HistoryPaths, TransformMeta

logger = logging.getLogger(__name__)

_META_SUFFIX = ".meta.json"


def write_json(path: Path, payload: dict[str, Any]) -> None:
    """Persist JSON payload with readable, non-ASCII-preserving formatting."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), "utf-8")


def load_json(path: Path) -> dict[str, Any]:
    """Load JSON document and validate top-level object type."""

    payload = json.loads(path.read_text("utf-8"))
    if not isinstance(payload, dict):
        raise TypeError(f"Expected JSON object in {path}")
    return payload


class HistoryStore:
    """One directory of transform records, three sibling files per record."""

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = root_dir

    def get_paths(self, record_id: str) -> HistoryPaths:
        return HistoryPaths(
            input=str(self.root_dir / f"{record_id}.input.txt"),
            output=str(self.root_dir / f"{record_id}.output.md"),
            meta=str(self.root_dir / f"{record_id}{_META_SUFFIX}"),
        )

    def save(
        self,
        record_id: str,
        input_text: str,
        output_markdown: str,
        meta: TransformMeta,
    ) -> None:
        paths = self.get_paths(record_id)
        self.root_dir.mkdir(parents=True, exist_ok=True)
        Path(paths.input).write_text(input_text, "utf-8")
        Path(paths.output).write_text(output_markdown, "utf-8")
        write_json(Path(paths.meta), meta.to_dict())

    def load_index(self) -> list[TransformMeta]:
        """All readable records, newest first. Corrupt metadata files are skipped."""

        if not self.root_dir.is_dir():
            return []

        items: list[TransformMeta] = []
        for meta_path in self.root_dir.glob(f"*{_META_SUFFIX}"):
            try:
                items.append(TransformMeta.from_dict(load_json(meta_path)))
            except (OSError, ValueError, TypeError, KeyError) as error:
                logger.debug("Skipping unreadable history metadata %s: %s", meta_path, error)
        items.sort(key=_sort_key, reverse=True)
        return items

    def load(self, record_id: str) -> tuple[str, str, TransformMeta]:
        """Return ``(input_text, output_markdown, meta)``; missing files raise."""

        paths = self.get_paths(record_id)
        input_text = Path(paths.input).read_text("utf-8")
        output_markdown = Path(paths.output).read_text("utf-8")
        meta = TransformMeta.from_dict(load_json(Path(paths.meta)))
        return input_text, output_markdown, meta

    def delete(self, record_id: str) -> None:
        paths = self.get_paths(record_id)
        for path in (paths.input, paths.output, paths.meta):
            Path(path).unlink(missing_ok=True)


def _sort_key(meta: TransformMeta) -> float:
    created_at: datetime = meta.created_at
    if created_at.tzinfo is None:
        created_at = created_at.astimezone()
    return created_at.timestamp()

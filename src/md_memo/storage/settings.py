"""User preferences stored as a single JSON document."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from md_memo.models import AppSettings

logger = logging.getLogger(__name__)


class SettingsStore:
    """Load/save ``AppSettings``; synchronous calls are safe from shutdown hooks."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> AppSettings:
        """Saved settings, or defaults when the file is missing or unreadable."""

        try:
            raw = self.path.read_text("utf-8")
        except FileNotFoundError:
            return AppSettings()
        except OSError as error:
            logger.warning("Cannot read settings %s: %s; using defaults", self.path, error)
            return AppSettings()

        try:
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise TypeError("settings document must be a JSON object")
            return AppSettings.from_dict(payload)
        except (ValueError, TypeError) as error:
            logger.warning("Corrupt settings %s: %s; using defaults", self.path, error)
            return AppSettings()

    def save(self, settings: AppSettings) -> None:
        """Write to a sibling temp file, then atomically replace the target."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(settings.to_dict(), handle, ensure_ascii=False, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    async def load_async(self) -> AppSettings:
        return await asyncio.to_thread(self.load)

    async def save_async(self, settings: AppSettings) -> None:
        await asyncio.to_thread(self.save, settings)

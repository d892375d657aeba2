"""Local persistence for history records and user settings."""

from md_memo.storage.history import HistoryStore
from md_memo.storage.settings import SettingsStore

__all__ = ["HistoryStore", "SettingsStore"]

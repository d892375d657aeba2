"""Domain models for transform requests, results and persisted metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class TransformIntent(str, Enum):
    """What kind of document the input is."""

    AUTO = "auto"
    MEETING = "meeting"
    REQUIREMENTS = "requirements"
    INCIDENT = "incident"
    STUDY = "study"
    DRAFT_ARTICLE = "draftarticle"
    CHAT_SUMMARY = "chatsummary"
    GENERIC = "generic"


class TransformMode(str, Enum):
    """How closely the output should follow the input."""

    BALANCED = "balanced"
    STRICT = "strict"
    COMPACT = "compact"
    VERBOSE = "verbose"


@dataclass(slots=True, frozen=True)
class TransformRequest:
    """One user action: the text plus formatting options."""

    text: str
    intent: TransformIntent = TransformIntent.AUTO
    mode: TransformMode = TransformMode.BALANCED
    include_raw: bool = True
    title_hint: str | None = None


@dataclass(slots=True, frozen=True)
class HistoryPaths:
    """Sibling files of one history entry."""

    input: str
    output: str
    meta: str

    def to_dict(self) -> dict[str, str]:
        return {"input": self.input, "output": self.output, "meta": self.meta}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> HistoryPaths:
        return cls(
            input=str(payload["input"]),
            output=str(payload["output"]),
            meta=str(payload["meta"]),
        )


@dataclass(slots=True, frozen=True)
class TransformMeta:
    """Metadata written once per successful transform."""

    id: str
    created_at: datetime
    title: str
    intent: str
    mode: str
    include_raw: bool
    input_chars: int
    duration_ms: int
    paths: HistoryPaths
    title_hint: str | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with snake_case keys; ``None`` fields are omitted."""

        payload: dict[str, Any] = {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "title": self.title,
            "intent": self.intent,
            "mode": self.mode,
            "include_raw": self.include_raw,
            "title_hint": self.title_hint,
            "input_chars": self.input_chars,
            "duration_ms": self.duration_ms,
            "warnings": list(self.warnings),
            "paths": self.paths.to_dict(),
        }
        return {key: value for key, value in payload.items() if value is not None}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TransformMeta:
        title_hint = payload.get("title_hint")
        return cls(
            id=str(payload["id"]),
            created_at=datetime.fromisoformat(str(payload["created_at"])),
            title=str(payload["title"]),
            intent=str(payload["intent"]),
            mode=str(payload["mode"]),
            include_raw=bool(payload["include_raw"]),
            title_hint=str(title_hint) if title_hint is not None else None,
            input_chars=int(payload["input_chars"]),
            duration_ms=int(payload["duration_ms"]),
            warnings=tuple(str(item) for item in payload.get("warnings") or ()),
            paths=HistoryPaths.from_dict(payload["paths"]),
        )


@dataclass(slots=True, frozen=True)
class TransformResult:
    """Markdown produced by the CLI plus its metadata."""

    markdown: str
    meta: TransformMeta


@dataclass(slots=True, frozen=True)
class AppSettings:
    """User defaults applied when a request does not set an option."""

    default_intent: TransformIntent = TransformIntent.AUTO
    default_mode: TransformMode = TransformMode.BALANCED
    default_include_raw: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_intent": self.default_intent.value,
            "default_mode": self.default_mode.value,
            "default_include_raw": self.default_include_raw,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> AppSettings:
        defaults = cls()
        return cls(
            default_intent=TransformIntent(
                payload.get("default_intent", defaults.default_intent.value),
            ),
            default_mode=TransformMode(payload.get("default_mode", defaults.default_mode.value)),
            default_include_raw=bool(
                payload.get("default_include_raw", defaults.default_include_raw),
            ),
        )

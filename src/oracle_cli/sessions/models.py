from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class SessionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ERROR)


ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.RUNNING, SessionStatus.ERROR}),
    SessionStatus.RUNNING: frozenset({SessionStatus.COMPLETED, SessionStatus.ERROR}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.ERROR: frozenset(),
}

DEFAULT_MAX_FILE_SIZE_BYTES = 1_000_000


@dataclass(frozen=True)
class RunOptions:
    prompt: str
    model: str
    files: tuple[str, ...] = ()
    models: tuple[str, ...] = ()
    system: str | None = None
    search: bool = True
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    max_output_tokens: int | None = None
    slug: str | None = None

    @property
    def is_multi_model(self) -> bool:
        return len(self.models) > 1

    @property
    def requested_models(self) -> list[str]:
        return list(self.models) if self.models else [self.model]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["files"] = list(self.files)
        data["models"] = list(self.models)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunOptions:
        return cls(
            prompt=str(data.get("prompt") or ""),
            model=str(data.get("model") or ""),
            files=tuple(str(f) for f in data.get("files") or ()),
            models=tuple(str(m) for m in data.get("models") or ()),
            system=data.get("system"),
            search=bool(data.get("search", True)),
            max_file_size_bytes=int(data.get("max_file_size_bytes") or DEFAULT_MAX_FILE_SIZE_BYTES),
            max_output_tokens=data.get("max_output_tokens"),
            slug=data.get("slug"),
        )


@dataclass(frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: Usage) -> Usage:
        if self.cost_usd is None and other.cost_usd is None:
            cost = None
        else:
            cost = (self.cost_usd or 0.0) + (other.cost_usd or 0.0)
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cost_usd=cost,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Usage:
        cost = data.get("cost_usd")
        return cls(
            input_tokens=int(data.get("input_tokens") or 0),
            output_tokens=int(data.get("output_tokens") or 0),
            cost_usd=float(cost) if cost is not None else None,
        )


@dataclass(frozen=True)
class SessionRecord:
    id: str
    status: SessionStatus
    created_at: str
    model: str
    options: RunOptions
    cwd: str = ""
    models: tuple[str, ...] = ()
    prompt_preview: str = ""
    started_at: str | None = None
    completed_at: str | None = None
    usage: Usage | None = None
    error_message: str | None = None
    detached: bool = False
    pid: int | None = None
    model_outcomes: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "model": self.model,
            "models": list(self.models),
            "cwd": self.cwd,
            "prompt_preview": self.prompt_preview,
            "options": self.options.to_dict(),
            "usage": self.usage.to_dict() if self.usage else None,
            "error_message": self.error_message,
            "detached": self.detached,
            "pid": self.pid,
            "model_outcomes": list(self.model_outcomes),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionRecord:
        """Build a record from its JSON form. Raises KeyError/ValueError on malformed input."""
        options = data.get("options") or {}
        if not isinstance(options, dict):
            raise ValueError(f"Malformed options for session {data.get('id')!r}")
        usage = data.get("usage")
        pid = data.get("pid")
        return cls(
            id=str(data["id"]),
            status=SessionStatus(data["status"]),
            created_at=str(data["created_at"]),
            model=str(data.get("model") or ""),
            options=RunOptions.from_dict(options),
            cwd=str(data.get("cwd") or ""),
            models=tuple(str(m) for m in data.get("models") or ()),
            prompt_preview=str(data.get("prompt_preview") or ""),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            usage=Usage.from_dict(usage) if isinstance(usage, dict) else None,
            error_message=data.get("error_message"),
            detached=bool(data.get("detached", False)),
            pid=int(pid) if pid is not None else None,
            model_outcomes=tuple(data.get("model_outcomes") or ()),
        )


@dataclass(frozen=True)
class SessionRange:
    entries: list[SessionRecord]
    truncated: bool
    total: int


@dataclass(frozen=True)
class RetentionResult:
    deleted: int

from __future__ import annotations

import json
import os
import random
import re
import shutil
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger

from oracle_cli.errors import InvalidTransitionError, SessionNotFoundError, StorageIOError
from oracle_cli.sessions.models import (
    ALLOWED_TRANSITIONS,
    RetentionResult,
    RunOptions,
    SessionRange,
    SessionRecord,
    SessionStatus,
)

MAX_STATUS_LIMIT = 1000
PROMPT_PREVIEW_CHARS = 160

SESSION_FILE = "session.json"
REQUEST_FILE = "request.json"
LOG_FILE = "output.log"


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="milliseconds")


def parse_iso(value: str | None) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def slugify(text: str, max_length: int = 32) -> str:
    words = re.findall(r"[a-z0-9]+", text.lower())
    if not words:
        return "session"
    parts: list[str] = []
    length = 0
    for word in words:
        projected = len(word) if length == 0 else length + 1 + len(word)
        if projected > max_length:
            if not parts:
                parts.append(word[:max_length])
            break
        parts.append(word)
        length = projected
    return "-".join(parts) or "session"


def create_session_id(prompt: str, now: datetime, slug: str | None = None) -> str:
    timestamp = now.astimezone(UTC).strftime("%Y-%m-%d-%H-%M-%S")
    return f"{timestamp}-{slugify(slug or prompt)}"


def filter_by_range(
    records: list[SessionRecord],
    *,
    hours: float = 24,
    include_all: bool = False,
    limit: int = 100,
    now: datetime | None = None,
) -> SessionRange:
    max_limit = min(limit, MAX_STATUS_LIMIT)
    filtered = records
    if not include_all:
        cutoff = (now or utc_now()) - timedelta(hours=hours)
        filtered = [
            record for record in records
            if (created := parse_iso(record.created_at)) is not None and created >= cutoff
        ]
    return SessionRange(
        entries=list(filtered[: max(0, max_limit)]),
        truncated=len(filtered) > max_limit,
        total=len(filtered),
    )


def _to_json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_to_json_value(v) for v in value]
    if isinstance(value, list):
        return [_to_json_value(v) for v in value]
    return value


class SessionStore:
    """File-backed session records, one directory per session id.

    Writes replace ``session.json`` wholesale through a temp file so readers
    never observe a half-written record. Concurrent updates to the same id are
    not serialised: the last writer wins.
    """

    def __init__(self, sessions_dir: str | Path, *, clock: Callable[[], datetime] = utc_now):
        self._root = Path(sessions_dir)
        self._clock = clock

    @property
    def root(self) -> Path:
        return self._root

    def session_dir(self, session_id: str) -> Path:
        return self._root / session_id

    def ensure_storage(self) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as ex:
            raise StorageIOError(f"Cannot create session storage at {self._root}: {ex}") from ex

    def create(self, options: RunOptions, cwd: str) -> SessionRecord:
        self.ensure_storage()
        now = self._clock()
        session_id = create_session_id(options.prompt or "session", now, options.slug)
        while self.session_dir(session_id).exists():
            session_id = f"{session_id}-{random.randint(0, 999)}"

        record = SessionRecord(
            id=session_id,
            status=SessionStatus.PENDING,
            created_at=to_iso(now),
            model=options.model,
            models=options.models,
            cwd=cwd,
            prompt_preview=(options.prompt or "")[:PROMPT_PREVIEW_CHARS],
            options=options,
        )
        directory = self.session_dir(session_id)
        try:
            directory.mkdir(parents=True)
            self._write_json(directory / SESSION_FILE, record.to_dict())
            self._write_json(directory / REQUEST_FILE, options.to_dict())
            (directory / LOG_FILE).write_text("", encoding="utf-8")
        except OSError as ex:
            raise StorageIOError(f"Cannot initialise session {session_id}: {ex}") from ex
        logger.debug(f"Session created: id={session_id}, model={options.model}, models={list(options.models)}")
        return record

    def read(self, session_id: str) -> SessionRecord | None:
        raw = self._read_raw(session_id)
        if raw is None:
            return None
        try:
            return SessionRecord.from_dict(raw)
        except (AttributeError, KeyError, TypeError, ValueError):
            logger.debug(f"Ignoring malformed session record: {session_id}")
            return None

    def read_request(self, session_id: str) -> RunOptions | None:
        try:
            raw = json.loads((self.session_dir(session_id) / REQUEST_FILE).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return RunOptions.from_dict(raw) if isinstance(raw, dict) else None

    def update(self, session_id: str, fields: dict[str, Any]) -> SessionRecord:
        existing = self._read_raw(session_id)
        if existing is None:
            raise SessionNotFoundError(session_id)
        merged = {**existing, **{key: _to_json_value(value) for key, value in fields.items()}}
        try:
            self._write_json(self.session_dir(session_id) / SESSION_FILE, merged)
        except OSError as ex:
            raise StorageIOError(f"Cannot update session {session_id}: {ex}") from ex
        return SessionRecord.from_dict(merged)

    def transition(self, session_id: str, status: SessionStatus, **fields: Any) -> SessionRecord:
        current = self.read(session_id)
        if current is None:
            raise SessionNotFoundError(session_id)
        if status not in ALLOWED_TRANSITIONS[current.status]:
            raise InvalidTransitionError(session_id, current.status.value, status.value)

        now = to_iso(self._clock())
        updates: dict[str, Any] = {"status": status}
        if status is SessionStatus.RUNNING:
            updates["started_at"] = now
        elif status.is_terminal:
            updates["completed_at"] = now
        updates.update(fields)
        logger.debug(f"Session {session_id}: {current.status.value} -> {status.value}")
        return self.update(session_id, updates)

    def list(self) -> list[SessionRecord]:
        self.ensure_storage()
        records = [
            record
            for entry in sorted(self._root.iterdir())
            if entry.is_dir() and (record := self.read(entry.name)) is not None
        ]
        epoch = datetime.min.replace(tzinfo=UTC)
        records.sort(key=lambda r: parse_iso(r.created_at) or epoch, reverse=True)
        return records

    def filter_by_range(
        self,
        records: list[SessionRecord],
        *,
        hours: float = 24,
        include_all: bool = False,
        limit: int = 100,
    ) -> SessionRange:
        return filter_by_range(records, hours=hours, include_all=include_all, limit=limit, now=self._clock())

    def delete_older_than(self, *, hours: float = 24, include_all: bool = False) -> RetentionResult:
        self.ensure_storage()
        cutoff = self._clock() - timedelta(hours=hours)
        deleted = 0

        for entry in sorted(self._root.iterdir()):
            if not entry.is_dir():
                continue
            if not include_all:
                created = self._created_at_for(entry)
                if created is None or created >= cutoff:
                    continue
            try:
                shutil.rmtree(entry)
            except OSError as ex:
                logger.warning(f"Failed to delete session directory {entry}: {ex}")
                continue
            deleted += 1

        logger.info(f"Deleted {deleted} session(s) from {self._root}")
        return RetentionResult(deleted=deleted)

    def _created_at_for(self, directory: Path) -> datetime | None:
        raw = self._read_raw(directory.name)
        if raw is not None:
            created = parse_iso(raw.get("created_at"))
            if created is not None:
                return created
        try:
            stats = directory.stat()
        except OSError:
            return None
        timestamp = getattr(stats, "st_birthtime", None) or stats.st_mtime
        return datetime.fromtimestamp(timestamp, tz=UTC)

    def _read_raw(self, session_id: str) -> dict[str, Any] | None:
        try:
            raw = (self.session_dir(session_id) / SESSION_FILE).read_text(encoding="utf-8")
            parsed = json.loads(raw)
        except (OSError, ValueError):
            return None
        return parsed if isinstance(parsed, dict) else None

    def _write_json(self, path: Path, payload: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

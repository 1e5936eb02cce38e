from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

from oracle_cli.sessions.store import LOG_FILE


class SessionLogWriter:
    """Append-only writer for one session transcript.

    Every write is flushed so tailing readers see it immediately.
    """

    def __init__(self, path: Path):
        self._path = path
        self._handle: BinaryIO | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._handle is None

    def open(self) -> SessionLogWriter:
        if self._handle is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self._path, "ab")
        return self

    def log_line(self, line: str = "") -> None:
        self.write_chunk(f"{line}\n")

    def write_chunk(self, chunk: str) -> None:
        if self._handle is None:
            raise ValueError(f"Log writer for {self._path} is closed")
        self._handle.write(chunk.encode("utf-8"))
        self._handle.flush()

    def close(self) -> None:
        if self._handle is not None:
            try:
                self._handle.flush()
            finally:
                self._handle.close()
                self._handle = None

    def __enter__(self) -> SessionLogWriter:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class LogChannel:
    def __init__(self, sessions_dir: str | Path):
        self._root = Path(sessions_dir)

    def log_path(self, session_id: str) -> Path:
        return self._root / session_id / LOG_FILE

    def open_for_append(self, session_id: str) -> SessionLogWriter:
        return SessionLogWriter(self.log_path(session_id))

    def read_all(self, session_id: str) -> bytes:
        try:
            return self.log_path(session_id).read_bytes()
        except OSError:
            return b""

    def size(self, session_id: str) -> int:
        try:
            return self.log_path(session_id).stat().st_size
        except OSError:
            return 0

    def tail(self, session_id: str, previous_length: int) -> bytes:
        """Return the bytes written after ``previous_length``."""
        try:
            with open(self.log_path(session_id), "rb") as handle:
                handle.seek(max(0, previous_length))
                return handle.read()
        except OSError:
            return b""

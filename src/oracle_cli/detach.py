from __future__ import annotations

import os
import platform
import subprocess
import sys
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from oracle_cli.errors import DetachLaunchError, SessionNotFoundError
from oracle_cli.sessions.models import SessionStatus
from oracle_cli.sessions.store import SessionStore

_IS_WINDOWS = platform.system() == "Windows"

# Model-name prefixes pinned to inline execution; they hang when started detached.
_DETACH_POLICY: tuple[tuple[str, bool], ...] = (
    ("gemini", False),
)


def _model_allows_detach(model: str) -> bool:
    name = model.strip().lower()
    for prefix, allowed in _DETACH_POLICY:
        if name.startswith(prefix):
            return allowed
    return True


def should_detach_session(models: Iterable[str], *, disable_detach: bool) -> bool:
    if disable_detach:
        return False
    return all(_model_allows_detach(m) for m in models)


class BackgroundRunner:
    """Starts ``python -m oracle_cli exec-session <id>`` as an independent process."""

    def __init__(self, home_dir: str | Path, store: SessionStore, *, python_executable: str | None = None):
        self._home_dir = Path(home_dir)
        self._store = store
        self._python = python_executable or sys.executable
        self._children: dict[int, subprocess.Popen] = {}

    def build_command(self, session_id: str) -> list[str]:
        return [self._python, "-m", "oracle_cli", "--home", str(self._home_dir), "exec-session", session_id]

    def launch_detached(self, session_id: str) -> int:
        record = self._store.read(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)

        command = self.build_command(session_id)
        cwd = record.cwd if record.cwd and Path(record.cwd).is_dir() else None
        popen_kwargs: dict = dict(
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            env={**os.environ, "ORACLE_HOME_DIR": str(self._home_dir)},
            close_fds=True,
        )
        if _IS_WINDOWS:
            popen_kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            popen_kwargs["start_new_session"] = True

        # Written before spawning: the child owns the record once it starts.
        self._store.update(session_id, {"detached": True})
        try:
            process = subprocess.Popen(command, **popen_kwargs)  # noqa: S603
        except OSError as ex:
            message = f"Failed to launch detached session: {ex}"
            logger.error(f"Session {session_id}: {message}")
            self._store.transition(session_id, SessionStatus.ERROR, error_message=message, detached=False)
            raise DetachLaunchError(message) from ex

        self._children[process.pid] = process
        logger.info(f"Session {session_id} detached (pid={process.pid})")
        return process.pid

    def reap_finished(self) -> list[int]:
        """Collect exit statuses of children that have finished. Returns their pids."""
        finished = [pid for pid, process in self._children.items() if process.poll() is not None]
        for pid in finished:
            del self._children[pid]
        return finished

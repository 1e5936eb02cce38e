from __future__ import annotations

import asyncio
import codecs
from collections.abc import Callable

from loguru import logger

from oracle_cli.sessions.log_channel import LogChannel
from oracle_cli.sessions.models import SessionRecord, SessionStatus
from oracle_cli.sessions.store import SessionStore

DEFAULT_POLL_INTERVAL_SECONDS = 1.0


class StatusPoller:
    """Follows a session's transcript and status until it reaches a terminal state."""

    def __init__(
        self,
        store: SessionStore,
        log_channel: LogChannel,
        *,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self._store = store
        self._log_channel = log_channel
        self._interval = max(0.0, interval)

    async def attach(
        self,
        session_id: str,
        sink: Callable[[str], object],
        *,
        cancel: asyncio.Event | None = None,
        on_status: Callable[[SessionRecord], None] | None = None,
    ) -> SessionRecord | None:
        """Stream new log output into ``sink`` until the session is terminal.

        Returns the last record seen, or None if the session disappeared.
        Setting ``cancel`` stops following (after flushing output already
        written) without affecting the run itself.
        """
        cancel = cancel or asyncio.Event()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        offset = 0
        last_status: SessionStatus | None = None

        def drain() -> None:
            nonlocal offset
            chunk = self._log_channel.tail(session_id, offset)
            if not chunk:
                return
            offset += len(chunk)
            text = decoder.decode(chunk)
            if text:
                sink(text)

        while True:
            drain()
            record = self._store.read(session_id)
            if record is None:
                logger.debug(f"Session {session_id} no longer exists; stopping attach")
                return None

            if record.status is not last_status:
                last_status = record.status
                if on_status is not None:
                    on_status(record)

            if record.is_terminal:
                drain()
                tail = decoder.decode(b"", final=True)
                if tail:
                    sink(tail)
                return record

            try:
                await asyncio.wait_for(cancel.wait(), timeout=self._interval)
            except TimeoutError:
                continue
            drain()
            logger.debug(f"Attach to {session_id} cancelled")
            return self._store.read(session_id)

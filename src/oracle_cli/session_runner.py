from __future__ import annotations

import os

from loguru import logger

from oracle_cli.dispatcher import ModelDispatcher, ModelRunOutcome, MultiModelSummary
from oracle_cli.errors import SessionNotFoundError
from oracle_cli.request_builder import build_provider_request
from oracle_cli.sessions.log_channel import LogChannel
from oracle_cli.sessions.models import SessionRecord, SessionStatus
from oracle_cli.sessions.store import SessionStore


class SessionRunner:
    """The run path shared by foreground invocations and detached children."""

    def __init__(self, store: SessionStore, log_channel: LogChannel, dispatcher: ModelDispatcher):
        self._store = store
        self._log_channel = log_channel
        self._dispatcher = dispatcher

    async def run(self, session_id: str) -> ModelRunOutcome | MultiModelSummary:
        """Execute a pending session using only its persisted options.

        Single-model failures are recorded on the session and re-raised.
        Multi-model runs return their summary even when every model failed.
        """
        record = self._store.read(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)

        record = self._store.transition(session_id, SessionStatus.RUNNING, pid=os.getpid())
        options = record.options
        logger.info(f"Session {session_id} running: models={options.requested_models}")

        with self._log_channel.open_for_append(session_id) as writer:
            writer.log_line(f"Session {session_id} started at {record.started_at}")
            try:
                request = build_provider_request(options, record.cwd)
            except Exception as ex:
                writer.log_line(f"ERROR: {ex}")
                logger.error(f"Session {session_id}: request rejected: {ex}")
                self._store.transition(session_id, SessionStatus.ERROR, error_message=str(ex))
                raise

            if options.is_multi_model:
                return await self._dispatcher.run_multi(record, request, list(options.models), writer)
            return await self._dispatcher.run_single(record, request.for_model(_single_model(record)), writer)


def _single_model(record: SessionRecord) -> str:
    if record.options.models:
        return record.options.models[0]
    return record.options.model

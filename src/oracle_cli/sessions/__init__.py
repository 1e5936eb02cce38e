from oracle_cli.sessions.log_channel import LogChannel, SessionLogWriter
from oracle_cli.sessions.models import (
    RetentionResult,
    RunOptions,
    SessionRange,
    SessionRecord,
    SessionStatus,
    Usage,
)
from oracle_cli.sessions.store import MAX_STATUS_LIMIT, SessionStore, filter_by_range

__all__ = [
    "LogChannel",
    "MAX_STATUS_LIMIT",
    "RetentionResult",
    "RunOptions",
    "SessionLogWriter",
    "SessionRange",
    "SessionRecord",
    "SessionStatus",
    "SessionStore",
    "Usage",
    "filter_by_range",
]

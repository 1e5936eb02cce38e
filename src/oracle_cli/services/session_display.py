from __future__ import annotations

from oracle_cli.format import format_usd
from oracle_cli.sessions.models import SessionRange, SessionRecord

CLEANUP_TIP = "Tip: run `oracle-cli clear --hours 24` (or `--all`) to prune old sessions."


def normalize_timestamp(value: str) -> str:
    text = value.replace("T", " ")
    for marker in (".", "+", "Z"):
        cut = text.find(marker)
        if cut != -1:
            text = text[:cut]
    return text.strip()


def _fit(value: str, width: int) -> str:
    return value[:width].ljust(width)


class SessionDisplay:
    def __init__(self, *, line_prefix: str = ""):
        self._line_prefix = line_prefix

    def format_status_line(self, record: SessionRecord) -> str:
        model = record.model if len(record.models) <= 1 else f"{len(record.models)} models"
        return (
            f"{self._line_prefix}{normalize_timestamp(record.created_at)} | "
            f"{_fit(record.status.value, 9)} | {_fit(model, 10)} | {record.id}"
        )

    def render_status(self, session_range: SessionRange, *, hours: float, include_all: bool) -> list[str]:
        if not session_range.entries:
            window = "any time" if include_all else f"the last {hours:g}h"
            return [
                f"{self._line_prefix}No sessions found for {window}.",
                f"{self._line_prefix}{CLEANUP_TIP}",
            ]

        lines = [f"{self._line_prefix}Recent Sessions"]
        lines.extend(self.format_status_line(record) for record in session_range.entries)
        if session_range.truncated:
            lines.append(
                f"{self._line_prefix}Showing {len(session_range.entries)} of {session_range.total} sessions; "
                f"narrow --hours or raise --limit to see more."
            )
        return lines

    def format_summary_lines(self, record: SessionRecord) -> list[str]:
        lines = [f"{self._line_prefix}Session {record.id}: {record.status.value}"]
        if record.usage is not None:
            lines.append(
                f"{self._line_prefix}- Tokens: {record.usage.input_tokens:,} in / "
                f"{record.usage.output_tokens:,} out ({format_usd(record.usage.cost_usd)})"
            )
        if record.error_message:
            lines.append(f"{self._line_prefix}- Error: {record.error_message}")
        for outcome in record.model_outcomes:
            detail = outcome.get("status", "?")
            if outcome.get("error_reason"):
                detail += f" ({outcome['error_reason']})"
            lines.append(f"{self._line_prefix}- {outcome.get('model', '?')}: {detail}")
        return lines

from __future__ import annotations

import math

from oracle_cli.sessions.models import Usage


def format_usd(value: float | None) -> str:
    if value is None or not math.isfinite(value):
        return "n/a"
    return f"${value:.4f}"


def format_number(value: int | float | None, *, estimated: bool = False) -> str:
    if value is None:
        return "n/a"
    suffix = " (est.)" if estimated else ""
    return f"{value:,}{suffix}"


def format_elapsed(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes = int(seconds // 60)
    remainder = round(seconds - minutes * 60)
    if remainder == 60:
        minutes += 1
        remainder = 0
    return f"{minutes}m {remainder}s"


def format_metrics_line(elapsed_seconds: float, usage: Usage | None) -> str:
    parts = [f"Finished in {format_elapsed(elapsed_seconds)}"]
    if usage is not None:
        parts.append(
            f"tokens (input/output/total) {format_number(usage.input_tokens)}"
            f"/{format_number(usage.output_tokens)}/{format_number(usage.total_tokens)}"
        )
        parts.append(f"cost {format_usd(usage.cost_usd)}")
    return " | ".join(parts)

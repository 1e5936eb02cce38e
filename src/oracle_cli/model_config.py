from __future__ import annotations

from dataclasses import dataclass

from oracle_cli.sessions.models import Usage


@dataclass(frozen=True)
class ModelConfig:
    model: str
    input_per_token: float
    output_per_token: float


MODEL_CONFIGS: dict[str, ModelConfig] = {
    "gpt-5-pro": ModelConfig("gpt-5-pro", 15 / 1_000_000, 120 / 1_000_000),
    "gpt-5.1": ModelConfig("gpt-5.1", 1.25 / 1_000_000, 10 / 1_000_000),
    "gpt-4o-mini": ModelConfig("gpt-4o-mini", 0.15 / 1_000_000, 0.6 / 1_000_000),
    "gemini-3-pro": ModelConfig("gemini-3-pro", 2 / 1_000_000, 12 / 1_000_000),
    "claude-sonnet-4-5": ModelConfig("claude-sonnet-4-5", 3 / 1_000_000, 15 / 1_000_000),
    "claude-3-haiku-20240307": ModelConfig("claude-3-haiku-20240307", 0.25 / 1_000_000, 1.25 / 1_000_000),
}

DEFAULT_MODEL = "gpt-5-pro"

_ALIASES = {
    "gpt-5": "gpt-5.1",
    "gemini": "gemini-3-pro",
    "sonnet": "claude-sonnet-4-5",
    "claude": "claude-sonnet-4-5",
    "haiku": "claude-3-haiku-20240307",
}

DEFAULT_SYSTEM_PROMPT = (
    "You are Oracle, a focused one-shot problem solver. "
    "Emphasize direct answers, cite any files referenced, and clearly note when the search tool was used."
)


def resolve_model(name: str) -> str:
    normalized = name.strip().lower()
    if not normalized:
        return DEFAULT_MODEL
    return _ALIASES.get(normalized, normalized)


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float | None:
    config = MODEL_CONFIGS.get(model)
    if config is None:
        return None
    return input_tokens * config.input_per_token + output_tokens * config.output_per_token


def priced_usage(model: str, input_tokens: int, output_tokens: int) -> Usage:
    return Usage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost_usd=estimate_cost(model, input_tokens, output_tokens),
    )

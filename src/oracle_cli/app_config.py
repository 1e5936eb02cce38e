from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from oracle_cli.logging_config import LOG_FILE_NAME
from oracle_cli.model_config import DEFAULT_MODEL, resolve_model
from oracle_cli.sessions.models import DEFAULT_MAX_FILE_SIZE_BYTES


@dataclass
class RuntimeEnv:
    openai_api_key: str | None
    openai_base_url: str | None
    anthropic_api_key: str | None
    gemini_api_key: str | None


@dataclass
class AppConfig:
    home_dir: Path
    model: str
    models: list[str]
    search: bool
    max_file_size_bytes: int
    max_output_tokens: int | None
    poll_interval_seconds: float
    prompt_suffix: str
    disable_detach: bool
    log_level: str
    log_console_level: str
    log_file: Path

    @property
    def sessions_dir(self) -> Path:
        return self.home_dir / "sessions"

    @property
    def config_path(self) -> Path:
        return self.home_dir / "config.json"


def resolve_home_dir(env: dict[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    configured = env.get("ORACLE_HOME_DIR", "").strip()
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".oracle"


def load_json_config(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = json.load(f)
    except (OSError, ValueError) as ex:
        logger.warning(f"Failed to read {config_path}: {ex}")
        return {}
    return loaded if isinstance(loaded, dict) else {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        return default
    return bool(value)


def _optional_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def parse_app_config(config: dict, home_dir: Path, env: dict[str, str] | None = None) -> AppConfig:
    env = os.environ if env is None else env
    raw_models = config.get("Models") or []
    if isinstance(raw_models, str):
        raw_models = [m for m in raw_models.split(",") if m.strip()]
    search = config.get("Search", True)
    if isinstance(search, str) and search.strip().lower() in {"on", "off"}:
        search = search.strip().lower() == "on"
    return AppConfig(
        home_dir=home_dir,
        model=resolve_model(str(config.get("Model", DEFAULT_MODEL))),
        models=[resolve_model(str(m)) for m in raw_models],
        search=_to_bool(search, default=True),
        max_file_size_bytes=int(config.get("MaxFileSizeBytes", DEFAULT_MAX_FILE_SIZE_BYTES)),
        max_output_tokens=_optional_int(config.get("MaxOutputTokens")),
        poll_interval_seconds=float(config.get("PollIntervalSeconds", 1.0)),
        prompt_suffix=str(config.get("PromptSuffix", "")),
        disable_detach=_to_bool(env.get("ORACLE_NO_DETACH"), default=False)
        or _to_bool(config.get("DisableDetach", False), default=False),
        log_level=str(config.get("LogLevel", "INFO")),
        log_console_level=str(config.get("LogConsoleLevel", "WARNING")),
        log_file=Path(config["LogFile"]).expanduser() if config.get("LogFile") else home_dir / LOG_FILE_NAME,
    )


def resolve_runtime_env(env: dict[str, str] | None = None) -> RuntimeEnv:
    env = os.environ if env is None else env
    return RuntimeEnv(
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        openai_base_url=env.get("OPENAI_BASE_URL") or None,
        anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
        gemini_api_key=env.get("GEMINI_API_KEY") or None,
    )

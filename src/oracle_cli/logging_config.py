import sys
from pathlib import Path
from urllib.parse import urlsplit

from loguru import logger

LOG_FILE_NAME = "oracle.log"

_CONSOLE_FORMAT = "<level>{level:<8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {process} | {name}:{function}:{line} - {message}"


def setup_logging(
    level: str = "INFO",
    *,
    log_file: str | Path | None = None,
    console_level: str | None = "WARNING",
    rotation: str = "10 MB",
    retention: int = 3,
) -> list[str]:
    """Route loguru to stderr and/or a rotating file. Returns a description of each sink.

    Detached children pass ``console_level=None``: their stderr is discarded.
    """
    logger.remove()
    descriptions: list[str] = []

    if console_level is not None:
        logger.add(sys.stderr, level=console_level, format=_CONSOLE_FORMAT)
        descriptions.append(f"console (stderr, {console_level})")

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(str(path), level=level, format=_FILE_FORMAT, rotation=rotation, retention=retention)
        descriptions.append(f"file ({path}, {level})")

    return descriptions


def mask_api_key(key: str | None) -> str | None:
    if not key:
        return None
    if len(key) <= 8:
        return f"{key[0]}***{key[-1]}"
    return f"{key[:4]}****{key[-4:]}"


def format_base_url_for_log(raw: str | None) -> str:
    """Render a base URL without credentials, deep paths or query values."""
    if not raw:
        return ""
    parts = urlsplit(raw.strip())
    if not parts.scheme or not parts.hostname:
        trimmed = raw.strip()
        if len(trimmed) <= 64:
            return trimmed
        return f"{trimmed[:32]}…{trimmed[-8:]}"

    host = parts.hostname + (f":{parts.port}" if parts.port else "")
    segments = [s for s in parts.path.split("/") if s]
    path = ""
    if segments:
        path = f"/{segments[0]}" + ("/..." if len(segments) > 1 else "")
    query_keys = [pair.split("=", 1)[0] for pair in parts.query.split("&") if pair]
    masked = [f"{key}=***" for key in query_keys if key == "api-version"]
    query = f"?{'&'.join(masked)}" if masked else ""
    return f"{parts.scheme}://{host}{path}{query}"

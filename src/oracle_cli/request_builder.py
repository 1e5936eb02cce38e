from __future__ import annotations

from pathlib import Path

from loguru import logger

from oracle_cli.errors import FileValidationError, PromptValidationError
from oracle_cli.provider import AttachedFile, ProviderRequest
from oracle_cli.sessions.models import RunOptions


def read_attached_files(paths: tuple[str, ...] | list[str], cwd: str, max_file_size_bytes: int) -> tuple[AttachedFile, ...]:
    base = Path(cwd) if cwd else Path.cwd()
    attached: list[AttachedFile] = []
    for raw in paths:
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = base / path
        if not path.is_file():
            raise FileValidationError(f"Attached file not found: {raw}")
        try:
            size = path.stat().st_size
            if max_file_size_bytes > 0 and size > max_file_size_bytes:
                raise FileValidationError(
                    f"Attached file {raw} is {size:,} bytes; the limit is {max_file_size_bytes:,} bytes."
                )
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as ex:
            raise FileValidationError(f"Attached file {raw} is not UTF-8 text") from ex
        except OSError as ex:
            raise FileValidationError(f"Cannot read attached file {raw}: {ex}") from ex
        attached.append(AttachedFile(path=str(raw), content=content))
    return tuple(attached)


def build_provider_request(options: RunOptions, cwd: str) -> ProviderRequest:
    prompt = (options.prompt or "").strip()
    if not prompt:
        raise PromptValidationError("Prompt is required.")

    files = read_attached_files(options.files, cwd, options.max_file_size_bytes)
    logger.debug(f"Request built: prompt_chars={len(prompt)}, files={len(files)}")
    return ProviderRequest(
        prompt=prompt,
        model=options.model,
        files=files,
        system=options.system,
        search=options.search,
        max_output_tokens=options.max_output_tokens,
    )

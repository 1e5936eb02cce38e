import argparse
import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from oracle_cli.app_config import (
    AppConfig,
    load_json_config,
    parse_app_config,
    resolve_home_dir,
    resolve_runtime_env,
)
from oracle_cli.bootstrap import OracleContext, build_context
from oracle_cli.detach import should_detach_session
from oracle_cli.errors import OracleError
from oracle_cli.model_config import DEFAULT_SYSTEM_PROMPT, resolve_model
from oracle_cli.services.session_display import SessionDisplay
from oracle_cli.sessions.models import RunOptions, SessionRecord, SessionStatus


def _write_stdout(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oracle-cli", description="One-shot prompts to one or more LLMs, as durable sessions.")
    parser.add_argument("--home", help="Oracle home directory (default: $ORACLE_HOME_DIR or ~/.oracle)")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Start a new session")
    run.add_argument("prompt")
    run.add_argument("-f", "--file", action="append", default=[], help="Attach a file (repeatable)")
    run.add_argument("-m", "--model", help="Model id or alias")
    run.add_argument("--models", help="Comma-separated models for a multi-model run")
    run.add_argument("--system", help="Override the system prompt")
    run.add_argument("--slug", help="Custom session id slug")
    run.add_argument("--search", dest="search", action="store_true", default=None)
    run.add_argument("--no-search", dest="search", action="store_false")
    run.add_argument("--no-detach", action="store_true", help="Run in the foreground")
    run.add_argument("--no-wait", action="store_true", help="Return right after a detached launch")

    status = sub.add_parser("status", help="List recent sessions")
    status.add_argument("--hours", type=float, default=24)
    status.add_argument("--all", action="store_true")
    status.add_argument("--limit", type=int, default=100)

    attach = sub.add_parser("session", help="Attach to a session")
    attach.add_argument("session_id")

    clear = sub.add_parser("clear", help="Delete old sessions")
    clear.add_argument("--hours", type=float, default=24)
    clear.add_argument("--all", action="store_true")

    exec_session = sub.add_parser("exec-session", help=argparse.SUPPRESS)
    exec_session.add_argument("session_id")

    return parser


def _run_options(args: argparse.Namespace, app: AppConfig) -> RunOptions:
    models = [resolve_model(m) for m in (args.models or "").split(",") if m.strip()] or list(app.models)
    model = resolve_model(args.model) if args.model else (models[0] if models else app.model)
    prompt = args.prompt
    if app.prompt_suffix.strip():
        prompt = f"{prompt.strip()}\n{app.prompt_suffix}"
    return RunOptions(
        prompt=prompt,
        model=model,
        files=tuple(args.file),
        models=tuple(models) if len(models) > 1 else (),
        system=args.system or DEFAULT_SYSTEM_PROMPT,
        search=app.search if args.search is None else args.search,
        max_file_size_bytes=app.max_file_size_bytes,
        max_output_tokens=app.max_output_tokens,
        slug=args.slug,
    )


def _exit_code_for(record: SessionRecord | None) -> int:
    if record is None:
        return 1
    if record.options.is_multi_model:
        return 0
    return 0 if record.status is SessionStatus.COMPLETED else 1


async def _attach(ctx: OracleContext, session_id: str) -> int:
    display = SessionDisplay()
    if ctx.store.read(session_id) is None:
        print(f"Session not found: {session_id}")
        return 1
    record = await ctx.poller.attach(session_id, _write_stdout)
    if record is not None:
        print()
        for line in display.format_summary_lines(record):
            print(line)
    return _exit_code_for(record)


async def _run_inline(ctx: OracleContext, session_id: str) -> int:
    cancel = asyncio.Event()
    run_task = asyncio.create_task(ctx.runner.run(session_id))
    run_task.add_done_callback(lambda _: cancel.set())
    record = await ctx.poller.attach(session_id, _write_stdout, cancel=cancel)
    try:
        await run_task
    except Exception as ex:
        logger.error(f"Session {session_id} failed: {ex}")
        return 1
    return _exit_code_for(record)


async def _start(ctx: OracleContext, args: argparse.Namespace) -> int:
    options = _run_options(args, ctx.app)
    record = ctx.store.create(options, os.getcwd())
    print(f"Session {record.id} created ({', '.join(options.requested_models)})")

    disable_detach = args.no_detach or ctx.app.disable_detach
    if not should_detach_session(options.requested_models, disable_detach=disable_detach):
        return await _run_inline(ctx, record.id)

    ctx.background.launch_detached(record.id)
    if args.no_wait:
        print(f"Running in the background. Reattach with: oracle-cli session {record.id}")
        return 0
    try:
        return await _attach(ctx, record.id)
    finally:
        ctx.background.reap_finished()


async def _exec_session(ctx: OracleContext, session_id: str) -> int:
    try:
        await ctx.runner.run(session_id)
    except Exception as ex:
        logger.error(f"Detached session {session_id} failed: {ex}")
        return 1
    return 0


def _show_status(ctx: OracleContext, args: argparse.Namespace) -> int:
    session_range = ctx.store.filter_by_range(
        ctx.store.list(),
        hours=args.hours,
        include_all=args.all,
        limit=args.limit,
    )
    for line in SessionDisplay().render_status(session_range, hours=args.hours, include_all=args.all):
        print(line)
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _build_parser().parse_args(argv)

    home_dir = Path(args.home).expanduser() if args.home else resolve_home_dir()
    app = parse_app_config(load_json_config(home_dir / "config.json"), home_dir)
    ctx = build_context(app, resolve_runtime_env(), console_logging=args.command != "exec-session")
    logger.debug(f"Logging to: {', '.join(ctx.log_descriptions)}")

    try:
        if args.command == "run":
            return asyncio.run(_start(ctx, args))
        if args.command == "session":
            return asyncio.run(_attach(ctx, args.session_id))
        if args.command == "exec-session":
            return asyncio.run(_exec_session(ctx, args.session_id))
        if args.command == "status":
            return _show_status(ctx, args)
        if args.command == "clear":
            result = ctx.store.delete_older_than(hours=args.hours, include_all=args.all)
            print(f"Deleted {result.deleted} session(s).")
            return 0
    except OracleError as ex:
        logger.error(str(ex))
        return 1
    except KeyboardInterrupt:
        return 130
    return 2


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

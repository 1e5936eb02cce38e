from __future__ import annotations

from dataclasses import dataclass

from oracle_cli.app_config import AppConfig, RuntimeEnv
from oracle_cli.detach import BackgroundRunner
from oracle_cli.dispatcher import ModelDispatcher
from oracle_cli.logging_config import setup_logging
from oracle_cli.poller import StatusPoller
from oracle_cli.provider import ProviderFactory, provider_factory_for
from oracle_cli.session_runner import SessionRunner
from oracle_cli.sessions import LogChannel, SessionStore


@dataclass
class OracleContext:
    app: AppConfig
    store: SessionStore
    log_channel: LogChannel
    dispatcher: ModelDispatcher
    runner: SessionRunner
    background: BackgroundRunner
    poller: StatusPoller
    log_descriptions: list[str]


def build_context(
    app: AppConfig,
    env: RuntimeEnv,
    *,
    provider_factory: ProviderFactory | None = None,
    console_logging: bool = True,
) -> OracleContext:
    log_descriptions = setup_logging(
        app.log_level,
        log_file=app.log_file,
        console_level=app.log_console_level if console_logging else None,
    )

    store = SessionStore(app.sessions_dir)
    log_channel = LogChannel(app.sessions_dir)
    dispatcher = ModelDispatcher(store, provider_factory or provider_factory_for(env))
    return OracleContext(
        app=app,
        store=store,
        log_channel=log_channel,
        dispatcher=dispatcher,
        runner=SessionRunner(store, log_channel, dispatcher),
        background=BackgroundRunner(app.home_dir, store),
        poller=StatusPoller(store, log_channel, interval=app.poll_interval_seconds),
        log_descriptions=log_descriptions,
    )

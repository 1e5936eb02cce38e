from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from functools import reduce
from typing import Any

from loguru import logger

from oracle_cli.errors import ProviderTransportError
from oracle_cli.format import format_metrics_line
from oracle_cli.provider import ProviderFactory, ProviderRequest
from oracle_cli.sessions.log_channel import SessionLogWriter
from oracle_cli.sessions.models import SessionRecord, SessionStatus, Usage
from oracle_cli.sessions.store import SessionStore


class OutcomeStatus(str, Enum):
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ModelRunOutcome:
    model: str
    status: OutcomeStatus
    answer_text: str | None = None
    usage: Usage | None = None
    error_reason: str | None = None
    error_message: str | None = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.FULFILLED

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "status": self.status.value,
            "usage": self.usage.to_dict() if self.usage else None,
            "error_reason": self.error_reason,
            "error_message": self.error_message,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "answer_chars": len(self.answer_text or ""),
        }


@dataclass(frozen=True)
class MultiModelSummary:
    """Settled result of a multi-model dispatch. Every sequence keeps input order."""

    outcomes: tuple[ModelRunOutcome, ...]

    @property
    def fulfilled(self) -> tuple[ModelRunOutcome, ...]:
        return tuple(o for o in self.outcomes if o.ok)

    @property
    def rejected(self) -> tuple[ModelRunOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.ok)

    @property
    def usage(self) -> Usage | None:
        usages = [o.usage for o in self.fulfilled if o.usage is not None]
        if not usages:
            return None
        return reduce(lambda a, b: a + b, usages)


def _failure_details(ex: Exception) -> tuple[str, str]:
    if isinstance(ex, ProviderTransportError):
        return ex.reason, str(ex)
    return type(ex).__name__, str(ex) or type(ex).__name__


class ModelDispatcher:
    def __init__(self, store: SessionStore, provider_factory: ProviderFactory):
        self._store = store
        self._provider_factory = provider_factory

    async def run_single(
        self,
        record: SessionRecord,
        request: ProviderRequest,
        writer: SessionLogWriter,
    ) -> ModelRunOutcome:
        model = request.model
        streamed: list[str] = []

        def on_delta(text: str) -> None:
            streamed.append(text)
            writer.write_chunk(text)

        writer.log_line(f"Answer ({model}):")
        started = time.monotonic()
        try:
            provider = self._provider_factory(model)
            response = await provider.submit(request, on_delta=on_delta)
        except Exception as ex:
            _, message = _failure_details(ex)
            if streamed:
                writer.log_line()
            writer.log_line(f"ERROR: {message}")
            logger.error(f"Session {record.id}: {model} failed: {message}")
            self._store.transition(record.id, SessionStatus.ERROR, error_message=message)
            raise

        elapsed = time.monotonic() - started
        if not streamed:
            writer.write_chunk(response.answer_text)
        writer.log_line()
        writer.log_line(format_metrics_line(elapsed, response.usage))
        self._store.transition(record.id, SessionStatus.COMPLETED, usage=response.usage)
        logger.info(f"Session {record.id}: {model} completed in {elapsed:.2f}s")
        return ModelRunOutcome(
            model=model,
            status=OutcomeStatus.FULFILLED,
            answer_text=response.answer_text,
            usage=response.usage,
            elapsed_seconds=elapsed,
        )

    async def dispatch_all(self, request: ProviderRequest, models: list[str]) -> MultiModelSummary:
        """Call every model concurrently and wait for all of them to settle."""
        if not models:
            raise ValueError("At least one model is required for a multi-model dispatch")

        async def run_one(model: str) -> ModelRunOutcome:
            buffer: list[str] = []
            started = time.monotonic()
            try:
                provider = self._provider_factory(model)
                response = await provider.submit(request.for_model(model), on_delta=buffer.append)
            except Exception as ex:
                reason, message = _failure_details(ex)
                logger.warning(f"{model} rejected ({reason}): {message}")
                return ModelRunOutcome(
                    model=model,
                    status=OutcomeStatus.REJECTED,
                    error_reason=reason,
                    error_message=message,
                    elapsed_seconds=time.monotonic() - started,
                )
            return ModelRunOutcome(
                model=model,
                status=OutcomeStatus.FULFILLED,
                answer_text=response.answer_text or "".join(buffer),
                usage=response.usage,
                elapsed_seconds=time.monotonic() - started,
            )

        outcomes = await asyncio.gather(*(run_one(m) for m in models))
        return MultiModelSummary(outcomes=tuple(outcomes))

    async def run_multi(
        self,
        record: SessionRecord,
        request: ProviderRequest,
        models: list[str],
        writer: SessionLogWriter,
    ) -> MultiModelSummary:
        writer.log_line(f"Dispatching to {len(models)} models: {', '.join(models)}")
        summary = await self.dispatch_all(request, models)

        # Per-model output is only interleaved here, after every call settled.
        for outcome in summary.outcomes:
            writer.log_line()
            writer.log_line(f"=== {outcome.model} ===")
            if outcome.ok:
                writer.write_chunk(outcome.answer_text or "")
                writer.log_line()
                writer.log_line(format_metrics_line(outcome.elapsed_seconds, outcome.usage))
            else:
                writer.log_line(f"ERROR ({outcome.error_reason}): {outcome.error_message}")

        writer.log_line()
        writer.log_line(f"{len(summary.fulfilled)}/{len(models)} models completed")

        model_outcomes = [o.to_dict() for o in summary.outcomes]
        if summary.fulfilled:
            self._store.transition(
                record.id,
                SessionStatus.COMPLETED,
                usage=summary.usage,
                model_outcomes=model_outcomes,
            )
        else:
            self._store.transition(
                record.id,
                SessionStatus.ERROR,
                error_message=f"All {len(models)} models failed",
                model_outcomes=model_outcomes,
            )
        logger.info(
            f"Session {record.id}: multi-model run settled "
            f"(fulfilled={len(summary.fulfilled)}, rejected={len(summary.rejected)})"
        )
        return summary

from __future__ import annotations


class OracleError(Exception):
    """Base class for every error raised by oracle-cli."""


class FileValidationError(OracleError):
    pass


class PromptValidationError(OracleError):
    pass


class BrowserAutomationError(OracleError):
    pass


class StorageIOError(OracleError):
    pass


class SessionNotFoundError(OracleError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidTransitionError(OracleError):
    def __init__(self, session_id: str, current: str, requested: str):
        super().__init__(f"Session {session_id} cannot move from {current} to {requested}")
        self.session_id = session_id
        self.current = current
        self.requested = requested


class DetachLaunchError(OracleError):
    pass


class ProviderError(OracleError):
    """Raised by provider adapters when a model call fails."""


class ProviderTransportError(ProviderError):
    def __init__(self, reason: str, message: str, *, model: str | None = None):
        super().__init__(message)
        self.reason = reason
        self.model = model


# Known replacements offered when a model id is rejected by the provider.
_MODEL_FALLBACKS = {
    "gpt-5.1-pro": "gpt-5-pro",
    "gpt-5-pro": "gpt-5.1",
}


def to_transport_error(exc: BaseException, model: str) -> ProviderTransportError:
    """Map an SDK / HTTP exception to a ProviderTransportError with a reason."""
    if isinstance(exc, ProviderTransportError):
        return exc

    name = type(exc).__name__
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    code = getattr(exc, "code", None)
    body = getattr(exc, "body", None)
    if code is None and isinstance(body, dict):
        error_body = body.get("error", body)
        if isinstance(error_body, dict):
            code = error_body.get("code") or error_body.get("type")

    if code in ("model_not_found", "not_found_error") or status == 404:
        hint = _MODEL_FALLBACKS.get(model)
        message = f"Model {model} is not available to this API key."
        if hint:
            message += f" Try {hint} instead."
        return ProviderTransportError("model-unavailable", message, model=model)
    if status == 429 or "RateLimit" in name:
        return ProviderTransportError("rate-limit", f"{model}: rate limited ({exc})", model=model)
    if "Timeout" in name:
        return ProviderTransportError("timeout", f"{model}: request timed out ({exc})", model=model)
    if "Connection" in name or "ConnectError" in name or "TransportError" in name:
        return ProviderTransportError("connection", f"{model}: connection failed ({exc})", model=model)
    if status is not None:
        return ProviderTransportError("api-error", f"{model}: API error {status} ({exc})", model=model)
    return ProviderTransportError("unknown", f"{model}: {exc}", model=model)

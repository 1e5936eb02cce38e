import httpx
from loguru import logger
from tenacity import retry

from oracle_cli.errors import ProviderTransportError, to_transport_error
from oracle_cli.logging_config import mask_api_key
from oracle_cli.model_config import priced_usage
from oracle_cli.provider import ProviderRequest, ProviderResponse, TextDeltaCallback
from oracle_cli.providers.common import default_retry_kwargs, require_api_key

_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
_TIMEOUT = httpx.Timeout(600.0, connect=30.0)

# Public model names that differ from the API's preview identifiers.
_MODEL_IDS = {
    "gemini-3-pro": "gemini-3-pro-preview",
}


class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def resolve_gemini_model_id(model: str) -> str:
    return _MODEL_IDS.get(model, model)


def _build_body(request: ProviderRequest) -> dict:
    body: dict = {
        "contents": [{"role": "user", "parts": [{"text": request.user_message()}]}],
    }
    if request.system:
        body["systemInstruction"] = {"parts": [{"text": request.system}]}
    if request.search:
        body["tools"] = [{"google_search": {}}]
    if request.max_output_tokens:
        body["generationConfig"] = {"maxOutputTokens": request.max_output_tokens}
    return body


def _extract_text(payload: dict) -> str:
    parts: list[str] = []
    for candidate in payload.get("candidates") or []:
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            text = part.get("text")
            if isinstance(text, str):
                parts.append(text)
        break
    return "".join(parts)


class GeminiProvider:
    def __init__(self, api_key: str | None, *, client: httpx.AsyncClient | None = None):
        self._api_key = api_key
        self._client = client
        logger.debug(f"Gemini client: key={mask_api_key(api_key)}")

    async def submit(
        self,
        request: ProviderRequest,
        *,
        on_delta: TextDeltaCallback | None = None,
    ) -> ProviderResponse:
        require_api_key(self._api_key, "GEMINI_API_KEY", request.model)
        try:
            payload = await self._generate(request)
        except (_RetryableStatus, httpx.HTTPError) as ex:
            raise to_transport_error(ex, request.model) from ex

        answer = _extract_text(payload)
        if not answer:
            reason = (payload.get("promptFeedback") or {}).get("blockReason")
            raise ProviderTransportError(
                "api-error",
                f"{request.model}: empty response{f' (blocked: {reason})' if reason else ''}",
                model=request.model,
            )
        if on_delta is not None:
            on_delta(answer)

        metadata = payload.get("usageMetadata") or {}
        input_tokens = int(metadata.get("promptTokenCount") or 0)
        output_tokens = int(metadata.get("candidatesTokenCount") or 0)
        logger.debug(
            f"API response: model={request.model}, text_len={len(answer)}, "
            f"input_tokens={input_tokens}, output_tokens={output_tokens}"
        )
        return ProviderResponse(
            answer_text=answer,
            usage=priced_usage(request.model, input_tokens, output_tokens),
        )

    @retry(**default_retry_kwargs((_RetryableStatus, httpx.TransportError)))
    async def _generate(self, request: ProviderRequest) -> dict:
        model_id = resolve_gemini_model_id(request.model)
        url = f"{_BASE_URL}/models/{model_id}:generateContent"
        logger.debug(f"API request: model={model_id}, files={len(request.files)}, search={request.search}")

        if self._client is not None:
            response = await self._client.post(url, params={"key": self._api_key}, json=_build_body(request))
        else:
            async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
                response = await client.post(url, params={"key": self._api_key}, json=_build_body(request))

        if response.status_code == 429 or response.status_code >= 500:
            raise _RetryableStatus(response)
        response.raise_for_status()
        return response.json()

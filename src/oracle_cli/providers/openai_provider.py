import openai
from loguru import logger
from tenacity import retry

from oracle_cli.errors import ProviderTransportError, to_transport_error
from oracle_cli.logging_config import format_base_url_for_log, mask_api_key
from oracle_cli.model_config import priced_usage
from oracle_cli.provider import ProviderRequest, ProviderResponse, TextDeltaCallback
from oracle_cli.providers.common import default_retry_kwargs, require_api_key


def _to_responses_input(request: ProviderRequest) -> list[dict]:
    return [
        {
            "role": "user",
            "content": [{"type": "input_text", "text": request.user_message()}],
        }
    ]


class OpenAIProvider:
    def __init__(self, api_key: str | None, *, base_url: str | None = None):
        self._api_key = api_key
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url) if api_key else None
        logger.debug(
            f"OpenAI client: key={mask_api_key(api_key)}, base_url={format_base_url_for_log(base_url) or 'default'}"
        )

    async def submit(
        self,
        request: ProviderRequest,
        *,
        on_delta: TextDeltaCallback | None = None,
    ) -> ProviderResponse:
        require_api_key(self._api_key, "OPENAI_API_KEY", request.model)
        try:
            return await self._stream_response(request, on_delta)
        except openai.OpenAIError as ex:
            raise to_transport_error(ex, request.model) from ex

    @retry(**default_retry_kwargs((
        openai.RateLimitError,
        openai.APIConnectionError,
        openai.APITimeoutError,
    )))
    async def _stream_response(
        self,
        request: ProviderRequest,
        on_delta: TextDeltaCallback | None,
    ) -> ProviderResponse:
        kwargs: dict = dict(
            model=request.model,
            input=_to_responses_input(request),
            stream=True,
        )
        if request.system:
            kwargs["instructions"] = request.system
        if request.search:
            kwargs["tools"] = [{"type": "web_search_preview"}]
        if request.max_output_tokens:
            kwargs["max_output_tokens"] = request.max_output_tokens

        logger.debug(
            f"API request: model={request.model}, files={len(request.files)}, search={request.search}"
        )
        text_parts: list[str] = []
        final_response = None
        stream = await self._client.responses.create(**kwargs)
        try:
            async for event in stream:
                event_type = getattr(event, "type", "")
                if event_type == "response.output_text.delta":
                    text_parts.append(event.delta)
                    if on_delta is not None:
                        on_delta(event.delta)
                elif event_type == "response.completed":
                    final_response = event.response
                elif event_type in ("response.failed", "error"):
                    detail = getattr(event, "message", None) or getattr(
                        getattr(getattr(event, "response", None), "error", None), "message", None
                    )
                    raise ProviderTransportError(
                        "api-error",
                        f"{request.model}: response failed ({detail or 'no detail'})",
                        model=request.model,
                    )
        except openai.OpenAIError as ex:
            # Text already reached the caller; a retry would stream it twice.
            if not text_parts:
                raise
            raise to_transport_error(ex, request.model) from ex

        answer = "".join(text_parts)
        input_tokens = output_tokens = 0
        if final_response is not None:
            if not answer:
                answer = getattr(final_response, "output_text", "") or ""
            usage = getattr(final_response, "usage", None)
            if usage is not None:
                input_tokens = int(getattr(usage, "input_tokens", 0) or 0)
                output_tokens = int(getattr(usage, "output_tokens", 0) or 0)

        logger.debug(
            f"API response: model={request.model}, text_len={len(answer)}, "
            f"input_tokens={input_tokens}, output_tokens={output_tokens}"
        )
        return ProviderResponse(
            answer_text=answer,
            usage=priced_usage(request.model, input_tokens, output_tokens),
        )

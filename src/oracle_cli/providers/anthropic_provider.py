import anthropic
from loguru import logger
from tenacity import retry

from oracle_cli.errors import to_transport_error
from oracle_cli.logging_config import mask_api_key
from oracle_cli.model_config import priced_usage
from oracle_cli.provider import ProviderRequest, ProviderResponse, TextDeltaCallback
from oracle_cli.providers.common import default_retry_kwargs, require_api_key

_DEFAULT_MAX_TOKENS = 8192


class AnthropicProvider:
    def __init__(self, api_key: str | None):
        self._api_key = api_key
        self._client = anthropic.AsyncAnthropic(api_key=api_key) if api_key else None
        logger.debug(f"Anthropic client: key={mask_api_key(api_key)}")

    async def submit(
        self,
        request: ProviderRequest,
        *,
        on_delta: TextDeltaCallback | None = None,
    ) -> ProviderResponse:
        require_api_key(self._api_key, "ANTHROPIC_API_KEY", request.model)
        try:
            return await self._stream_message(request, on_delta)
        except anthropic.AnthropicError as ex:
            raise to_transport_error(ex, request.model) from ex

    @retry(**default_retry_kwargs((
        anthropic.RateLimitError,
        anthropic.APIConnectionError,
        anthropic.APITimeoutError,
    )))
    async def _stream_message(
        self,
        request: ProviderRequest,
        on_delta: TextDeltaCallback | None,
    ) -> ProviderResponse:
        kwargs: dict = dict(
            model=request.model,
            max_tokens=request.max_output_tokens or _DEFAULT_MAX_TOKENS,
            messages=[{"role": "user", "content": request.user_message()}],
        )
        if request.system:
            kwargs["system"] = request.system
        if request.search:
            kwargs["tools"] = [{"type": "web_search_20250305", "name": "web_search", "max_uses": 5}]

        logger.debug(f"API request: model={request.model}, files={len(request.files)}, search={request.search}")
        emitted = False
        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if event.type == "content_block_delta" and event.delta.type == "text_delta":
                        emitted = True
                        if on_delta is not None:
                            on_delta(event.delta.text)
                response = await stream.get_final_message()
        except anthropic.AnthropicError as ex:
            # Text already reached the caller; a retry would stream it twice.
            if not emitted:
                raise
            raise to_transport_error(ex, request.model) from ex

        answer = "".join(block.text for block in response.content if block.type == "text")
        usage = response.usage
        logger.debug(
            f"API response: stop_reason={response.stop_reason}, "
            f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}"
        )
        return ProviderResponse(
            answer_text=answer,
            usage=priced_usage(request.model, usage.input_tokens, usage.output_tokens),
        )

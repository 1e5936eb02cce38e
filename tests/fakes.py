import asyncio

from oracle_cli.provider import ProviderRequest, ProviderResponse
from oracle_cli.sessions.models import Usage


class FakeProvider:
    def __init__(
        self,
        answer: str = "",
        *,
        deltas: list[str] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        usage: Usage | None = None,
    ):
        self._answer = answer
        self._deltas = deltas or []
        self._error = error
        self._delay = delay
        self._usage = usage or Usage(input_tokens=10, output_tokens=5, cost_usd=0.01)
        self.requests: list[ProviderRequest] = []

    async def submit(self, request: ProviderRequest, *, on_delta=None) -> ProviderResponse:
        self.requests.append(request)
        if self._delay:
            await asyncio.sleep(self._delay)
        for delta in self._deltas:
            if on_delta is not None:
                on_delta(delta)
        if self._error is not None:
            raise self._error
        return ProviderResponse(answer_text=self._answer or "".join(self._deltas), usage=self._usage)


def factory_for(providers: dict[str, FakeProvider]):
    def factory(model: str) -> FakeProvider:
        return providers[model]

    return factory

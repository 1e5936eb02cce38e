from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from oracle_cli.app_config import RuntimeEnv
from oracle_cli.sessions.models import Usage

TextDeltaCallback = Callable[[str], None]


@dataclass(frozen=True)
class AttachedFile:
    path: str
    content: str


@dataclass(frozen=True)
class ProviderRequest:
    prompt: str
    model: str
    files: tuple[AttachedFile, ...] = ()
    system: str | None = None
    search: bool = True
    max_output_tokens: int | None = None

    def for_model(self, model: str) -> ProviderRequest:
        return ProviderRequest(
            prompt=self.prompt,
            model=model,
            files=self.files,
            system=self.system,
            search=self.search,
            max_output_tokens=self.max_output_tokens,
        )

    def user_message(self) -> str:
        """Prompt followed by each attached file in a fenced block."""
        if not self.files:
            return self.prompt
        sections = [self.prompt, ""]
        for attached in self.files:
            sections.append(f"### File: {attached.path}")
            sections.append("```")
            sections.append(attached.content)
            sections.append("```")
            sections.append("")
        return "\n".join(sections).rstrip() + "\n"


@dataclass(frozen=True)
class ProviderResponse:
    answer_text: str
    usage: Usage


@runtime_checkable
class ModelProvider(Protocol):
    async def submit(
        self,
        request: ProviderRequest,
        *,
        on_delta: TextDeltaCallback | None = None,
    ) -> ProviderResponse:
        """Run one model call. Raises ProviderError on failure."""
        ...


ProviderFactory = Callable[[str], ModelProvider]


def provider_family(model: str) -> str:
    name = model.strip().lower()
    if name.startswith("claude"):
        return "anthropic"
    if name.startswith("gemini"):
        return "gemini"
    if name.startswith(("gpt", "o1", "o3", "o4")):
        return "openai"
    raise ValueError(f"Unknown provider for model: {model!r}. Supported prefixes: 'gpt', 'o', 'claude', 'gemini'")


def create_provider(model: str, env: RuntimeEnv) -> ModelProvider:
    """Factory: create a ModelProvider for a model id."""
    family = provider_family(model)
    if family == "anthropic":
        from oracle_cli.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(env.anthropic_api_key)
    if family == "gemini":
        from oracle_cli.providers.gemini_provider import GeminiProvider
        return GeminiProvider(env.gemini_api_key)
    from oracle_cli.providers.openai_provider import OpenAIProvider
    return OpenAIProvider(env.openai_api_key, base_url=env.openai_base_url)


def provider_factory_for(env: RuntimeEnv) -> ProviderFactory:
    def factory(model: str) -> ModelProvider:
        return create_provider(model, env)

    return factory

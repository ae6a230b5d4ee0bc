"""
Abstract base class for LLM providers.

Each backend (OpenAI, Anthropic, Gemini, the local mock) implements this
interface. The executor calls provider.complete(...) or iterates
provider.stream(...) without knowing which backend it talks to — it looks the
provider up from the registry by the job's provider name.

Same Strategy pattern as the metric plugins:
- AbstractProvider = interface
- OpenAIProvider, AnthropicProvider, GeminiProvider, MockProvider = implementations
- registry.py = factory lookup

To add a new provider:
1. Create a class that inherits AbstractProvider
2. Implement name, models and complete() (and stream() if the backend streams)
3. Add it to the registry
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from providers.pricing import estimate_cost


@dataclass
class ProviderOptions:
    """Sampling options passed to every provider call. None means provider default."""
    model: str
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    request_id: Optional[str] = None


@dataclass
class CompletionResult:
    output: str
    tokens: int
    cost: float


@dataclass
class StreamChunk:
    content: str
    is_final: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


class AbstractProvider(ABC):

    supports_streaming: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key (e.g., 'openai', 'gemini')."""
        ...

    @property
    @abstractmethod
    def models(self) -> list[str]:
        """Model names this provider accepts."""
        ...

    @abstractmethod
    async def complete(self, prompt: str, options: ProviderOptions) -> CompletionResult:
        """
        Return the whole response at once.

        Raises:
            ProviderConfigError: credentials missing (checked before any network call)
            Any other exception: categorized by providers/errors.py
        """
        ...

    def stream(self, prompt: str, options: ProviderOptions) -> AsyncIterator[StreamChunk]:
        """
        Yield the response incrementally. Finite and not restartable: calling
        stream() again starts a fresh generation.

        Only called when supports_streaming is True.
        """
        raise NotImplementedError(f"Provider '{self.name}' does not stream")

    def cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        return estimate_cost(self.name, model, input_tokens, output_tokens)

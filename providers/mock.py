"""
Simulated provider — no credentials, no network.

This is the most useful provider for demos and local development because:
- The output is deterministic (the prompt echoed back)
- You control the per-chunk delay (MOCK_CHUNK_DELAY_MS)
- You control whether it fails (fail_probability)

Examples:
    MockProvider()                         → streams "Echo: <prompt>" word by word
    MockProvider(fail_probability=1.0)     → every call fails with a network error,
                                             which exercises the retry path end to end
"""

import asyncio
import random
import re
from typing import AsyncIterator, Optional

from config.settings import settings
from models.enums import ErrorType
from providers.base import AbstractProvider, CompletionResult, ProviderOptions, StreamChunk
from providers.errors import ProviderError
from providers.pricing import estimate_tokens


class MockProvider(AbstractProvider):

    supports_streaming = True

    def __init__(self, fail_probability: float = 0.0, chunk_delay_ms: Optional[int] = None):
        self.fail_probability = fail_probability
        self.chunk_delay_ms = chunk_delay_ms

    @property
    def name(self) -> str:
        return "mock"

    @property
    def models(self) -> list[str]:
        return ["mock-echo"]

    def _respond(self, prompt: str) -> str:
        # Check for simulated failure before doing any work
        if random.random() < self.fail_probability:
            raise ProviderError(
                f"Simulated network failure (fail_probability={self.fail_probability})",
                ErrorType.NETWORK_ERROR,
            )
        return f"Echo: {prompt}"

    async def complete(self, prompt: str, options: ProviderOptions) -> CompletionResult:
        output = self._respond(prompt)
        tokens = estimate_tokens(prompt) + estimate_tokens(output)
        return CompletionResult(output=output, tokens=tokens, cost=0.0)

    async def stream(self, prompt: str, options: ProviderOptions) -> AsyncIterator[StreamChunk]:
        output = self._respond(prompt)
        delay_ms = settings.MOCK_CHUNK_DELAY_MS if self.chunk_delay_ms is None else self.chunk_delay_ms
        for piece in re.split(r"(\s+)", output):
            if piece:
                await asyncio.sleep(delay_ms / 1000)
                yield StreamChunk(content=piece)
        yield StreamChunk(content="", is_final=True)

"""
Google Gemini provider (generateContent REST endpoint).

Gemini has no incremental endpoint wired up here: stream() fetches the full
completion and replays it word by word with a short delay, preserving the
whitespace between words so the concatenated chunks equal the output.
"""

import asyncio
import re
from typing import AsyncIterator

from providers.base import CompletionResult, ProviderOptions, StreamChunk
from providers.http import HTTPProvider

REPLAY_DELAY_SEC = 0.02


class GeminiProvider(HTTPProvider):

    api_key_setting = "GEMINI_API_KEY"
    base_url_setting = "GEMINI_BASE_URL"
    display_name = "Gemini"
    supports_streaming = True

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def models(self) -> list[str]:
        return ["gemini-2.5-flash"]

    def _body(self, prompt: str, options: ProviderOptions) -> dict:
        generation_config = {}
        if options.temperature is not None:
            generation_config["temperature"] = options.temperature
        if options.top_p is not None:
            generation_config["topP"] = options.top_p
        if options.max_tokens is not None:
            generation_config["maxOutputTokens"] = options.max_tokens

        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if generation_config:
            body["generationConfig"] = generation_config
        return body

    async def complete(self, prompt: str, options: ProviderOptions) -> CompletionResult:
        api_key = self._require_api_key()
        async with self._client() as client:
            response = await client.post(
                f"/models/{options.model}:generateContent",
                params={"key": api_key},
                json=self._body(prompt, options),
            )
            response.raise_for_status()
            data = response.json()

        candidates = data.get("candidates") or [{}]
        parts = (candidates[0].get("content") or {}).get("parts") or []
        output = "".join(part.get("text", "") for part in parts)

        usage = data.get("usageMetadata") or {}
        input_tokens = usage.get("promptTokenCount", 0)
        output_tokens = usage.get("candidatesTokenCount", 0)
        tokens = usage.get("totalTokenCount", input_tokens + output_tokens)

        return CompletionResult(
            output=output,
            tokens=tokens,
            cost=self.cost(options.model, input_tokens, output_tokens),
        )

    async def stream(self, prompt: str, options: ProviderOptions) -> AsyncIterator[StreamChunk]:
        result = await self.complete(prompt, options)
        for piece in re.split(r"(\s+)", result.output):
            if piece:
                yield StreamChunk(content=piece)
                await asyncio.sleep(REPLAY_DELAY_SEC)
        yield StreamChunk(
            content="",
            is_final=True,
            extra={"tokens": result.tokens, "cost": result.cost},
        )

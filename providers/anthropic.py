"""
Anthropic messages provider.

Anthropic requires max_tokens on every request, so 4096 is sent when the job
does not set one. Streaming uses typed server-sent events: text arrives in
`content_block_delta` events and `message_stop` ends the generation.
"""

import json
from typing import AsyncIterator

from providers.base import CompletionResult, ProviderOptions, StreamChunk
from providers.http import HTTPProvider

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider(HTTPProvider):

    api_key_setting = "ANTHROPIC_API_KEY"
    base_url_setting = "ANTHROPIC_BASE_URL"
    display_name = "Anthropic"
    supports_streaming = True

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def models(self) -> list[str]:
        return ["claude-3-5-haiku-20241022"]

    def _headers(self, api_key: str) -> dict:
        return {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}

    def _body(self, prompt: str, options: ProviderOptions) -> dict:
        body = {
            "model": options.model,
            "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        if options.temperature is not None:
            body["temperature"] = options.temperature
        if options.top_p is not None:
            body["top_p"] = options.top_p
        return body

    async def complete(self, prompt: str, options: ProviderOptions) -> CompletionResult:
        api_key = self._require_api_key()
        async with self._client(self._headers(api_key)) as client:
            response = await client.post("/messages", json=self._body(prompt, options))
            response.raise_for_status()
            data = response.json()

        output = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)

        return CompletionResult(
            output=output,
            tokens=input_tokens + output_tokens,
            cost=self.cost(options.model, input_tokens, output_tokens),
        )

    async def stream(self, prompt: str, options: ProviderOptions) -> AsyncIterator[StreamChunk]:
        api_key = self._require_api_key()
        body = {**self._body(prompt, options), "stream": True}

        async with self._client(self._headers(api_key)) as client:
            async with client.stream("POST", "/messages", json=body) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    event = json.loads(line[len("data:"):].strip())
                    event_type = event.get("type")
                    if event_type == "content_block_delta":
                        delta = event.get("delta") or {}
                        if delta.get("type") == "text_delta" and delta.get("text"):
                            yield StreamChunk(content=delta["text"])
                    elif event_type == "message_stop":
                        yield StreamChunk(content="", is_final=True)
                        return
                    elif event_type == "error":
                        message = (event.get("error") or {}).get("message", "stream error")
                        raise RuntimeError(f"Anthropic API error: {message}")

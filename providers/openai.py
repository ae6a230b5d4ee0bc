"""
OpenAI chat-completions provider.

complete(): one POST to /chat/completions, usage taken from the response.
stream():   same endpoint with "stream": true; the body is server-sent events,
            one JSON chunk per `data:` line, terminated by `data: [DONE]`.
"""

import json
from typing import AsyncIterator

from providers.base import CompletionResult, ProviderOptions, StreamChunk
from providers.http import HTTPProvider


class OpenAIProvider(HTTPProvider):

    api_key_setting = "OPENAI_API_KEY"
    base_url_setting = "OPENAI_BASE_URL"
    display_name = "OpenAI"
    supports_streaming = True

    @property
    def name(self) -> str:
        return "openai"

    @property
    def models(self) -> list[str]:
        return ["gpt-4.1-nano", "gpt-4.1-mini", "gpt-4.1", "gpt-4o-mini"]

    def _body(self, prompt: str, options: ProviderOptions) -> dict:
        body = {
            "model": options.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if options.temperature is not None:
            body["temperature"] = options.temperature
        if options.top_p is not None:
            body["top_p"] = options.top_p
        if options.max_tokens is not None:
            body["max_tokens"] = options.max_tokens
        return body

    async def complete(self, prompt: str, options: ProviderOptions) -> CompletionResult:
        api_key = self._require_api_key()
        async with self._client({"Authorization": f"Bearer {api_key}"}) as client:
            response = await client.post("/chat/completions", json=self._body(prompt, options))
            response.raise_for_status()
            data = response.json()

        choices = data.get("choices") or [{}]
        output = (choices[0].get("message") or {}).get("content") or ""
        usage = data.get("usage") or {}
        input_tokens = usage.get("prompt_tokens", 0)
        output_tokens = usage.get("completion_tokens", 0)
        tokens = usage.get("total_tokens", input_tokens + output_tokens)

        return CompletionResult(
            output=output,
            tokens=tokens,
            cost=self.cost(options.model, input_tokens, output_tokens),
        )

    async def stream(self, prompt: str, options: ProviderOptions) -> AsyncIterator[StreamChunk]:
        api_key = self._require_api_key()
        body = {**self._body(prompt, options), "stream": True}

        async with self._client({"Authorization": f"Bearer {api_key}"}) as client:
            async with client.stream("POST", "/chat/completions", json=body) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    payload = line[len("data:"):].strip()
                    if payload == "[DONE]":
                        yield StreamChunk(content="", is_final=True)
                        return
                    chunk = json.loads(payload)
                    choices = chunk.get("choices") or [{}]
                    delta = (choices[0].get("delta") or {}).get("content")
                    if delta:
                        yield StreamChunk(content=delta)

"""
Static price table, USD per 1K tokens.

Providers that price input and output tokens separately have both entries;
flat-priced models use the same number for both. A model missing from the
table costs 0 — unknown pricing is never an error.
"""

PRICING: dict[str, dict[str, dict[str, float]]] = {
    "openai": {
        "gpt-4.1-nano": {"input": 0.0001, "output": 0.0004},
        "gpt-4.1-mini": {"input": 0.0004, "output": 0.0016},
        "gpt-4.1": {"input": 0.002, "output": 0.008},
        "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    },
    "anthropic": {
        "claude-3-5-haiku-20241022": {"input": 0.0008, "output": 0.004},
    },
    "gemini": {
        "gemini-2.5-flash": {"input": 0.0003, "output": 0.0025},
    },
}

# Rough heuristic when a provider does not report usage (streamed output)
CHARS_PER_TOKEN = 4


def estimate_cost(provider: str, model: str, input_tokens: int, output_tokens: int) -> float:
    price = PRICING.get(provider, {}).get(model)
    if price is None:
        return 0.0
    return (input_tokens / 1000) * price["input"] + (output_tokens / 1000) * price["output"]


def estimate_tokens(text: str) -> int:
    return len(text) // CHARS_PER_TOKEN

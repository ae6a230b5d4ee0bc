"""
Provider registry — maps provider names to provider instances.

When the executor picks up a job, it knows the provider name ("openai",
"gemini", ...) but needs the actual provider object to call. This registry
does that lookup.

Built-in providers are always present. Tests (and plugins) can swap in their
own implementation with set_provider() and restore the defaults with
reset_providers().
"""

from providers.anthropic import AnthropicProvider
from providers.base import AbstractProvider
from providers.errors import ProviderNotFoundError
from providers.gemini import GeminiProvider
from providers.mock import MockProvider
from providers.openai import OpenAIProvider

BUILTIN_PROVIDERS: tuple[type[AbstractProvider], ...] = (
    OpenAIProvider,
    AnthropicProvider,
    GeminiProvider,
    MockProvider,
)

_REGISTRY: dict[str, AbstractProvider] = {}
_BUILTIN_NAMES: frozenset[str] = frozenset()


def _register_defaults() -> None:
    global _BUILTIN_NAMES
    _REGISTRY.clear()
    for provider_cls in BUILTIN_PROVIDERS:
        provider = provider_cls()
        _REGISTRY[provider.name] = provider
    _BUILTIN_NAMES = frozenset(_REGISTRY)


_register_defaults()


def get_provider(name: str) -> AbstractProvider:
    """Look up a provider by name. Raises ProviderNotFoundError if unknown."""
    provider = _REGISTRY.get(name)
    if provider is None:
        raise ProviderNotFoundError(
            f"Provider '{name}' not found. Available: {list(_REGISTRY.keys())}"
        )
    return provider


def set_provider(name: str, provider: AbstractProvider) -> None:
    """Register or replace a provider under `name` (last registration wins)."""
    _REGISTRY[name] = provider


def remove_provider(name: str) -> bool:
    """Remove a custom provider. Built-ins cannot be removed; returns False for them."""
    if name in _BUILTIN_NAMES:
        return False
    return _REGISTRY.pop(name, None) is not None


def provider_names() -> list[str]:
    return list(_REGISTRY.keys())


def is_builtin_provider(name: str) -> bool:
    return name in _BUILTIN_NAMES


def reset_providers() -> None:
    """Drop every swapped/custom provider and re-create the built-ins."""
    _register_defaults()

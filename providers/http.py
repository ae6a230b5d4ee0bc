"""
Shared plumbing for providers that talk to a REST API over httpx.

Credentials and base URLs are read from settings at call time (unless passed
explicitly), so a key added to the environment after import is still picked up.
A missing key raises ProviderConfigError before any request is made.

`transport` lets tests plug in httpx.MockTransport instead of the network.
"""

from typing import Optional

import httpx

from config.settings import settings
from providers.base import AbstractProvider
from providers.errors import ProviderConfigError


class HTTPProvider(AbstractProvider):

    api_key_setting: str = ""
    base_url_setting: str = ""
    display_name: str = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._transport = transport

    def _require_api_key(self) -> str:
        key = self._api_key or getattr(settings, self.api_key_setting, None)
        if not key:
            raise ProviderConfigError(
                f"{self.display_name} API key not configured. Cannot process request."
            )
        return key

    def _client(self, headers: Optional[dict] = None) -> httpx.AsyncClient:
        # The resilience wrapper owns the overall deadline; this only bounds
        # a single stalled socket read.
        return httpx.AsyncClient(
            base_url=self._base_url or getattr(settings, self.base_url_setting),
            headers=headers,
            timeout=httpx.Timeout(settings.PROVIDER_TIMEOUT_MS / 1000),
            transport=self._transport,
        )

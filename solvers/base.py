"""
Provider contract for external CAPTCHA solving services.

The resolver only ever talks to providers through CaptchaProvider. Deadlines
are enforced by the caller through task cancellation, so every await inside
an implementation must be cancellable.
"""

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx

from models.captcha_result import ProviderAnswer
from utils.errors import ProviderError, ProviderTimeoutError

logger = logging.getLogger(__name__)

MIN_TRUST = 0
MAX_TRUST = 10


class CaptchaProvider(ABC):
    """
    A single external solving service.

    Attributes:
        name: Unique name within one resolver configuration
        trust: Provider-declared reliability rank, 0-10
    """

    def __init__(self, name: str, trust: int):
        if not name:
            raise ValueError("Provider name must not be empty")
        if not MIN_TRUST <= trust <= MAX_TRUST:
            raise ValueError(f"Trust for {name} must be between {MIN_TRUST} and {MAX_TRUST}, got {trust}")
        self.name = name
        self.trust = trust

    @abstractmethod
    async def solve(self, image: bytes, sensitivity: bool = False) -> ProviderAnswer:
        """Solve one image. Raises ProviderError on any failure."""

    @abstractmethod
    async def report_wrong(self, external_id: str) -> None:
        """Tell the service that a previously returned answer was wrong."""

    async def close(self) -> None:
        """Release any resources held by the provider."""

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, trust={self.trust})"


class HttpCaptchaProvider(CaptchaProvider):
    """
    Base for HTTP polling services.

    Picks a key at random per solve and remembers which key produced each
    external id, so a later wrong-answer report goes out under the same key.
    """

    def __init__(
        self,
        name: str,
        trust: int,
        api_keys: List[str],
        client: Optional[httpx.AsyncClient] = None,
        polling_interval: float = 5.0,
        max_wait: float = 120.0,
    ):
        super().__init__(name, trust)
        keys = [k for k in api_keys if k]
        if not keys:
            raise ValueError(f"No API keys provided for {name}")
        self._api_keys = keys
        self._http_client = client
        self._owns_client = client is None
        self._polling_interval = polling_interval
        self._max_wait = max_wait
        self._key_by_id: Dict[str, str] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _pick_key(self) -> str:
        return random.choice(self._api_keys)

    def _remember_key(self, external_id: str, key: str) -> None:
        self._key_by_id[external_id] = key

    def _key_for(self, external_id: str) -> Optional[str]:
        if not external_id:
            return None
        key = self._key_by_id.get(external_id)
        if key is None:
            logger.info(f"[{self.name}] No API key recorded for id={external_id}, cannot report")
        return key

    async def _request_json(self, method: str, url: str, **kwargs) -> dict:
        """Send a request and decode a JSON object, raising ProviderError otherwise."""
        client = await self._get_client()
        response = None
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"HTTP error calling {url}: {e}") from e
        except ValueError as e:
            detail = response.text[:200] if response is not None else str(e)
            raise ProviderError(self.name, f"Malformed response from {url}: {detail}") from e
        if not isinstance(payload, dict):
            raise ProviderError(self.name, f"Unexpected response from {url}: {payload!r}")
        return payload

    async def _wait_for_next_poll(self, started: float, external_id: str) -> None:
        """Sleep one polling interval, or fail once the service's own wait limit passes."""
        if time.monotonic() - started > self._max_wait:
            raise ProviderTimeoutError(
                self.name, f"Timed out after {self._max_wait:.0f}s waiting for id={external_id}"
            )
        await asyncio.sleep(self._polling_interval)

"""Client for the identity provider's published signing keys (JWKS)."""

import logging
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from scaledtest.utils.logger import get_logger

log = get_logger(__name__)
_tenacity_logger = logging.getLogger(f"{__name__}.retry")


class JWKSClient:
    """Fetches the JWKS document for a Keycloak realm."""

    def __init__(
        self,
        jwks_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.jwks_url = jwks_url
        self.timeout = timeout
        self._transport = transport

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
        before_sleep=before_sleep_log(_tenacity_logger, logging.WARNING),
        reraise=True,
    )
    async def fetch_jwks(self) -> dict[str, Any]:
        """Fetch the raw JWKS document.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx response
            ValueError: If the body is not a JSON object
        """
        log.debug("fetching jwks", url=self.jwks_url)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(self.jwks_url)
            response.raise_for_status()
            data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"JWKS document is a {type(data).__name__}, not an object")

        keys = data.get("keys")
        log.info("jwks fetched", url=self.jwks_url, keys=len(keys) if isinstance(keys, list) else 0)
        return data

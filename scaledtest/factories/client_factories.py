"""Factory functions for external service clients."""

from functools import lru_cache

from scaledtest.clients.opensearch_client import OpenSearchClient
from scaledtest.config import get_settings


@lru_cache(maxsize=1)
def get_opensearch_client() -> OpenSearchClient:
    """
    Create singleton OpenSearch client.

    Returns:
        OpenSearchClient instance
    """
    settings = get_settings()
    return OpenSearchClient(
        base_url=settings.opensearch_url,
        username=settings.opensearch_username or None,
        password=settings.opensearch_password,
        verify_ssl=settings.opensearch_verify_ssl,
        timeout=settings.opensearch_timeout_seconds,
    )

"""External API clients."""

from scaledtest.clients.jwks_client import JWKSClient
from scaledtest.clients.opensearch_client import OpenSearchClient

__all__ = [
    "JWKSClient",
    "OpenSearchClient",
]

"""Shared pytest fixtures."""

# Clear settings cache before any imports to prevent stale values with coverage
from scaledtest.config import get_settings

get_settings.cache_clear()

import copy
import json
import time
from unittest.mock import AsyncMock, Mock

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from tests.helpers import SAMPLE_REPORT, TEST_AUDIENCE, TEST_ISSUER, TEST_KID


@pytest.fixture
def sample_report():
    """Factory for a valid CTRF report payload (fresh copy per call)."""

    def _make(**overrides):
        report = copy.deepcopy(SAMPLE_REPORT)
        report.update(overrides)
        return report

    return _make


# Token fixtures


@pytest.fixture(scope="session")
def rsa_private_key():
    """RSA key pair used to sign test tokens."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_private_key():
    """A key the identity provider never published."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def jwks_document(rsa_private_key):
    """JWKS document publishing the test signing key."""
    jwk = json.loads(RSAAlgorithm.to_jwk(rsa_private_key.public_key()))
    jwk.update({"kid": TEST_KID, "alg": "RS256", "use": "sig"})
    return {"keys": [jwk]}


@pytest.fixture
def mint_token(rsa_private_key):
    """Factory for signed access tokens shaped like Keycloak's."""

    def _mint(
        subject="user-123",
        realm_roles=("readonly",),
        client_roles=(),
        kid=TEST_KID,
        expires_in=300,
        key=None,
        **claims,
    ):
        now = int(time.time())
        payload = {
            "sub": subject,
            "iss": TEST_ISSUER,
            "aud": TEST_AUDIENCE,
            "iat": now,
            "exp": now + expires_in,
            "email": f"{subject}@example.com",
            "preferred_username": subject,
            "realm_access": {"roles": list(realm_roles)},
            "resource_access": {TEST_AUDIENCE: {"roles": list(client_roles)}},
        }
        payload.update(claims)
        return jwt.encode(
            payload, key or rsa_private_key, algorithm="RS256", headers={"kid": kid}
        )

    return _mint


# Collaborator mocks


@pytest.fixture
def mock_opensearch_client():
    """Create a mock OpenSearchClient."""
    client = AsyncMock()
    client.search = AsyncMock(return_value={"hits": {"total": {"value": 0}, "hits": []}})
    client.create_document = AsyncMock(return_value={"result": "created"})
    return client


@pytest.fixture
def mock_index_service():
    """Create a mock IndexService reporting a healthy backend."""
    from scaledtest.schemas.analytics import BackendHealth

    service = AsyncMock()
    service.ensure_index_exists = AsyncMock(return_value=False)
    service.health_status = AsyncMock(
        return_value=BackendHealth(
            connected=True, index_exists=True, document_count=12, cluster_status="green"
        )
    )
    return service


@pytest.fixture
def mock_async_session():
    """Create a mock AsyncSession for repository tests."""
    session = AsyncMock()

    mock_result = Mock()
    mock_result.scalar_one_or_none = Mock(return_value=None)
    mock_result.scalars = Mock(return_value=Mock(all=Mock(return_value=[])))

    session.execute = AsyncMock(return_value=mock_result)
    session.add = Mock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.delete = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session

"""Unit tests for AuthService token verification and the signing key cache."""

import httpx
import pytest

from scaledtest.clients.jwks_client import JWKSClient
from scaledtest.exceptions import (
    ErrorSource,
    InvalidTokenError,
    KeySetUnavailableError,
    MissingTokenError,
)
from scaledtest.services.auth_service import AuthService, SigningKeyCache

from tests.helpers import TEST_AUDIENCE, TEST_ISSUER

JWKS_URL = f"{TEST_ISSUER}/protocol/openid-connect/certs"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class JWKSEndpoint:
    """MockTransport handler serving a JWKS document and counting fetches."""

    def __init__(self, document, status_code=200):
        self.document = document
        self.status_code = status_code
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        assert str(request.url) == JWKS_URL
        return httpx.Response(self.status_code, json=self.document)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def endpoint(jwks_document):
    return JWKSEndpoint(jwks_document)


@pytest.fixture
def auth_service(endpoint, clock):
    """AuthService wired to a mocked JWKS endpoint and an injectable clock."""
    return AuthService(
        jwks_client=JWKSClient(JWKS_URL, transport=httpx.MockTransport(endpoint)),
        issuer=TEST_ISSUER,
        audience=TEST_AUDIENCE,
        key_cache=SigningKeyCache(ttl_seconds=3600, min_refresh_interval=10, clock=clock),
    )


class TestVerifyTokenHeader:
    """Authorization header parsing."""

    @pytest.mark.asyncio
    async def test_missing_header_raises_missing_token(self, auth_service, endpoint):
        with pytest.raises(MissingTokenError):
            await auth_service.verify_token(None)
        assert endpoint.calls == 0

    @pytest.mark.asyncio
    async def test_empty_header_raises_missing_token(self, auth_service):
        with pytest.raises(MissingTokenError):
            await auth_service.verify_token("")

    @pytest.mark.asyncio
    async def test_non_bearer_scheme_rejected(self, auth_service, endpoint):
        with pytest.raises(InvalidTokenError) as exc_info:
            await auth_service.verify_token("Basic dXNlcjpwYXNz")

        assert "Invalid authorization header format" in str(exc_info.value)
        assert endpoint.calls == 0

    @pytest.mark.asyncio
    async def test_bearer_without_token_rejected(self, auth_service):
        with pytest.raises(InvalidTokenError):
            await auth_service.verify_token("Bearer")

    @pytest.mark.asyncio
    async def test_malformed_token_rejected_without_fetching_keys(self, auth_service, endpoint):
        with pytest.raises(InvalidTokenError):
            await auth_service.verify_token("Bearer not.a.jwt")
        assert endpoint.calls == 0

    @pytest.mark.asyncio
    async def test_auth_errors_are_tagged_identity_provider(self, auth_service):
        with pytest.raises(InvalidTokenError) as exc_info:
            await auth_service.verify_token("Token abc")

        assert exc_info.value.status_code == 401
        assert exc_info.value.source == ErrorSource.IDENTITY_PROVIDER


class TestVerifyTokenClaims:
    """Signature, expiry, issuer and audience checks."""

    @pytest.mark.asyncio
    async def test_valid_token_returns_claims(self, auth_service, mint_token):
        token = mint_token(subject="alice", realm_roles=["readonly"], client_roles=["maintainer"])

        claims = await auth_service.verify_token(f"Bearer {token}")

        assert claims.subject == "alice"
        assert claims.email == "alice@example.com"
        assert claims.username == "alice"
        assert claims.roles.names == frozenset({"readonly", "maintainer"})

    @pytest.mark.asyncio
    async def test_roles_of_other_clients_are_ignored(self, auth_service, mint_token):
        token = mint_token(
            realm_roles=[],
            resource_access={
                "other-client": {"roles": ["owner"]},
                TEST_AUDIENCE: {"roles": ["readonly"]},
            },
        )

        claims = await auth_service.verify_token(f"Bearer {token}")

        assert claims.roles.names == frozenset({"readonly"})

    @pytest.mark.asyncio
    async def test_expired_token_rejected(self, auth_service, mint_token):
        token = mint_token(expires_in=-60)

        with pytest.raises(InvalidTokenError) as exc_info:
            await auth_service.verify_token(f"Bearer {token}")

        assert "Token has expired" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_wrong_audience_rejected(self, auth_service, mint_token):
        token = mint_token(aud="someone-else")

        with pytest.raises(InvalidTokenError):
            await auth_service.verify_token(f"Bearer {token}")

    @pytest.mark.asyncio
    async def test_wrong_issuer_rejected(self, auth_service, mint_token):
        token = mint_token(iss="http://evil.test/realms/scaledtest")

        with pytest.raises(InvalidTokenError):
            await auth_service.verify_token(f"Bearer {token}")

    @pytest.mark.asyncio
    async def test_forged_signature_rejected(self, auth_service, mint_token, other_private_key):
        token = mint_token(key=other_private_key)

        with pytest.raises(InvalidTokenError) as exc_info:
            await auth_service.verify_token(f"Bearer {token}")

        assert "Token validation failed" in str(exc_info.value)


class TestSigningKeyCache:
    """Key set fetching, TTL and refresh behaviour."""

    @pytest.mark.asyncio
    async def test_key_set_fetched_lazily_once(self, auth_service, endpoint, mint_token):
        assert endpoint.calls == 0

        await auth_service.verify_token(f"Bearer {mint_token()}")
        await auth_service.verify_token(f"Bearer {mint_token(subject='bob')}")

        assert endpoint.calls == 1

    @pytest.mark.asyncio
    async def test_expired_cache_is_refreshed(self, auth_service, endpoint, mint_token, clock):
        await auth_service.verify_token(f"Bearer {mint_token()}")

        clock.advance(3601)
        await auth_service.verify_token(f"Bearer {mint_token()}")

        assert endpoint.calls == 2

    @pytest.mark.asyncio
    async def test_unknown_kid_triggers_one_refresh_then_fails(
        self, auth_service, endpoint, mint_token, clock
    ):
        await auth_service.verify_token(f"Bearer {mint_token()}")
        clock.advance(60)

        with pytest.raises(InvalidTokenError) as exc_info:
            await auth_service.verify_token(f"Bearer {mint_token(kid='rotated-key')}")

        assert "unknown key" in str(exc_info.value)
        assert endpoint.calls == 2

    @pytest.mark.asyncio
    async def test_unknown_kid_does_not_refetch_within_min_interval(
        self, auth_service, endpoint, mint_token
    ):
        await auth_service.verify_token(f"Bearer {mint_token()}")

        with pytest.raises(InvalidTokenError):
            await auth_service.verify_token(f"Bearer {mint_token(kid='rotated-key')}")

        assert endpoint.calls == 1

    @pytest.mark.asyncio
    async def test_unreachable_key_set_without_cache_raises_unavailable(
        self, auth_service, endpoint, mint_token
    ):
        endpoint.status_code = 503

        with pytest.raises(KeySetUnavailableError) as exc_info:
            await auth_service.verify_token(f"Bearer {mint_token()}")

        assert exc_info.value.status_code == 503
        assert exc_info.value.source == ErrorSource.IDENTITY_PROVIDER

    @pytest.mark.asyncio
    async def test_unreachable_key_set_with_expired_cache_raises_unavailable(
        self, auth_service, endpoint, mint_token, clock
    ):
        await auth_service.verify_token(f"Bearer {mint_token()}")
        clock.advance(3601)
        endpoint.status_code = 503

        with pytest.raises(KeySetUnavailableError):
            await auth_service.verify_token(f"Bearer {mint_token()}")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "document", [[], ["not", "a", "key set"], "keys", {"keys": "none"}, {"keys": None}, {"keys": ["bad"]}]
    )
    async def test_malformed_key_set_raises_unavailable(self, auth_service, endpoint, mint_token, document):
        endpoint.document = document

        with pytest.raises(KeySetUnavailableError):
            await auth_service.verify_token(f"Bearer {mint_token()}")

    @pytest.mark.asyncio
    async def test_failed_refresh_falls_back_to_fresh_cache(
        self, auth_service, endpoint, mint_token, clock
    ):
        await auth_service.verify_token(f"Bearer {mint_token()}")
        clock.advance(60)
        endpoint.status_code = 503

        # Cached keys are still valid, only the unknown kid fails
        with pytest.raises(InvalidTokenError):
            await auth_service.verify_token(f"Bearer {mint_token(kid='rotated-key')}")
        claims = await auth_service.verify_token(f"Bearer {mint_token()}")

        assert claims.subject == "user-123"

    def test_cache_get_respects_ttl(self, clock):
        cache = SigningKeyCache(ttl_seconds=100, clock=clock)
        cache.replace({"k": object()})

        assert cache.get() is not None
        clock.advance(100)
        assert cache.get() is None

    def test_cache_replace_swaps_whole_snapshot(self, clock):
        cache = SigningKeyCache(clock=clock)
        cache.replace({"a": object()})
        first = cache.snapshot

        cache.replace({"b": object()})

        assert cache.snapshot is not first
        assert set(cache.get()) == {"b"}

    def test_cache_clear(self, clock):
        cache = SigningKeyCache(clock=clock)
        cache.replace({"a": object()})

        cache.clear()

        assert cache.snapshot is None
        assert cache.get() is None

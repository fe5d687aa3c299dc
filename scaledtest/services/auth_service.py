"""Authentication service for Keycloak JWT verification."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx
import jwt
from jwt import PyJWK, PyJWKSet

from scaledtest.clients.jwks_client import JWKSClient
from scaledtest.exceptions import InvalidTokenError, KeySetUnavailableError, MissingTokenError
from scaledtest.roles import Roles
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class TokenClaims:
    """Verified identity extracted from an access token."""

    subject: str
    roles: Roles = field(default_factory=Roles)
    email: Optional[str] = None
    username: Optional[str] = None
    claims: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class KeySetSnapshot:
    keys: dict[str, PyJWK]
    fetched_at: float


class SigningKeyCache:
    """Process-wide cache of the realm's signing keys.

    Holds one immutable snapshot that is swapped wholesale on refresh, so
    readers never see a partially updated key set. The TTL is measured from
    fetch time.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        min_refresh_interval: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.min_refresh_interval = min_refresh_interval
        self._clock = clock
        self._snapshot: Optional[KeySetSnapshot] = None
        self.lock = asyncio.Lock()

    @property
    def snapshot(self) -> Optional[KeySetSnapshot]:
        return self._snapshot

    def is_fresh(self, snapshot: Optional[KeySetSnapshot] = None) -> bool:
        snapshot = snapshot or self._snapshot
        if snapshot is None:
            return False
        return self._clock() - snapshot.fetched_at < self.ttl_seconds

    def get(self) -> Optional[dict[str, PyJWK]]:
        """Return the cached keys, or None when empty or expired."""
        snapshot = self._snapshot
        if snapshot is None or not self.is_fresh(snapshot):
            return None
        return snapshot.keys

    def recently_fetched(self) -> bool:
        snapshot = self._snapshot
        if snapshot is None:
            return False
        return self._clock() - snapshot.fetched_at < self.min_refresh_interval

    def replace(self, keys: dict[str, PyJWK]) -> None:
        self._snapshot = KeySetSnapshot(keys=keys, fetched_at=self._clock())

    def clear(self) -> None:
        self._snapshot = None


class AuthService:
    """Service for verifying Keycloak access tokens against the realm JWKS."""

    ALGORITHMS = ["RS256"]

    def __init__(
        self,
        jwks_client: JWKSClient,
        issuer: str,
        audience: str,
        key_cache: Optional[SigningKeyCache] = None,
    ) -> None:
        self._jwks_client = jwks_client
        self._issuer = issuer
        self._audience = audience
        self._key_cache = key_cache or SigningKeyCache()

    @property
    def key_cache(self) -> SigningKeyCache:
        return self._key_cache

    async def _refresh_keys(self, seen: Optional[KeySetSnapshot]) -> Optional[dict[str, PyJWK]]:
        """Fetch the JWKS and replace the cache. Returns None if the fetch failed."""
        async with self._key_cache.lock:
            current = self._key_cache.snapshot
            # Another request refreshed while we waited for the lock
            if current is not None and current is not seen and self._key_cache.is_fresh(current):
                return current.keys

            try:
                data = await self._jwks_client.fetch_jwks()
                jwk_set = PyJWKSet.from_dict(data)
            except (httpx.HTTPError, ValueError, AttributeError, TypeError, jwt.PyJWKSetError) as e:
                # AttributeError/TypeError: key entries that are not JSON objects
                log.error("jwks refresh failed", error=str(e), error_type=type(e).__name__)
                return None

            keys = {k.key_id: k for k in jwk_set.keys if k.key_id}
            self._key_cache.replace(keys)
            log.info("signing key cache refreshed", key_ids=sorted(keys))
            return keys

    async def get_signing_key(self, kid: str) -> PyJWK:
        """
        Resolve a signing key by key id.

        A cache miss or an unknown key id triggers one refresh of the key set.

        Raises:
            InvalidTokenError: If the key id is unknown after refreshing
            KeySetUnavailableError: If the key set cannot be fetched and no
                valid cached copy exists
        """
        seen = self._key_cache.snapshot
        cached = self._key_cache.get()
        if cached is not None and kid in cached:
            return cached[kid]

        if cached is not None and self._key_cache.recently_fetched():
            keys: Optional[dict[str, PyJWK]] = cached
        else:
            keys = await self._refresh_keys(seen)
            if keys is None:
                if cached is None:
                    raise KeySetUnavailableError()
                keys = cached

        if kid not in keys:
            log.warning("unknown signing key", kid=kid)
            raise InvalidTokenError("Token signed with unknown key")
        return keys[kid]

    async def verify_token(self, authorization_header: Optional[str]) -> TokenClaims:
        """
        Verify a Keycloak access token and extract identity and roles.

        Args:
            authorization_header: The Authorization header value (Bearer <token>)

        Returns:
            TokenClaims with subject id and normalized roles

        Raises:
            MissingTokenError: If no token is provided
            InvalidTokenError: If token is malformed, expired, or fails
                signature, issuer or audience checks
            KeySetUnavailableError: If signing keys cannot be obtained
        """
        if not authorization_header:
            raise MissingTokenError()

        # Extract token from Bearer scheme
        parts = authorization_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise InvalidTokenError("Invalid authorization header format")

        token = parts[1]

        try:
            header = jwt.get_unverified_header(token)
            kid = header.get("kid")
            if not kid:
                raise InvalidTokenError("Token missing key identifier")

            signing_key = await self.get_signing_key(kid)

            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=self.ALGORITHMS,
                audience=self._audience,
                issuer=self._issuer,
                options={
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_nbf": True,
                    "require": ["exp", "iss", "sub"],
                },
            )
        except jwt.ExpiredSignatureError:
            log.warning("token expired")
            raise InvalidTokenError("Token has expired")
        except (InvalidTokenError, KeySetUnavailableError):
            raise
        except jwt.InvalidTokenError as e:
            log.warning("token invalid", error=str(e))
            raise InvalidTokenError(f"Token validation failed: {str(e)}")

        subject = payload.get("sub")
        if not subject:
            raise InvalidTokenError("Token missing user identifier")

        claims = TokenClaims(
            subject=subject,
            roles=Roles.from_claims(payload, self._audience),
            email=payload.get("email"),
            username=payload.get("preferred_username"),
            claims=payload,
        )
        log.debug("token verified", subject=subject, roles=sorted(claims.roles.names))
        return claims


# Singleton instance
_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        from scaledtest.config import get_settings

        settings = get_settings()
        _auth_service = AuthService(
            jwks_client=JWKSClient(
                settings.keycloak_jwks_url, timeout=settings.jwks_fetch_timeout_seconds
            ),
            issuer=settings.keycloak_issuer,
            audience=settings.keycloak_client_id,
            key_cache=SigningKeyCache(ttl_seconds=settings.jwks_cache_ttl_seconds),
        )
    return _auth_service

"""
Identity token verification.

The identity token is only trusted once its signature has been checked
against the provider's published keys and its issuer, audience, lifetime and
nonce are validated. Decoding the payload alone proves nothing.
"""

import asyncio
import logging
import time
from typing import Any

import httpx
import jwt
from jwt.exceptions import PyJWKSetError
from pydantic import ValidationError

from pseudoidc.oidc.errors import (
    InvalidTokenError,
    UpstreamConnectionError,
    UpstreamTimeoutError,
)
from pseudoidc.oidc.models import IdentityClaims, ProviderDescriptor
from pseudoidc.oidc.pkce import constant_time_equals

logger = logging.getLogger(__name__)

JWKS_LIFESPAN = 3600
# An unknown `kid` triggers a refresh, at most this often.
JWKS_MIN_REFRESH_INTERVAL = 60

REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub"]

_KEY_TYPES = {
    "RS": "RSA",
    "PS": "RSA",
    "ES": "EC",
    "Ed": "OKP",
}


def _key_type_for(alg: str) -> str | None:
    return _KEY_TYPES.get(alg[:2])


class IdentityTokenDecoder:
    """Verifies identity tokens against the provider's JWKS."""

    def __init__(self, descriptor: ProviderDescriptor, http_client: httpx.AsyncClient):
        self.descriptor = descriptor
        self.http_client = http_client
        self._jwks: jwt.PyJWKSet | None = None
        self._jwks_fetched_at = 0.0
        self._lock = asyncio.Lock()

    async def _fetch_jwks(self) -> jwt.PyJWKSet:
        try:
            response = await self.http_client.get(
                self.descriptor.jwks_uri, timeout=self.descriptor.token_timeout
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError("JWKS endpoint timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamConnectionError("Failed to reach the JWKS endpoint") from e

        if response.status_code != 200:
            logger.error(f"Failed to fetch JWKS: HTTP status {response.status_code}")
            raise InvalidTokenError("jwks_unavailable")
        try:
            payload = response.json()
        except ValueError as e:
            logger.error("Failed to parse JWKS: not valid JSON")
            raise InvalidTokenError("jwks_unavailable") from e
        keys = payload.get("keys") if isinstance(payload, dict) else None
        if not isinstance(keys, list) or not all(
            isinstance(key, dict) for key in keys
        ):
            logger.error("Failed to parse JWKS: no list of key objects")
            raise InvalidTokenError("jwks_unavailable")
        try:
            return jwt.PyJWKSet.from_dict(payload)
        except (PyJWKSetError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse JWKS: {e}")
            raise InvalidTokenError("jwks_unavailable") from e

    async def _key_set(self, refresh: bool = False) -> jwt.PyJWKSet:
        async with self._lock:
            age = time.monotonic() - self._jwks_fetched_at
            stale = self._jwks is None or age > JWKS_LIFESPAN
            if stale or (refresh and age > JWKS_MIN_REFRESH_INTERVAL):
                self._jwks = await self._fetch_jwks()
                self._jwks_fetched_at = time.monotonic()
            return self._jwks

    @staticmethod
    def _select_key(key_set: jwt.PyJWKSet, kid: str | None, alg: str) -> jwt.PyJWK | None:
        key_type = _key_type_for(alg)
        candidates = [
            key
            for key in key_set.keys
            if key.key_type == key_type
            and (kid is None or key.key_id == kid)
            and key.public_key_use in (None, "sig")
        ]
        # without a kid the choice must be unambiguous
        if len(candidates) != 1:
            return None
        return candidates[0]

    async def _signing_key(self, kid: str | None, alg: str) -> jwt.PyJWK:
        key = self._select_key(await self._key_set(), kid, alg)
        if key is None:
            # the provider may have rotated its keys
            key = self._select_key(await self._key_set(refresh=True), kid, alg)
        if key is None:
            raise InvalidTokenError("unknown_key")
        return key

    async def decode(
        self, id_token: str | None, expected_nonce: str | None = None
    ) -> IdentityClaims:
        if not id_token:
            raise InvalidTokenError("missing_token")
        if id_token.count(".") != 2:
            raise InvalidTokenError("malformed")

        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.DecodeError as e:
            raise InvalidTokenError("malformed") from e

        alg = header.get("alg")
        if not isinstance(alg, str) or alg not in self.descriptor.id_token_signing_algs:
            raise InvalidTokenError("unsupported_algorithm")

        signing_key = await self._signing_key(header.get("kid"), alg)
        claims = self._verify(id_token, signing_key, alg)

        audiences = claims["aud"] if isinstance(claims["aud"], list) else [claims["aud"]]
        if len(audiences) > 1 and claims.get("azp") != self.descriptor.client_id:
            raise InvalidTokenError("audience", "Authorized party mismatch")

        if self.descriptor.requires("nonce") and not constant_time_equals(
            expected_nonce, claims.get("nonce")
        ):
            logger.warning(
                f"Identity token nonce mismatch for issuer {self.descriptor.issuer}"
            )
            raise InvalidTokenError("nonce")

        try:
            return IdentityClaims.model_validate({**claims, "aud": audiences})
        except ValidationError as e:
            fields = ", ".join(str(error["loc"][0]) for error in e.errors())
            raise InvalidTokenError(
                "malformed", f"Identity token has invalid claims: {fields}"
            ) from None

    def _verify(self, id_token: str, signing_key: jwt.PyJWK, alg: str) -> dict[str, Any]:
        try:
            return jwt.decode(
                id_token,
                signing_key.key,
                algorithms=[alg],
                audience=self.descriptor.client_id,
                issuer=self.descriptor.issuer,
                leeway=self.descriptor.clock_skew,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("expired") from e
        except jwt.ImmatureSignatureError as e:
            raise InvalidTokenError("not_yet_valid") from e
        except jwt.InvalidAudienceError as e:
            raise InvalidTokenError("audience") from e
        except jwt.InvalidIssuerError as e:
            raise InvalidTokenError("issuer") from e
        except jwt.MissingRequiredClaimError as e:
            raise InvalidTokenError("missing_claim", f"Identity token lacks {e.claim}") from e
        except jwt.InvalidSignatureError as e:
            logger.warning(
                f"Identity token signature mismatch for issuer {self.descriptor.issuer}"
            )
            raise InvalidTokenError("signature") from e
        except jwt.DecodeError as e:
            raise InvalidTokenError("malformed") from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError("invalid", f"Invalid identity token: {e}") from e

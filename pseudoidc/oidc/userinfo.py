import asyncio
import logging

import httpx
from pydantic import ValidationError

from pseudoidc.oidc.errors import (
    ProfileFetchError,
    UpstreamConnectionError,
    UpstreamTimeoutError,
)
from pseudoidc.oidc.models import IdentityClaims, Profile, ProviderDescriptor

logger = logging.getLogger(__name__)


def profile_from_claims(claims: IdentityClaims) -> Profile:
    return Profile(
        id=claims.sub,
        email=claims.email,
        email_verified=claims.email_verified,
        name=claims.name,
        preferred_username=claims.preferred_username,
    )


class UserinfoFetcher:
    """
    Reads the provider's userinfo endpoint.

    The result only enriches the session, it never decides who the user is.
    """

    def __init__(self, descriptor: ProviderDescriptor, http_client: httpx.AsyncClient):
        self.descriptor = descriptor
        self.http_client = http_client

    def should_fetch(self, claims: IdentityClaims) -> bool:
        if not self.descriptor.userinfo_endpoint or self.descriptor.userinfo == "never":
            return False
        if self.descriptor.userinfo == "always":
            return True
        return not claims.email

    async def fetch(self, access_token: str) -> Profile:
        try:
            response = await self.http_client.get(
                url=self.descriptor.userinfo_endpoint,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
                timeout=self.descriptor.userinfo_timeout,
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError("Userinfo endpoint timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamConnectionError("Failed to reach the userinfo endpoint") from e

        if not 200 <= response.status_code < 300:
            raise ProfileFetchError(
                f"Userinfo endpoint answered with HTTP status {response.status_code}"
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ProfileFetchError("Userinfo response is not valid JSON") from e
        if not isinstance(payload, dict):
            raise ProfileFetchError("Userinfo response is not a JSON object")

        subject = payload.get("sub") or payload.get("id")
        if subject is None:
            raise ProfileFetchError("Userinfo response has no subject")
        try:
            return Profile.model_validate({**payload, "id": str(subject)})
        except ValidationError as e:
            raise ProfileFetchError(f"Failed to validate user profile: {e}") from e

    async def enrich(self, access_token: str, claims: IdentityClaims) -> Profile:
        """
        Profile of the user, from the userinfo endpoint when configured.

        Any failure falls back to the identity token claims.
        """
        fallback = profile_from_claims(claims)
        if not self.should_fetch(claims):
            return fallback
        try:
            profile = await asyncio.wait_for(
                self.fetch(access_token), self.descriptor.userinfo_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Userinfo enrichment skipped: timeout")
            return fallback
        except (ProfileFetchError, UpstreamConnectionError, UpstreamTimeoutError) as e:
            logger.warning(f"Userinfo enrichment skipped: {e.cause.value}: {e.message}")
            return fallback

        if profile.id != claims.sub:
            logger.warning(
                "Userinfo subject differs from the identity token subject, ignoring it"
            )
            return fallback
        return profile

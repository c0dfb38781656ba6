import logging

import httpx
from pydantic import ValidationError

from pseudoidc.config import PseudoidcConfig
from pseudoidc.oidc.errors import AuthenticationError, ConfigurationError
from pseudoidc.oidc.models import OIDCMetadata, ProviderDescriptor
from pseudoidc.oidc.strategies import get_token_request_strategy

logger = logging.getLogger(__name__)

KNOWN_CHECKS = {"state", "nonce", "pkce"}


def _endpoints_configured(settings: PseudoidcConfig) -> bool:
    return all(
        (
            settings.authorization_endpoint,
            settings.token_endpoint,
            settings.jwks_uri,
        )
    )


def build_provider_descriptor(
    settings: PseudoidcConfig, metadata: OIDCMetadata | None = None
) -> ProviderDescriptor:
    """
    Freeze the provider settings into a `ProviderDescriptor`.

    Explicitly configured endpoints win over discovered ones.
    """
    if not settings.client_id:
        raise ConfigurationError("PSEUDOIDC_CLIENT_ID is not set")
    if settings.client_secret is None or not settings.client_secret.get_secret_value():
        raise ConfigurationError("PSEUDOIDC_CLIENT_SECRET is not set")
    if not settings.issuer:
        raise ConfigurationError("PSEUDOIDC_ISSUER is not set")

    unknown_checks = set(settings.checks) - KNOWN_CHECKS
    if unknown_checks:
        raise ConfigurationError(f"Unknown security checks: {sorted(unknown_checks)}")
    if any(
        alg.lower() == "none" or alg.startswith("HS")
        for alg in settings.id_token_signing_algs
    ):
        raise ConfigurationError(
            "Identity tokens must be verified with an asymmetric algorithm"
        )
    # fail at startup rather than on the first callback
    get_token_request_strategy(settings.token_request_strategy)

    def endpoint(name: str) -> str | None:
        value = getattr(settings, name)
        if value:
            return value
        return getattr(metadata, name) if metadata else None

    try:
        descriptor = ProviderDescriptor(
            issuer=settings.issuer,
            authorization_endpoint=endpoint("authorization_endpoint"),
            token_endpoint=endpoint("token_endpoint"),
            userinfo_endpoint=endpoint("userinfo_endpoint"),
            jwks_uri=endpoint("jwks_uri"),
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            scope=settings.scope,
            prompt=settings.prompt,
            checks=frozenset(settings.checks),
            authorization_params=tuple(sorted(settings.authorization_params.items())),
            token_request_strategy=settings.token_request_strategy,
            userinfo=settings.userinfo,
            id_token_signing_algs=tuple(settings.id_token_signing_algs),
            clock_skew=settings.clock_skew,
            token_timeout=settings.token_timeout,
            userinfo_timeout=settings.userinfo_timeout,
            state_ttl=settings.state_ttl,
        )
    except ValidationError as e:
        missing = ", ".join(str(error["loc"][0]) for error in e.errors())
        raise ConfigurationError(f"Incomplete provider configuration: {missing}") from e

    if descriptor.userinfo == "always" and not descriptor.userinfo_endpoint:
        raise ConfigurationError(
            "Userinfo is required but no userinfo endpoint is known"
        )
    return descriptor


async def fetch_metadata(issuer: str, http_client: httpx.AsyncClient) -> OIDCMetadata:
    """Fetch the provider metadata from its discovery document."""
    discovery_url = f"{issuer.rstrip('/')}/.well-known/openid-configuration"
    try:
        response = await http_client.get(discovery_url)
    except (httpx.HTTPError, AuthenticationError) as e:
        raise ConfigurationError(f"Failed to fetch {discovery_url}") from e
    if response.status_code != 200:
        raise ConfigurationError(
            f"Failed to fetch OIDC metadata: HTTP status {response.status_code}"
        )
    try:
        metadata = OIDCMetadata.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise ConfigurationError("Failed to validate OIDC metadata") from e

    if metadata.issuer.rstrip("/") != issuer.rstrip("/"):
        raise ConfigurationError(
            f"Discovered issuer {metadata.issuer} does not match {issuer}"
        )
    return metadata


async def discover_provider(
    settings: PseudoidcConfig, http_client: httpx.AsyncClient
) -> ProviderDescriptor:
    """
    Build the provider descriptor, resolving unset endpoints through discovery.

    Called once from the application lifespan, any error is fatal.
    """
    metadata = None
    if not _endpoints_configured(settings):
        metadata = await fetch_metadata(settings.issuer, http_client)
        logger.info(f"Discovered OIDC endpoints of {metadata.issuer}")
    return build_provider_descriptor(settings, metadata)

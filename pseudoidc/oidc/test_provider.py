from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from pydantic import SecretStr

from pseudoidc.config import PseudoidcConfig
from pseudoidc.oidc.errors import ConfigurationError
from pseudoidc.oidc.models import OIDCMetadata
from pseudoidc.oidc.provider import (
    build_provider_descriptor,
    discover_provider,
    fetch_metadata,
)

ISSUER = "https://auth.scramblesolutions.com"

DISCOVERY_DOCUMENT = {
    "issuer": ISSUER,
    "authorization_endpoint": f"{ISSUER}/oauth2/authorize",
    "token_endpoint": f"{ISSUER}/oauth2/token",
    "userinfo_endpoint": f"{ISSUER}/userinfo",
    "jwks_uri": f"{ISSUER}/.well-known/jwks.json",
}


def settings(**overrides) -> PseudoidcConfig:
    values = {
        "issuer": ISSUER,
        "client_id": "test-client",
        "client_secret": SecretStr("test-client-secret"),
    }
    values.update(overrides)
    return PseudoidcConfig(**values)


def http_client_for(response=None, side_effect=None):
    http_client = MagicMock()
    http_client.get = AsyncMock(return_value=response, side_effect=side_effect)
    return http_client


def test_build_from_metadata():
    descriptor = build_provider_descriptor(
        settings(authorization_params={"email": "user@example.com"}),
        OIDCMetadata(**DISCOVERY_DOCUMENT),
    )

    assert descriptor.token_endpoint == f"{ISSUER}/oauth2/token"
    assert descriptor.jwks_uri == f"{ISSUER}/.well-known/jwks.json"
    assert descriptor.prompt == "create"
    assert descriptor.scope == "openid"
    assert descriptor.requires("nonce")
    assert not descriptor.requires("pkce")
    assert descriptor.authorization_params == (("email", "user@example.com"),)


def test_configured_endpoint_wins():
    descriptor = build_provider_descriptor(
        settings(token_endpoint="https://tokens.example.com/token"),
        OIDCMetadata(**DISCOVERY_DOCUMENT),
    )
    assert descriptor.token_endpoint == "https://tokens.example.com/token"
    assert descriptor.authorization_endpoint == f"{ISSUER}/oauth2/authorize"


def test_state_is_always_required():
    descriptor = build_provider_descriptor(
        settings(checks=[]), OIDCMetadata(**DISCOVERY_DOCUMENT)
    )
    assert descriptor.requires("state")
    assert not descriptor.requires("nonce")


@pytest.mark.parametrize(
    "overrides",
    [
        {"client_id": None},
        {"client_secret": None},
        {"client_secret": SecretStr("")},
        {"issuer": ""},
        {"checks": ["state", "magic"]},
        {"id_token_signing_algs": ["RS256", "HS256"]},
        {"id_token_signing_algs": ["none"]},
        {"token_request_strategy": "unknown"},
    ],
)
def test_invalid_configuration(overrides):
    with pytest.raises(ConfigurationError):
        build_provider_descriptor(settings(**overrides), OIDCMetadata(**DISCOVERY_DOCUMENT))


def test_missing_endpoints():
    with pytest.raises(ConfigurationError) as exc:
        build_provider_descriptor(settings())
    assert "authorization_endpoint" in str(exc.value)
    assert "jwks_uri" in str(exc.value)


def test_userinfo_always_needs_endpoint():
    metadata = OIDCMetadata(**{**DISCOVERY_DOCUMENT, "userinfo_endpoint": None})
    with pytest.raises(ConfigurationError):
        build_provider_descriptor(settings(userinfo="always"), metadata)


@pytest.mark.asyncio
async def test_fetch_metadata():
    http_client = http_client_for(
        httpx.Response(status_code=200, json=DISCOVERY_DOCUMENT)
    )

    metadata = await fetch_metadata(ISSUER + "/", http_client)

    assert metadata.issuer == ISSUER
    http_client.get.assert_awaited_once_with(
        f"{ISSUER}/.well-known/openid-configuration"
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(status_code=404),
        httpx.Response(status_code=200, text="not json"),
        httpx.Response(status_code=200, json={"issuer": ISSUER}),
        httpx.Response(
            status_code=200,
            json={**DISCOVERY_DOCUMENT, "issuer": "https://evil.example.com"},
        ),
    ],
)
async def test_fetch_metadata_failures(response):
    with pytest.raises(ConfigurationError):
        await fetch_metadata(ISSUER, http_client_for(response))


@pytest.mark.asyncio
async def test_fetch_metadata_unreachable():
    http_client = http_client_for(side_effect=httpx.ConnectError("refused"))
    with pytest.raises(ConfigurationError):
        await fetch_metadata(ISSUER, http_client)


@pytest.mark.asyncio
async def test_discovery_skipped_when_endpoints_configured():
    http_client = http_client_for()
    descriptor = await discover_provider(
        settings(**{key: value for key, value in DISCOVERY_DOCUMENT.items() if key != "issuer"}),
        http_client,
    )
    assert descriptor.token_endpoint == f"{ISSUER}/oauth2/token"
    http_client.get.assert_not_called()


@pytest.mark.asyncio
async def test_discover_provider():
    http_client = http_client_for(
        httpx.Response(status_code=200, json=DISCOVERY_DOCUMENT)
    )
    descriptor = await discover_provider(settings(), http_client)
    assert descriptor.userinfo_endpoint == f"{ISSUER}/userinfo"

import json
import time
from unittest.mock import AsyncMock, MagicMock

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm
from pydantic import SecretStr

from pseudoidc.oidc.models import ProviderDescriptor

ISSUER = "https://auth.scramblesolutions.com"
CLIENT_ID = "test-client"
KID = "test-key-1"


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks(rsa_private_key):
    jwk = json.loads(RSAAlgorithm.to_jwk(rsa_private_key.public_key()))
    jwk.update({"kid": KID, "alg": "RS256", "use": "sig"})
    return {"keys": [jwk]}


@pytest.fixture
def make_descriptor():
    def _make(**overrides) -> ProviderDescriptor:
        values = {
            "issuer": ISSUER,
            "authorization_endpoint": f"{ISSUER}/oauth2/authorize",
            "token_endpoint": f"{ISSUER}/oauth2/token",
            "userinfo_endpoint": f"{ISSUER}/userinfo",
            "jwks_uri": f"{ISSUER}/.well-known/jwks.json",
            "client_id": CLIENT_ID,
            "client_secret": SecretStr("test-client-secret"),
        }
        values.update(overrides)
        return ProviderDescriptor(**values)

    return _make


@pytest.fixture
def descriptor(make_descriptor):
    return make_descriptor()


@pytest.fixture
def make_id_token(rsa_private_key):
    """Signed identity token, claims set to None are left out."""

    def _make(key=None, headers=None, algorithm="RS256", **claims):
        now = int(time.time())
        payload = {
            "iss": ISSUER,
            "aud": CLIENT_ID,
            "sub": "U1",
            "iat": now,
            "exp": now + 300,
            "nonce": "test-nonce",
        }
        payload.update(claims)
        payload = {name: value for name, value in payload.items() if value is not None}
        return jwt.encode(
            payload,
            key if key is not None else rsa_private_key,
            algorithm=algorithm,
            headers={"kid": KID, **(headers or {})},
        )

    return _make


@pytest.fixture
def jwks_http_client(jwks):
    http_client = MagicMock()
    http_client.get = AsyncMock(
        return_value=httpx.Response(status_code=200, json=jwks)
    )
    return http_client

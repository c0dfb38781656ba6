import pytest

from pseudoidc.oidc.errors import ConfigurationError
from pseudoidc.oidc.strategies import (
    BasicAuthTokenRequestStrategy,
    PseudoidcTokenRequestStrategy,
    StandardTokenRequestStrategy,
    get_token_request_strategy,
)

REDIRECT_URI = "http://auth.localhost/pseudoidc/callback"


def test_standard_request_posts_client_credentials(descriptor):
    request = StandardTokenRequestStrategy().build_request(
        "C1", REDIRECT_URI, None, descriptor
    )
    assert request.data == {
        "grant_type": "authorization_code",
        "code": "C1",
        "redirect_uri": REDIRECT_URI,
        "client_id": "test-client",
        "client_secret": "test-client-secret",
    }
    assert request.auth is None
    assert "test-client-secret" not in repr(request)


def test_standard_request_with_code_verifier(descriptor):
    request = StandardTokenRequestStrategy().build_request(
        "C1", REDIRECT_URI, "verifier", descriptor
    )
    assert request.data["code_verifier"] == "verifier"


def test_basic_auth_request_keeps_secret_out_of_body(descriptor):
    request = BasicAuthTokenRequestStrategy().build_request(
        "C1", REDIRECT_URI, None, descriptor
    )
    assert "client_secret" not in request.data
    assert "client_id" not in request.data
    assert request.auth == ("test-client", "test-client-secret")


def test_pseudoidc_normalizes_camel_case_response():
    normalized = PseudoidcTokenRequestStrategy().normalize_response(
        {"accessToken": "A1", "idToken": "ID", "expiresIn": "3600"}
    )
    assert normalized["access_token"] == "A1"
    assert normalized["id_token"] == "ID"
    assert normalized["expires_in"] == 3600
    assert normalized["token_type"] == "Bearer"


@pytest.mark.parametrize("alias", ["pseudonym", "subject", "user_id"])
def test_pseudoidc_normalizes_subject_names(alias):
    normalized = PseudoidcTokenRequestStrategy().normalize_response(
        {"access_token": "A1", alias: "U1"}
    )
    assert normalized["sub"] == "U1"


def test_pseudoidc_keeps_standard_fields():
    payload = {"access_token": "A1", "token_type": "bearer", "sub": "U1"}
    assert PseudoidcTokenRequestStrategy().normalize_response(payload) == payload


def test_pseudoidc_drops_unparseable_expiry():
    normalized = PseudoidcTokenRequestStrategy().normalize_response(
        {"access_token": "A1", "expires_in": "soon"}
    )
    assert normalized["expires_in"] is None


def test_strategy_registry():
    assert isinstance(get_token_request_strategy("basic"), BasicAuthTokenRequestStrategy)
    with pytest.raises(ConfigurationError):
        get_token_request_strategy("unknown")

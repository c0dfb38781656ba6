"""
Token request shapes.

Identity providers disagree on how the authorization code exchange has to be
sent and on the field names of the answer. Everything provider specific about
the token endpoint lives behind `TokenRequestStrategy`, selected by name from
the provider descriptor.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from pseudoidc.oidc.errors import ConfigurationError

if TYPE_CHECKING:
    from pseudoidc.oidc.models import ProviderDescriptor


class TokenRequest(BaseModel):
    """Everything needed to POST the token request."""

    data: dict[str, str] = Field(repr=False)
    headers: dict[str, str] = {"Accept": "application/json"}
    auth: tuple[str, str] | None = Field(default=None, repr=False)


class TokenRequestStrategy(ABC):
    name: str

    @abstractmethod
    def build_request(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None,
        descriptor: "ProviderDescriptor",
    ) -> TokenRequest:
        raise NotImplementedError

    def normalize_response(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Map the token endpoint answer onto the standard field names."""
        return payload


class StandardTokenRequestStrategy(TokenRequestStrategy):
    """RFC 6749 form body, client authenticated with `client_secret_post`."""

    name = "standard"

    def _grant(
        self, code: str, redirect_uri: str, code_verifier: str | None
    ) -> dict[str, str]:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier
        return data

    def build_request(self, code, redirect_uri, code_verifier, descriptor):
        data = self._grant(code, redirect_uri, code_verifier)
        data["client_id"] = descriptor.client_id
        data["client_secret"] = descriptor.client_secret.get_secret_value()
        return TokenRequest(data=data)


class BasicAuthTokenRequestStrategy(StandardTokenRequestStrategy):
    """Client authenticated with HTTP Basic (`client_secret_basic`)."""

    name = "basic"

    def build_request(self, code, redirect_uri, code_verifier, descriptor):
        return TokenRequest(
            data=self._grant(code, redirect_uri, code_verifier),
            auth=(descriptor.client_id, descriptor.client_secret.get_secret_value()),
        )


class PseudoidcTokenRequestStrategy(StandardTokenRequestStrategy):
    """
    PseudOIDC accepts the standard request but its answers vary: camelCase
    names, `expires_in` sent as a string, no `token_type`, and the subject
    announced under a name of its own.
    """

    name = "pseudoidc"

    field_aliases = {
        "accessToken": "access_token",
        "idToken": "id_token",
        "refreshToken": "refresh_token",
        "tokenType": "token_type",
        "expiresIn": "expires_in",
    }
    subject_aliases = ("pseudonym", "subject", "user_id", "userId")

    def normalize_response(self, payload: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(payload)
        for alias, field in self.field_aliases.items():
            if alias in normalized and field not in normalized:
                normalized[field] = normalized.pop(alias)

        if "sub" not in normalized:
            for alias in self.subject_aliases:
                if normalized.get(alias):
                    normalized["sub"] = str(normalized[alias])
                    break

        expires_in = normalized.get("expires_in")
        if isinstance(expires_in, str):
            normalized["expires_in"] = (
                int(expires_in) if expires_in.strip().isdigit() else None
            )
        if not normalized.get("token_type"):
            normalized["token_type"] = "Bearer"
        return normalized


_strategies: dict[str, TokenRequestStrategy] = {
    strategy.name: strategy
    for strategy in (
        StandardTokenRequestStrategy(),
        BasicAuthTokenRequestStrategy(),
        PseudoidcTokenRequestStrategy(),
    )
}


def get_token_request_strategy(name: str) -> TokenRequestStrategy:
    try:
        return _strategies[name]
    except KeyError as e:
        raise ConfigurationError(f"Unknown token request strategy: {name}") from e

from urllib.parse import urlencode

from pseudoidc.oidc.errors import ConfigurationError
from pseudoidc.oidc.models import (
    AuthorizationRequest,
    AuthorizationRequestState,
    ProviderDescriptor,
)
from pseudoidc.oidc.pkce import (
    code_challenge,
    generate_code_verifier,
    generate_nonce,
    generate_state,
)

# Extra authorization parameters may not replace these.
PROTOCOL_PARAMS = {
    "response_type",
    "client_id",
    "redirect_uri",
    "scope",
    "state",
    "nonce",
    "prompt",
    "code_challenge",
    "code_challenge_method",
}


class AuthorizationRequestBuilder:
    """Builds the redirect to the provider's authorization endpoint."""

    def __init__(self, descriptor: ProviderDescriptor):
        self.descriptor = descriptor

    def build(
        self, redirect_uri: str, prompt: str | None = None, return_to: str = "/"
    ) -> AuthorizationRequest:
        """
        Generate fresh security values for one login attempt.

        The returned state has to be stored by the caller until the callback
        arrives, the URL is where the user agent gets redirected to.
        """
        descriptor = self.descriptor
        if not descriptor.authorization_endpoint:
            raise ConfigurationError("Authorization endpoint is not configured")
        if not descriptor.client_id:
            raise ConfigurationError("Client identifier is not configured")

        state = generate_state()
        nonce = generate_nonce() if descriptor.requires("nonce") else None
        code_verifier = challenge = None
        if descriptor.requires("pkce"):
            code_verifier = generate_code_verifier()
            challenge = code_challenge(code_verifier)

        params = {
            key: value
            for key, value in descriptor.authorization_params
            if key not in PROTOCOL_PARAMS
        }
        params.update(
            {
                "response_type": "code",
                "client_id": descriptor.client_id,
                "redirect_uri": redirect_uri,
                "scope": descriptor.scope,
                "state": state,
            }
        )
        effective_prompt = (prompt if prompt is not None else descriptor.prompt) or ""
        if effective_prompt.strip():
            params["prompt"] = effective_prompt.strip()
        if nonce:
            params["nonce"] = nonce
        if challenge:
            params["code_challenge"] = challenge
            params["code_challenge_method"] = "S256"

        separator = "&" if "?" in descriptor.authorization_endpoint else "?"
        return AuthorizationRequest(
            url=f"{descriptor.authorization_endpoint}{separator}{urlencode(params)}",
            state=AuthorizationRequestState(
                state=state,
                nonce=nonce,
                code_verifier=code_verifier,
                code_challenge=challenge,
                redirect_uri=redirect_uri,
                return_to=return_to,
            ),
        )

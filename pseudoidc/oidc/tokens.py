import logging

import httpx
from pydantic import ValidationError

from pseudoidc.oidc.errors import (
    StateMismatchError,
    TokenExchangeError,
    TokenParseError,
    UpstreamConnectionError,
    UpstreamTimeoutError,
)
from pseudoidc.oidc.models import (
    AuthorizationRequestState,
    ProviderDescriptor,
    TokenSet,
)
from pseudoidc.oidc.strategies import get_token_request_strategy

logger = logging.getLogger(__name__)

# Error bodies of the token endpoint are kept for operators, capped.
MAX_ERROR_BODY = 512


class TokenExchanger:
    """Exchanges an authorization code for tokens at the provider's token endpoint."""

    def __init__(self, descriptor: ProviderDescriptor, http_client: httpx.AsyncClient):
        self.descriptor = descriptor
        self.http_client = http_client
        self.strategy = get_token_request_strategy(descriptor.token_request_strategy)

    async def exchange(
        self, code: str, pending: AuthorizationRequestState
    ) -> TokenSet:
        code_verifier = (
            pending.code_verifier if self.descriptor.requires("pkce") else None
        )
        if self.descriptor.requires("pkce") and not code_verifier:
            raise StateMismatchError("Login attempt has no stored PKCE code verifier")

        token_request = self.strategy.build_request(
            code, pending.redirect_uri, code_verifier, self.descriptor
        )
        try:
            response = await self.http_client.post(
                url=self.descriptor.token_endpoint,
                data=token_request.data,
                headers=token_request.headers,
                auth=token_request.auth,
                timeout=self.descriptor.token_timeout,
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError("Token endpoint timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamConnectionError("Failed to reach the token endpoint") from e

        if not 200 <= response.status_code < 300:
            logger.error(
                f"Token exchange failed with HTTP status {response.status_code}: "
                f"{_error_code(response)}"
            )
            raise TokenExchangeError(response.status_code, response.text[:MAX_ERROR_BODY])

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenParseError("Token response is not valid JSON") from e
        if not isinstance(payload, dict):
            raise TokenParseError("Token response is not a JSON object")

        if "error" in payload:
            raise TokenExchangeError(
                response.status_code,
                response.text[:MAX_ERROR_BODY],
                message=f"Token error: {payload.get('error_description', payload['error'])}",
            )

        payload = self.strategy.normalize_response(payload)
        if not payload.get("access_token"):
            raise TokenParseError("Token response has no access token")
        try:
            token_set = TokenSet.model_validate(payload)
        except ValidationError as e:
            # the validation error may echo token values, keep only field names
            fields = ", ".join(str(error["loc"][0]) for error in e.errors())
            raise TokenParseError(f"Invalid token response fields: {fields}") from None

        logger.debug(
            f"Token exchange succeeded, token type {token_set.token_type}, "
            f"identity token {'present' if token_set.id_token else 'absent'}"
        )
        return token_set


def _error_code(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return "non-JSON body"
    if isinstance(payload, dict) and "error" in payload:
        return str(payload["error"])
    return "no error code"

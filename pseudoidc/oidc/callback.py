import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

import httpx

from pseudoidc.oidc.errors import (
    AuthenticationError,
    ClientProtocolError,
    FailureCause,
    InvalidTokenError,
    StateMismatchError,
    StoreUnavailableError,
    UpstreamTimeoutError,
)
from pseudoidc.oidc.id_token import IdentityTokenDecoder
from pseudoidc.oidc.models import (
    CallbackFailure,
    CallbackOutcome,
    CallbackStage,
    ProviderDescriptor,
)
from pseudoidc.oidc.pkce import constant_time_equals
from pseudoidc.oidc.session import map_session
from pseudoidc.oidc.store import AuthorizationStateStore
from pseudoidc.oidc.tokens import TokenExchanger
from pseudoidc.oidc.userinfo import UserinfoFetcher

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CallbackController:
    """
    Turns the provider's redirect into a session.

    Stages run in order, each one single shot:
    code received, state validated, token exchanged, claims validated,
    session established. The first failing stage ends the callback.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        store: AuthorizationStateStore,
        exchanger: TokenExchanger,
        decoder: IdentityTokenDecoder,
        userinfo: UserinfoFetcher,
    ):
        self.descriptor = descriptor
        self.store = store
        self.exchanger = exchanger
        self.decoder = decoder
        self.userinfo = userinfo

    @classmethod
    def create(
        cls,
        descriptor: ProviderDescriptor,
        store: AuthorizationStateStore,
        http_client: httpx.AsyncClient,
    ) -> "CallbackController":
        return cls(
            descriptor,
            store,
            TokenExchanger(descriptor, http_client),
            IdentityTokenDecoder(descriptor, http_client),
            UserinfoFetcher(descriptor, http_client),
        )

    async def _bounded(self, awaitable: Awaitable[T], timeout: float, step: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(f"{step} timed out after {timeout}s") from e

    async def handle(
        self,
        code: str | None,
        state: str | None,
        attempt_key: str | None,
        error: str | None = None,
    ) -> CallbackOutcome:
        stage = CallbackStage.STARTED
        pending = token_set = None
        try:
            stage = CallbackStage.CODE_RECEIVED
            if error:
                raise ClientProtocolError(
                    f"Provider returned error: {error}", FailureCause.PROVIDER_ERROR
                )
            if not code:
                raise ClientProtocolError("Callback has no authorization code")

            stage = CallbackStage.STATE_VALIDATED
            pending = await self.store.consume(attempt_key) if attempt_key else None
            if pending is None:
                raise StateMismatchError("No pending login attempt for this callback")
            if not constant_time_equals(pending.state, state):
                raise StateMismatchError("OAuth state mismatch")
            if self.descriptor.requires("pkce") and not pending.code_verifier:
                raise StateMismatchError("Login attempt has no stored PKCE code verifier")
            return_to = pending.return_to

            stage = CallbackStage.TOKEN_EXCHANGED
            token_set = await self._bounded(
                self.exchanger.exchange(code, pending),
                self.descriptor.token_timeout,
                "Token exchange",
            )

            stage = CallbackStage.CLAIMS_VALIDATED
            id_token = token_set.id_token.get_secret_value() if token_set.id_token else None
            claims = await self._bounded(
                self.decoder.decode(id_token, pending.nonce),
                self.descriptor.token_timeout,
                "Identity token verification",
            )
            if token_set.sub is not None and token_set.sub != claims.sub:
                raise InvalidTokenError(
                    "subject", "Token response subject differs from the identity token"
                )
            profile = await self.userinfo.enrich(
                token_set.access_token.get_secret_value(), claims
            )

            stage = CallbackStage.SESSION_ESTABLISHED
            session = map_session(claims, profile)
        except AuthenticationError as e:
            if stage == CallbackStage.CODE_RECEIVED and attempt_key:
                await self._discard(attempt_key)
            self._log_failure(stage, e)
            return CallbackOutcome(
                stage=stage,
                failure=CallbackFailure(stage=stage, cause=e.cause, error=e),
            )
        finally:
            # transient secrets do not outlive the callback
            pending = token_set = None

        logger.info(f"Session established for issuer {session.issuer}")
        return CallbackOutcome(
            stage=CallbackStage.SESSION_ESTABLISHED, session=session, return_to=return_to
        )

    async def _discard(self, attempt_key: str) -> None:
        try:
            await self.store.discard(attempt_key)
        except StoreUnavailableError as e:
            # the record still expires with its TTL
            logger.error(f"Failed to discard login attempt: {e.message}")

    @staticmethod
    def _log_failure(stage: CallbackStage, error: AuthenticationError) -> None:
        message = (
            f"Authentication failed at stage {stage.value}: "
            f"{error.cause.value}: {error.message}"
        )
        if isinstance(error, (StateMismatchError, InvalidTokenError)):
            # possible CSRF, replay or forged token
            logger.warning(f"Security event: {message}")
        elif isinstance(error, ClientProtocolError):
            logger.info(message)
        else:
            logger.error(message)

import logging
from urllib.parse import urlparse

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.responses import Response

from pseudoidc.config import config
from pseudoidc.oidc.authorization import AuthorizationRequestBuilder
from pseudoidc.oidc.callback import CallbackController
from pseudoidc.oidc.cookies import (
    PendingLogin,
    PendingLoginCookieSession,
    SessionCookieSession,
)
from pseudoidc.oidc.errors import StoreUnavailableError
from pseudoidc.oidc.models import ProviderDescriptor
from pseudoidc.oidc.store import AuthorizationStateStore, new_attempt_key

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Authentication failed"


class PseudoidcService:
    """
    PseudOIDC login for the web layer.
    Issuer docs: https://auth.scramblesolutions.com/.well-known/openid-configuration
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        store: AuthorizationStateStore,
        controller: CallbackController,
        pending_login_cookie_session: PendingLoginCookieSession,
        session_cookie_session: SessionCookieSession,
    ):
        self.descriptor = descriptor
        self.store = store
        self.controller = controller
        self.builder = AuthorizationRequestBuilder(descriptor)
        self.pending_login_cookie_session = pending_login_cookie_session
        self.session_cookie_session = session_cookie_session

    async def login(
        self, callback_url: str, return_to: str | None, prompt: str | None = None
    ) -> RedirectResponse:
        """Redirect to the PseudOIDC authorization endpoint."""
        validated_return_to = self._relative_non_login_path(return_to or "/")
        if not validated_return_to:
            raise HTTPException(
                status_code=400,
                detail="Invalid return_to: login path is not allowed",
            )

        authorization_request = self.builder.build(
            redirect_uri=callback_url, prompt=prompt, return_to=validated_return_to
        )
        attempt_key = new_attempt_key()
        try:
            await self.store.save(
                attempt_key, authorization_request.state, self.descriptor.state_ttl
            )
        except StoreUnavailableError as e:
            logger.error(f"Login could not start: {e.message}")
            raise HTTPException(
                status_code=503, detail="Login is temporarily unavailable"
            ) from e

        response = RedirectResponse(url=authorization_request.url)
        self.pending_login_cookie_session.set_cookie(
            response,
            value=PendingLogin(attempt_key=attempt_key),
            max_age=self.descriptor.state_ttl,
            httponly=True,
            secure=not config.debug_mode,
            samesite="lax",
        )
        return response

    async def callback(
        self,
        code: str | None,
        state: str | None,
        error: str | None,
        pending_login: PendingLogin | None,
    ) -> Response:
        """Finish the login and hand the session to the session cookie."""
        outcome = await self.controller.handle(
            code=code,
            state=state,
            attempt_key=pending_login.attempt_key if pending_login else None,
            error=error,
        )

        response: Response
        if outcome.session is None:
            status_code = outcome.failure.error.status_code if outcome.failure else 500
            response = JSONResponse(
                status_code=status_code, content={"detail": GENERIC_FAILURE}
            )
        else:
            response = RedirectResponse(url=outcome.return_to)
            self.session_cookie_session.set_cookie(
                response,
                value=outcome.session,
                httponly=True,
                secure=not config.debug_mode,
                samesite="lax",
            )
        self.pending_login_cookie_session.delete_cookie(response)
        return response

    def logout(self, redirect_uri: str | None) -> Response:
        response: Response
        validated_redirect_uri = (
            self._relative_non_login_path(redirect_uri) if redirect_uri else None
        )
        if validated_redirect_uri:
            response = RedirectResponse(url=validated_redirect_uri)
        else:
            response = JSONResponse(
                content={
                    "message": "Logged out",
                    "login_url": f"{config.app_url}/pseudoidc/login",
                }
            )
        self.session_cookie_session.delete_cookie(response)
        return response

    def _relative_non_login_path(self, path: str) -> str | None:
        """Extract the relative path and query string

        return None if the path ends with `/login` or `/logout`, else return the relative path and query string."""

        parsed = urlparse(path)
        rel_path = parsed.path or "/"
        if not rel_path.startswith("/") or rel_path.startswith(("//", "/\\")):
            rel_path = "/"

        if rel_path.rstrip("/").endswith(("/login", "/logout")):
            return None
        if parsed.query:
            return f"{rel_path}?{parsed.query}"
        return rel_path


async def pseudoidc_service(request: Request) -> PseudoidcService:
    service = getattr(request.app.state, "pseudoidc_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="PseudOIDC is not configured")
    return service

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from starlette.responses import Response

from pseudoidc.config import config
from pseudoidc.oidc.cookies import (
    PendingLogin,
    pending_login_cookie_session,
    session_cookie_session,
)
from pseudoidc.oidc.models import Session
from pseudoidc.oidc.service import PseudoidcService, pseudoidc_service
from pseudoidc.utils.request import error_status_codes

pseudoidc_router = APIRouter(prefix="/pseudoidc", tags=["PseudOIDC"])

CALLBACK_PATH = "/pseudoidc/callback"


@pseudoidc_router.get(
    "/login",
    status_code=307,
    responses=error_status_codes([400, 503]),
    openapi_extra={"summary": "Login with PseudOIDC"},
)
async def pseudoidc_login(
    return_to: Annotated[
        str,
        Query(
            description="Relative path to redirect to after login.",
            examples=["/dashboard"],
        ),
    ] = "/",
    prompt: Annotated[
        str | None,
        Query(description="Overrides the configured prompt mode."),
    ] = None,
    pseudoidc_service: PseudoidcService = Depends(pseudoidc_service),
) -> RedirectResponse:
    """Redirects to the PseudOIDC authorization page."""
    return await pseudoidc_service.login(
        callback_url=f"{config.app_url}{CALLBACK_PATH}",
        return_to=return_to,
        prompt=prompt,
    )


@pseudoidc_router.get(
    "/callback",
    status_code=307,
    responses=error_status_codes([400, 500, 502, 503, 504]),
    openapi_extra={"summary": "Callback from PseudOIDC"},
)
async def pseudoidc_callback(
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
    error: Annotated[str | None, Query(include_in_schema=False)] = None,
    pending_login: PendingLogin | None = Depends(pending_login_cookie_session),
    pseudoidc_service: PseudoidcService = Depends(pseudoidc_service),
) -> Response:
    """Handles the PseudOIDC callback."""
    return await pseudoidc_service.callback(
        code=code, state=state, error=error, pending_login=pending_login
    )


@pseudoidc_router.get(
    "/session",
    responses=error_status_codes([401]),
    openapi_extra={"summary": "Current PseudOIDC session"},
)
async def pseudoidc_session(
    session: Session | None = Depends(session_cookie_session),
) -> Session:
    """Returns the pseudonymous session of the authenticated user."""
    if session is None:
        raise HTTPException(status_code=401, detail="Unauthorized: Not authenticated")
    return session


@pseudoidc_router.get(
    "/logout",
    openapi_extra={"summary": "Logout from PseudOIDC"},
)
async def pseudoidc_logout(
    redirect_uri: Annotated[
        str | None,
        Query(description="Relative path to redirect to after logout."),
    ] = None,
    pseudoidc_service: PseudoidcService = Depends(pseudoidc_service),
) -> Response:
    """Clears the PseudOIDC session cookie."""
    return pseudoidc_service.logout(redirect_uri)

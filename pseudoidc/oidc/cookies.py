from pydantic import BaseModel

from pseudoidc.config import config
from pseudoidc.oidc.models import Session
from pseudoidc.utils.api_cookie import APIKeyCookieModel


class PendingLogin(BaseModel):
    """Points the callback to its login attempt in the state store."""

    attempt_key: str


class PendingLoginCookieSession(APIKeyCookieModel[PendingLogin]):
    @property
    def payload_model(self) -> type[PendingLogin]:
        return PendingLogin


class SessionCookieSession(APIKeyCookieModel[Session]):
    @property
    def payload_model(self) -> type[Session]:
        return Session


pending_login_cookie_session = PendingLoginCookieSession(
    name="pseudoidc_login_session", secret=config.secret_key.get_secret_value()
)

session_cookie_session = SessionCookieSession(
    name="pseudoidc_session", secret=config.secret_key.get_secret_value()
)

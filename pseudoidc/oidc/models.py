from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from pseudoidc.oidc.errors import AuthenticationError, FailureCause

Check = Literal["state", "nonce", "pkce"]


def claim_is_truthy(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "on"}
    if isinstance(value, int):
        return value != 0
    return False


class OIDCMetadata(BaseModel):
    """OIDC provider metadata from discovery endpoint."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str | None = None
    jwks_uri: str


class ProviderDescriptor(BaseModel):
    """
    Static description of the identity provider.

    Built once at startup and shared read-only by every request.
    """

    model_config = ConfigDict(frozen=True)

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str | None = None
    jwks_uri: str
    client_id: str
    client_secret: SecretStr

    scope: str = "openid"
    prompt: str | None = "create"
    checks: frozenset[Check] = frozenset({"state", "nonce"})
    authorization_params: tuple[tuple[str, str], ...] = ()
    token_request_strategy: str = "pseudoidc"
    userinfo: Literal["always", "if_needed", "never"] = "if_needed"
    id_token_signing_algs: tuple[str, ...] = ("RS256", "ES256")
    clock_skew: int = 60

    token_timeout: float = 10.0
    userinfo_timeout: float = 5.0
    state_ttl: int = 600

    def requires(self, check: Check) -> bool:
        # state is validated on every callback whatever the configuration says
        return check == "state" or check in self.checks


class AuthorizationRequestState(BaseModel):
    """Security values of one login attempt, kept until its callback arrives."""

    state: str = Field(repr=False)
    nonce: str | None = Field(default=None, repr=False)
    code_verifier: str | None = Field(default=None, repr=False)
    code_challenge: str | None = None

    # The callback URL sent to the provider, the token request must repeat it.
    redirect_uri: str

    # Relative path to return to once the session is established.
    return_to: str = "/"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuthorizationRequest(BaseModel):
    url: str
    state: AuthorizationRequestState


class TokenSet(BaseModel):
    """Response of the token endpoint. Never persisted."""

    access_token: SecretStr
    id_token: SecretStr | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: SecretStr | None = None
    scope: str | None = None

    # Subject as announced by the token endpoint, not authoritative.
    sub: str | None = None


class IdentityClaims(BaseModel):
    """Verified claims of the identity token."""

    sub: str
    iss: str
    aud: list[str] = []
    nonce: str | None = Field(default=None, repr=False)
    # NumericDate values may be fractional
    exp: int | float | None = None
    iat: int | float | None = None
    email: str | None = None
    email_verified: bool = False
    name: str | None = None
    preferred_username: str | None = None

    @field_validator("email_verified", mode="before")
    @classmethod
    def normalize_email_verified(cls, value: object) -> bool:
        return claim_is_truthy(value)


class Profile(BaseModel):
    """External identity record, from the userinfo endpoint or the identity token."""

    id: str
    email: str | None = None
    email_verified: bool = False
    name: str | None = None
    preferred_username: str | None = None

    @field_validator("email_verified", mode="before")
    @classmethod
    def normalize_email_verified(cls, value: object) -> bool:
        return claim_is_truthy(value)


class Session(BaseModel):
    """What the application gets to know about the authenticated user."""

    model_config = ConfigDict(frozen=True)

    pseudonym: str = Field(
        ..., description="Stable subject identifier issued by the provider"
    )
    display_name: str | None = None
    issuer: str


class CallbackStage(str, Enum):
    STARTED = "started"
    CODE_RECEIVED = "code_received"
    STATE_VALIDATED = "state_validated"
    TOKEN_EXCHANGED = "token_exchanged"
    CLAIMS_VALIDATED = "claims_validated"
    SESSION_ESTABLISHED = "session_established"


class CallbackFailure(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    stage: CallbackStage
    cause: FailureCause
    error: AuthenticationError


class CallbackOutcome(BaseModel):
    """Terminal state of a callback, either a session or a failure."""

    model_config = ConfigDict(frozen=True)

    stage: CallbackStage
    session: Session | None = None
    failure: CallbackFailure | None = None
    return_to: str = "/"

    @property
    def succeeded(self) -> bool:
        return self.session is not None

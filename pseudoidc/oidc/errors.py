from enum import Enum


class FailureCause(str, Enum):
    """Why a callback ended in the failed state."""

    MISSING_CODE = "missing_code"
    PROVIDER_ERROR = "provider_error"
    STATE_MISMATCH = "state_mismatch"
    TOKEN_EXCHANGE_ERROR = "token_exchange_error"
    TOKEN_PARSE_ERROR = "token_parse_error"
    INVALID_TOKEN = "invalid_token"
    PROFILE_FETCH_ERROR = "profile_fetch_error"
    MISSING_SUBJECT = "missing_subject"
    TIMEOUT = "timeout"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    STORE_UNAVAILABLE = "store_unavailable"


class PseudoidcError(Exception):
    """Base class of every error raised by the PseudOIDC client."""


class ConfigurationError(PseudoidcError):
    """The provider configuration is incomplete. Fatal at startup."""


class AuthenticationError(PseudoidcError):
    """
    A single authentication attempt failed.

    `status_code` is what the web layer answers with, the message shown to the
    end user is always generic.
    """

    cause: FailureCause
    status_code: int = 502

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientProtocolError(AuthenticationError):
    status_code = 400

    def __init__(self, message: str, cause: FailureCause = FailureCause.MISSING_CODE):
        super().__init__(message)
        self.cause = cause


class StateMismatchError(AuthenticationError):
    cause = FailureCause.STATE_MISMATCH
    status_code = 400


class TokenExchangeError(AuthenticationError):
    cause = FailureCause.TOKEN_EXCHANGE_ERROR

    def __init__(self, http_status: int, body: str, message: str | None = None):
        super().__init__(
            message or f"Token endpoint answered with HTTP status {http_status}"
        )
        self.http_status = http_status
        self.body = body


class TokenParseError(AuthenticationError):
    cause = FailureCause.TOKEN_PARSE_ERROR


class InvalidTokenError(AuthenticationError):
    cause = FailureCause.INVALID_TOKEN

    def __init__(self, reason: str, message: str | None = None):
        super().__init__(message or f"Invalid identity token: {reason}")
        self.reason = reason


class ProfileFetchError(AuthenticationError):
    cause = FailureCause.PROFILE_FETCH_ERROR


class MissingSubjectError(AuthenticationError):
    cause = FailureCause.MISSING_SUBJECT
    status_code = 500


class UpstreamTimeoutError(AuthenticationError):
    cause = FailureCause.TIMEOUT
    status_code = 504


class UpstreamConnectionError(AuthenticationError):
    cause = FailureCause.UPSTREAM_UNAVAILABLE


class StoreUnavailableError(AuthenticationError):
    """The login attempt store could not be read or written."""

    cause = FailureCause.STORE_UNAVAILABLE
    status_code = 503

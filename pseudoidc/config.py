from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILES = (".env", ".env.local")


class PseudoidcConfig(BaseSettings):
    """
    Settings of the PseudOIDC identity provider client.

    Endpoints left unset are resolved through OpenID discovery at startup.
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILES,
        env_prefix="pseudoidc_",
        extra="ignore",
    )

    issuer: str = "https://auth.scramblesolutions.com"
    client_id: str | None = None
    client_secret: SecretStr | None = None

    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    userinfo_endpoint: str | None = None
    jwks_uri: str | None = None

    scope: str = "openid"
    prompt: str | None = "create"
    checks: list[str] = ["state", "nonce"]
    authorization_params: dict[str, str] = {}
    token_request_strategy: str = "pseudoidc"
    userinfo: Literal["always", "if_needed", "never"] = "if_needed"
    id_token_signing_algs: list[str] = ["RS256", "ES256"]
    clock_skew: int = 60

    token_timeout: float = 10.0
    userinfo_timeout: float = 5.0
    state_ttl: int = 600


class RedisConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=ENV_FILES,
        env_prefix="redis_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379

    def dsn(self):
        return f"redis://{self.host}:{self.port}"


class OtelExporterConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=ENV_FILES,
        env_prefix="otel_exporter_",
        extra="ignore",
    )

    otlp_endpoint: str | None = None


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=ENV_FILES,
        extra="ignore",
    )

    secret_key: SecretStr
    app_url: str
    app_name: str = "PseudOIDC Auth (dev)"
    debug_mode: bool = False
    environment: str = "development"

    http_timeout: float = 10.0
    state_store: Literal["redis", "memory"] = "redis"

    pseudoidc: PseudoidcConfig = PseudoidcConfig()
    redis: RedisConfig = RedisConfig()
    otel_exporter: OtelExporterConfig = OtelExporterConfig()


config = Config()  # type: ignore

from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, HttpUrl, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",")]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )
    PROJECT_NAME: str = "LLM Gateway"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    SENTRY_DSN: HttpUrl | None = None

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # Database: DATABASE_URL wins, otherwise the Postgres parts are assembled
    DATABASE_URL: str | None = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "llm_gateway"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # Idempotency / rate limiting on the chat endpoint
    REDIS_URL: str | None = None
    IDEMPOTENCY_TTL_SECONDS: int = 600
    RATE_LIMIT_PER_MINUTE: int = 120

    # Optional usage callback (e.g. billing service)
    USAGE_CALLBACK_URL: str | None = None
    USAGE_CALLBACK_AUTH: str | None = None
    USAGE_CALLBACK_TIMEOUT_SECONDS: float = 5.0

    # Local discovery endpoints fall back to these when no base URL is given
    LLM_LOCAL_BASE_URL_OLLAMA: str = "http://localhost:11434"
    LLM_LOCAL_BASE_URL_LMSTUDIO: str = "http://localhost:1234/v1"
    ANTHROPIC_VERSION: str = "2023-06-01"

    # Hide vendor error details from local-tool endpoints in production
    @computed_field  # type: ignore[prop-decorator]
    @property
    def expose_error_details(self) -> bool:
        return self.ENVIRONMENT != "production"


settings = Settings()  # type: ignore

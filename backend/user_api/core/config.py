from typing import Annotated, Literal

from pydantic import Field, HttpUrl, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "user-api"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: HttpUrl | None = None

    # HTTP listen port; required even though every other knob has a default.
    PORT: int

    MYSQL_USER: NonEmptyStr
    MYSQL_PASSWORD: NonEmptyStr
    MYSQL_HOST: NonEmptyStr
    MYSQL_DATABASE: NonEmptyStr
    MYSQL_PORT: int = 3306

    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_AGE_SEC: int = 600
    DB_CONNECT_TIMEOUT: int = 10

    # Seconds shutdown waits for in-flight requests before closing the pool.
    SHUTDOWN_DRAIN_TIMEOUT: float = 10.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def mysql_url(self) -> str:
        """Connection target for logs; the password is never rendered."""
        return (
            f"mysql+pymysql://{self.MYSQL_USER}:***@"
            f"{self.MYSQL_HOST}:{self.MYSQL_PORT}/{self.MYSQL_DATABASE}"
        )


def get_settings() -> Settings:
    """Load settings from the environment (and .env). Raises ValidationError when incomplete."""
    return Settings()  # type: ignore[call-arg]

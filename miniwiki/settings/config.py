# miniwiki/settings/config.py  (Pydantic v2)
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    APP_TITLE: str = "MiniWiki"

    # ---------- Session tokens ----------
    # Required. Checked when the app is built, not here, so that tooling
    # (alembic, tests) can import the settings without a secret.
    JWT_SECRET: Optional[str] = None
    TOKEN_LIFETIME_SECONDS: int = Field(default=3600 * 24, gt=0)

    # ---------- Auth cookie ----------
    COOKIE_NAME: str = "auth_token"
    COOKIE_SECURE: bool = True

    # ---------- Database ----------
    DATABASE_URL: str = "sqlite+aiosqlite:///./miniwiki.db"
    # Disable once the schema is managed by Alembic
    RUN_DB_CREATE_ALL: bool = True

    # ---------- Passwords ----------
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # ---------- Comment rules ----------
    COMMENT_MAX_LENGTH: int = 100
    COMMENT_LIMIT_PER_PAGE: int = 20

    # ---------- Server ----------
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ---------- pydantic-settings config ----------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # allow lower/upper env names
        extra="ignore",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def _async_database_url(cls, value: str) -> str:
        # if someone provided a sync URL by mistake, upgrade it to async
        if value.startswith("postgresql+psycopg"):
            return "postgresql+asyncpg://" + value.split("://", 1)[1]
        if value.startswith("postgresql://"):
            return value.replace("postgresql://", "postgresql+asyncpg://", 1)
        return value


settings = Settings()

"""Application configuration loaded from environment variables and .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./dev.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Evolution detection settings
    EVOLUTION_PATTERN_THRESHOLD: int = 3
    EVOLUTION_PATTERN_WINDOW: int = 10
    EVOLUTION_REDERIVE_ON_APPLY: bool = False


settings = Settings()

"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # OpenAI
    OPENAI_API_KEY: str = ""

    # Google AI Studio
    GOOGLE_API_KEY: str = ""
    GOOGLE_AI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    # Render placeholder images instead of calling providers
    AI_CONSOLE_MODE: bool = False

    # AI call policy
    AI_MAX_RETRIES: int = 3
    AI_RETRY_BASE_DELAY_MS: int = 2000
    AI_RETRY_MAX_DELAY_MS: int = 10000
    AI_CALL_TIMEOUT_MS: int = 90000

    # Whole-run deadline, checked before each block
    PIPELINE_TIMEOUT_MS: int = 120000

    # Reference image downloads
    FETCH_TIMEOUT_SECONDS: float = 30.0
    FETCH_MAX_RETRIES: int = 2

    DEFAULT_IMAGE_SIZE: int = 1024

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()

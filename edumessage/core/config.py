"""Application configuration loaded from the environment / .env."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "EduMessage"
    app_version: str = "1.0.0"
    environment: str = "development"

    database_url: str = "sqlite:///./edumessage.db"

    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    allowed_origins: list[str] = ["http://localhost:3000"]

    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"

    # Enables the development-only email confirmation endpoint
    dev_api_enabled: bool = False

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


settings = Settings()

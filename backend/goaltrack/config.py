from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Goal Tracker API"
    gemini_api_key: str = ""
    # model used for goal insights and dashboard tips; must support generateContent
    gemini_model: str = "gemini-2.5-flash"  # override via GEMINI_MODEL in .env if needed
    # upper bound for one advice call, retries included
    advice_timeout_seconds: float = 8.0
    jwt_secret_key: str
    jwt_algorithm: str
    access_token_ttl_minutes: int = 60 * 24
    # Comma-separated origins for CORS. Use "*" only for demo environments.
    cors_allow_origins: str = "*"
    monthly_budget_amount: Decimal = Decimal("3200.00")
    currency_symbol: str = "$"
    seed_demo_user: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()

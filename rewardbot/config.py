from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Telegram gateway
    BOT_TOKEN: str = ""
    TELEGRAM_API_URL: str = "https://api.telegram.org"
    GATEWAY_TIMEOUT: float = 10.0
    ADMIN_CHAT_ID: Optional[str] = None

    # Storage and logging
    USERS_FILE: str = "users.json"
    ERROR_LOG: str = "error.log"
    LOG_LEVEL: str = "INFO"

    # Reward rules
    EARN_COOLDOWN_SECONDS: int = 3600
    EARN_BONUS: int = 10
    VIP_EARN_BONUS: int = 20
    REFERRAL_BONUS: int = 50
    WITHDRAW_THRESHOLD: int = 100
    LEADERBOARD_SIZE: int = 10
    REQUIRE_ACTIVATION: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()

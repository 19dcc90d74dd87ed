from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    token_price_usd: Decimal = Field(default=Decimal("2000"), gt=0, alias="STREAMPAY_TOKEN_PRICE_USD")
    atomic_decimals: int = Field(default=18, ge=0, alias="STREAMPAY_ATOMIC_DECIMALS")
    currency: str = Field(default="STT", alias="STREAMPAY_CURRENCY")

    fraud_check_url: str = Field(default="http://localhost:3000/api/check-fraud", alias="FRAUD_CHECK_URL")
    fraud_check_timeout_seconds: float = Field(default=10.0, gt=0, alias="FRAUD_CHECK_TIMEOUT_SECONDS")

    sender_address: str = Field(default="", alias="SENDER_ADDRESS")
    sender_private_key: str = Field(default="", alias="SENDER_PRIVATE_KEY", repr=False)
    dry_run: bool = Field(default=True, alias="DRY_RUN")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


settings = Settings()

import os
from pydantic_settings import BaseSettings
from utils.money import Currency

class Settings(BaseSettings):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./ledger.db")
    session_secret: str = os.getenv("SESSION_SECRET", "default-dev-secret-change-in-production")

    @property
    def secret_key(self) -> str:
        """JWT access token verification key"""
        return self.session_secret

    algorithm: str = "HS256"

    default_currency: Currency = Currency.USD
    activity_log_limit: int = 500  # max activity entries returned per request

    cors_origins: list = ["*"]

    class Config:
        env_file = ".env"

settings = Settings()

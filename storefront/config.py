import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from storefront.errors import ConfigurationError

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

REQUIRED_AT_STARTUP = (
    "database_url",
    "stripe_secret_key",
    "stripe_webhook_secret",
    "jwt_secret",
)


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_currency: str = "usd"
    stripe_timeout_seconds: float = 20.0
    jwt_secret: Optional[str] = None
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:3000"
    email_host: Optional[str] = None
    email_port: int = 587
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    email_from: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            stripe_currency=os.getenv("STRIPE_CURRENCY", "usd").lower(),
            stripe_timeout_seconds=float(os.getenv("STRIPE_TIMEOUT_SECONDS", "20")),
            jwt_secret=os.getenv("JWT_SECRET"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
            email_host=os.getenv("EMAIL_HOST"),
            email_port=int(os.getenv("EMAIL_PORT", "587")),
            email_user=os.getenv("EMAIL_USER"),
            email_password=os.getenv("EMAIL_PASSWORD"),
            email_from=os.getenv("EMAIL_FROM"),
        )

    def require(self, *names: str) -> None:
        """Raise ConfigurationError naming every setting in ``names`` that is empty."""
        missing = [name.upper() for name in names if not getattr(self, name)]
        if missing:
            raise ConfigurationError(
                f"{', '.join(missing)} is not set. Check your .env file."
            )


def get_settings() -> Settings:
    return Settings.from_env()

"""Application configuration via environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Built once at startup and handed to ``create_app``; components receive
    the instance explicitly instead of reading the environment themselves.
    """

    # App
    debug: bool = False
    environment: str = "development"
    port: int = 8080

    # CORS
    allowed_origins: str = ""  # comma-separated
    allow_all_origins: bool = False

    # Rate limiting (fixed window)
    trust_proxy: bool = False
    rate_limit_window: int = 60  # seconds
    rate_limit_max: int = 20

    # SMTP relay
    smtp_host: str = ""
    smtp_port: int = 465
    smtp_secure: bool = True  # implicit TLS; False means STARTTLS
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_min_tls: Literal["TLSv1", "TLSv1.1", "TLSv1.2", "TLSv1.3"] = "TLSv1.2"
    smtp_timeout: float = 10.0

    # Envelope
    mail_from: str = ""
    mail_from_name: str = "Formulár - web"
    mail_to: str = ""
    mail_subject_template: str = "Nová správa z webu - {name}"

    # Delivery strategy
    mail_delivery: Literal["sync", "background"] = "sync"
    mail_timeout: float = 15.0

    # Message store
    store_messages: bool = True
    messages_file: Path = Path("data/messages.json")

    # Input bounds
    max_name_length: int = 200
    max_email_length: int = 200
    max_message_length: int = 5000
    max_body_bytes: int = 200 * 1024

    # Admin session
    admin_pin: str = ""
    admin_cookie_name: str = "admin_session"
    admin_cookie_max_age: int = 8 * 3600
    admin_cookie_secure: bool = False

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def origin_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def mail_configured(self) -> bool:
        return bool(self.smtp_host and self.mail_from and self.mail_to)


@lru_cache
def get_settings() -> Settings:
    return Settings()

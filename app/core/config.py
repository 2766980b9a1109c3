import logging
from functools import lru_cache
from typing import Annotated, List

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Application Information
    app_name: str = Field(default="Course Marketplace")
    app_description: str = Field(default="Course catalog, checkout and enrollment API")
    app_version: str = Field(default="1.0.0")
    app_url: str = Field(default="http://localhost:8000")
    frontend_url: str = Field(default="http://localhost:3000")
    debug: bool = Field(default=True)
    production: bool = Field(default=False)
    timezone: str = Field(default="UTC")

    # Database Configuration
    db_connection: str = Field(default="postgresql")
    db_host: str = Field(default="127.0.0.1")
    db_port: int = Field(default=5432)
    db_database: str = Field(default="marketplace")
    db_username: str = Field(default="home")
    db_password: str = Field(default="123")
    db_echo: bool = Field(default=False)

    # Security Settings
    cors_allowed_origins: Annotated[List[str], NoDecode] = Field(
        default=["http://localhost:3000"]
    )
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_storage_uri: str = Field(default="memory://")
    rate_limit_default: str = Field(default="100/minute")
    rate_limit_checkout: str = Field(default="10/minute")

    # JWT Configuration (tokens are issued by the identity provider)
    jwt_secret: str = Field(default="your-secret-key-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    jwt_user_expiration: int = Field(default=7)
    jwt_issuer: str = Field(default="Course Marketplace")

    # Admin Defaults
    admin_emails: Annotated[List[str], NoDecode] = Field(default=[])
    admin_default_name: str = Field(default="Super Admin")

    # Feature flags
    enable_progress_tracking: bool = Field(default=True)
    enable_coupons: bool = Field(default=False)

    # PayPal
    paypal_client_id: str = Field(default="")
    paypal_environment: str = Field(default="sandbox")
    payment_currency: str = Field(default="USD")

    # EmailJS
    emailjs_api_url: str = Field(default="https://api.emailjs.com")
    emailjs_service_id: str = Field(default="")
    emailjs_template_id: str = Field(default="")
    emailjs_coupon_template_id: str = Field(default="")
    emailjs_public_key: str = Field(default="")
    emailjs_private_key: str = Field(default="")
    emailjs_timeout: float = Field(default=10.0)

    # Company details used in emails and receipts
    company_name: str = Field(default="TuneParams.ai")
    company_email: str = Field(default="contact@tuneparams.com")
    company_phone: str = Field(default="+1-555-0123")
    website_url: str = Field(default="https://www.tuneparams.ai")
    support_email: str = Field(default="support@tuneparams.com")

    # Logging
    log_level: str = Field(default="info")
    log_file: str = Field(default="logs/app.log")

    # Pagination
    default_page_size: int = Field(default=20)
    max_page_size: int = Field(default=100)

    # ============================
    # Generic comma-separated parser
    # ============================
    @staticmethod
    def _parse_csv(value, default):
        if isinstance(value, str):
            items = [x.strip() for x in value.split(",") if x.strip()]
            return items if items else default
        if isinstance(value, list):
            return value
        return default

    @field_validator("cors_allowed_origins", mode="before")
    def validate_cors(cls, v):
        return cls._parse_csv(v, ["http://localhost:3000"])

    @field_validator("admin_emails", mode="before")
    def validate_admin_emails(cls, v):
        return [email.lower() for email in cls._parse_csv(v, [])]

    @field_validator("paypal_environment")
    def validate_paypal_environment(cls, v):
        if v not in ("sandbox", "live"):
            raise ValueError("paypal_environment must be 'sandbox' or 'live'")
        return v

    @property
    def database_url(self) -> str:
        if self.db_connection == "sqlite":
            return f"sqlite:///{self.db_database}"
        return "postgresql+psycopg2://{user}:{password}@{host}:{port}/{database}".format(
            user=self.db_username,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_database,
        )

    @property
    def paypal_enabled(self) -> bool:
        return bool(self.paypal_client_id)

    @property
    def emailjs_configured(self) -> bool:
        return bool(
            self.emailjs_service_id
            and self.emailjs_template_id
            and self.emailjs_public_key
        )

    def public_config(self) -> dict:
        """Feature flags and contact details that are safe to hand to the UI."""
        return {
            "features": {
                "coupons": self.enable_coupons,
                "paypal": self.paypal_enabled,
                "emailjs": self.emailjs_configured,
                "progress_tracking": self.enable_progress_tracking,
            },
            "paypal": {
                "environment": self.paypal_environment,
                "client_id": self.paypal_client_id or None,
                "currency": self.payment_currency,
            },
            "company": {
                "name": self.company_name,
                "email": self.company_email,
                "phone": self.company_phone,
                "website": self.website_url,
            },
        }

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings() -> Settings:
    try:
        loaded = Settings()
        logger.info("Settings loaded successfully")
        return loaded
    except ValidationError as e:
        logger.error(f"Invalid settings: {e}")
        raise


@lru_cache
def get_settings() -> Settings:
    """
    Process-wide settings instance.

    Routers and services receive it through ``Depends(get_settings)`` so that
    feature flags are read from one object instead of the environment.
    """
    return load_settings()


settings = get_settings()

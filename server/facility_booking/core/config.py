"""Configuration settings for the facility booking API."""

from decimal import Decimal
from zoneinfo import ZoneInfo

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with Pydantic validation."""

    # Environment settings
    environment: str = Field(
        default="development",
        description="Application environment"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Application log level"
    )

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:3001"],
        description="Allowed CORS origins"
    )

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Content store (headless CMS) settings
    cms_api_url: str = Field(
        default="http://localhost:1337",
        description="Base URL of the headless CMS REST API"
    )
    cms_api_token: str = Field(
        default="",
        description="Bearer token for the CMS REST API"
    )
    cms_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Read timeout for CMS requests"
    )

    # SMTP settings
    smtp_host: str = Field(default="localhost", description="SMTP relay host")
    smtp_port: int = Field(default=587, description="SMTP relay port")
    smtp_user: str = Field(default="", description="SMTP username")
    smtp_password: str = Field(default="", description="SMTP password")
    smtp_use_ssl: bool = Field(
        default=False,
        description="Connect with implicit TLS (port 465 style)"
    )
    smtp_starttls: bool = Field(
        default=True,
        description="Upgrade plain connections with STARTTLS"
    )
    mail_from_name: str = Field(default="UTC Perlis", description="Sender display name")
    mail_from_email: str = Field(default="", description="Sender address, defaults to SMTP user")

    site_url: str = Field(
        default="http://localhost:3000",
        description="Public site URL used in e-mail links"
    )

    timezone: str = Field(
        default="Asia/Kuala_Lumpur",
        description="IANA timezone used to decide 'today' and 'now'"
    )

    # Hold store settings
    hold_ttl_seconds: int = Field(
        default=900,
        ge=60,
        description="Lifetime of a temporary hold in seconds"
    )

    # Booking number settings
    booking_number_prefix: str = Field(default="UTC", description="Booking number prefix")
    booking_number_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Attempts made to find an unused booking number"
    )

    # Pricing settings
    mineral_water_unit_price: Decimal = Field(
        default=Decimal("1.00"),
        ge=0,
        description="Price of one bottle of mineral water"
    )
    default_hourly_rate: Decimal = Field(default=Decimal("50"), ge=0)
    default_half_day_rate: Decimal = Field(default=Decimal("250"), ge=0)
    default_full_day_rate: Decimal = Field(default=Decimal("400"), ge=0)
    default_day_rate: Decimal = Field(default=Decimal("50"), ge=0)
    default_night_rate: Decimal = Field(default=Decimal("70"), ge=0)

    # Observability settings
    otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP gRPC collector endpoint"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        valid_environments = ["development", "staging", "production"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level value."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA zone names early."""
        ZoneInfo(v)
        return v

    @property
    def debug(self) -> bool:
        """Return True if in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Return True if in production mode."""
        return self.environment == "production"

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone object for the configured zone."""
        return ZoneInfo(self.timezone)

    @property
    def sender_address(self) -> str:
        """Formatted From header value."""
        address = self.mail_from_email or self.smtp_user or f"noreply@{self.smtp_host}"
        return f"{self.mail_from_name} <{address}>"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Global settings instance
settings = Settings()

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for classreg.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from classreg.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.enrollment.auto_confirm_free_classes)
    True
"""

from datetime import date
from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Registration database configuration.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full async URL; takes precedence over the components.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "classreg"
    password: SecretStr = SecretStr("classreg_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "classreg"
    url_override: str | None = Field(
        default=None,
        validation_alias="DB_URL",
    )
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class EnrollmentSettings(BaseSettings):
    """Admission and waitlist policy switches.

    Attributes:
        auto_confirm_free_classes: Admit straight to confirmed when price is 0.
        teacher_wide_blocks: Honour teacher-scope blocks during admission.
        count_overrides_toward_capacity: Count force-enrolled seats when
            deciding whether a regular seat is free.
        lock_class_on_admission: Row-lock the class during capacity check,
            insert and promotion.
        reconcile_on_read: Reconcile over-admission when a roster is read.
        cancel_enrollment_on_block: Cancel the active enrollment of a student
            when a block is placed on them.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENROLLMENT_",
        extra="ignore",
    )

    auto_confirm_free_classes: bool = True
    teacher_wide_blocks: bool = False
    count_overrides_toward_capacity: bool = False
    lock_class_on_admission: bool = True
    reconcile_on_read: bool = True
    cancel_enrollment_on_block: bool = True


class RegistrationSettings(BaseSettings):
    """Registration window configuration.

    Attributes:
        open: Whether new admission requests are accepted at all.
        semester_start: First day requests are accepted (inclusive).
        semester_end: Last day requests are accepted (inclusive).
    """

    model_config = SettingsConfigDict(
        env_prefix="REGISTRATION_",
        extra="ignore",
    )

    open: bool = True
    semester_start: date | None = None
    semester_end: date | None = None

    @model_validator(mode="after")
    def validate_semester(self) -> Self:
        """Reject a semester that ends before it starts."""
        if self.semester_start and self.semester_end and self.semester_end < self.semester_start:
            raise ValueError("semester_end must not be before semester_start")
        return self

    def accepts(self, today: date) -> bool:
        """Check whether a request made on ``today`` falls inside the window."""
        if not self.open:
            return False
        if self.semester_start and today < self.semester_start:
            return False
        if self.semester_end and today > self.semester_end:
            return False
        return True


class PaymentSettings(BaseSettings):
    """Payment processor integration.

    Attributes:
        webhook_secret: Shared secret the processor (or the gateway relaying
            its callbacks) sends in the X-Webhook-Secret header. When unset
            the webhook rejects every call.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAYMENT_",
        extra="ignore",
    )

    webhook_secret: SecretStr | None = None


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        title: OpenAPI title.
        host: Host to bind to.
        port: Port to listen on.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    title: str = "classreg API"
    host: str = "0.0.0.0"
    port: int = 8000


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        db: Database settings.
        enrollment: Admission and waitlist policy.
        registration: Registration window.
        payment: Payment processor integration.
        api: API server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    enrollment: EnrollmentSettings = Field(default_factory=EnrollmentSettings)
    registration: RegistrationSettings = Field(default_factory=RegistrationSettings)
    payment: PaymentSettings = Field(default_factory=PaymentSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            if self.db.password.get_secret_value() == "classreg_password" and not self.db.url_override:
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DB_PASSWORD or DB_URL environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()

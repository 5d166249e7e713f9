# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for classreg.

Example:
    >>> from classreg.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from classreg.core.config.settings import (
    APISettings,
    DatabaseSettings,
    EnrollmentSettings,
    PaymentSettings,
    RegistrationSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "EnrollmentSettings",
    "RegistrationSettings",
    "PaymentSettings",
    "APISettings",
]

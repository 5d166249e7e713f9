# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Cross-cutting helpers: structured logging and the UTC clock."""

from classreg.utils.datetime import utc_now, utc_today
from classreg.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "utc_now",
    "utc_today",
]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Clock helpers.

Timestamps are stored timezone-aware in UTC. Join times drive waitlist
tie-breaks and demotion order, so every writer stamps them here.
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current UTC calendar date, used for registration-window checks."""
    return utc_now().date()

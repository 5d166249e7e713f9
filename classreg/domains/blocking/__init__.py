# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Blocking domain."""

from classreg.domains.blocking.service import BlockRegistry

__all__ = ["BlockRegistry"]

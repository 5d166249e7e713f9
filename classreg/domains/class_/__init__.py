# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class offering domain."""

from classreg.domains.class_.service import ClassService

__all__ = ["ClassService"]

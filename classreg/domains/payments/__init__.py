# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payments domain."""

from classreg.domains.payments.service import PaymentService

__all__ = ["PaymentService"]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audit domain."""

from classreg.domains.audit.service import AuditAction, AuditService

__all__ = ["AuditAction", "AuditService"]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain: admission, waitlist promotion and reconciliation."""

from classreg.domains.enrollment.admission import AdmissionEngine
from classreg.domains.enrollment.capacity import CapacityCounter
from classreg.domains.enrollment.notifications import EnrollmentNotifier
from classreg.domains.enrollment.promotion import PromotionEngine
from classreg.domains.enrollment.reconciliation import ReconciliationService
from classreg.domains.enrollment.service import EnrollmentService

__all__ = [
    "AdmissionEngine",
    "CapacityCounter",
    "EnrollmentNotifier",
    "EnrollmentService",
    "PromotionEngine",
    "ReconciliationService",
]

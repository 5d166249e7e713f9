# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    classes: Class offering management, schedule board and rosters.
    enrollments: Enrollment requests, cancellation and admin overrides.
    blocks: Student blocks per class and across a teacher's classes.
    payments: Payment processor webhook (shared-secret protected).
"""

from fastapi import APIRouter

from classreg.api.v1 import blocks, classes, enrollments, payments

router = APIRouter(prefix="/api/v1")

router.include_router(classes.router, prefix="/classes", tags=["Classes"])
router.include_router(blocks.router, prefix="/classes", tags=["Blocks"])
router.include_router(blocks.teacher_router, prefix="/teachers", tags=["Blocks"])
router.include_router(enrollments.router, prefix="/enrollments", tags=["Enrollments"])
router.include_router(payments.router, prefix="/payments", tags=["Payments"])

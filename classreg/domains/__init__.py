# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Business domains for class registration.

Each domain owns its service and exceptions:
- schedule: slot validation and conflict detection
- class_: class offering lifecycle
- blocking: student blocks
- enrollment: admission, waitlist promotion and reconciliation
- audit: administrative override trail
- payments: payment status transitions
"""

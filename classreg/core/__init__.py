# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for classreg.

Holds cross-cutting configuration shared by every layer.
"""

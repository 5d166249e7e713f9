"""classreg backend.

Class registration platform: admission, waitlist and schedule-conflict
engine behind an HTTP API.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"

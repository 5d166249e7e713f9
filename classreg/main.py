# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ASGI entry point.

Run with ``uvicorn classreg.main:app`` or ``python -m classreg.main``.
"""

import uvicorn

from classreg.api.app import create_app
from classreg.core.config import get_settings

app = create_app()


def run() -> None:
    """Serve the API with uvicorn using APISettings."""
    settings = get_settings()
    uvicorn.run(
        "classreg.main:app",
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()

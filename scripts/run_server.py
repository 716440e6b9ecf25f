from __future__ import annotations

import os

import uvicorn

from talent_reports.infrastructure.config import get_settings

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000


def server_options() -> dict[str, object]:
    settings = get_settings()
    return {
        "host": os.getenv("HOST", DEFAULT_HOST),
        "port": int(os.getenv("PORT", str(DEFAULT_PORT))),
        "reload": settings.app.environment == "development",
        "log_level": settings.logging.level.lower(),
    }


def main() -> None:
    uvicorn.run("talent_reports.web.main:app", **server_options())


if __name__ == "__main__":
    main()

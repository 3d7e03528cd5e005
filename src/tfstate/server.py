"""Process entry point: ``tfstate-server``."""

from __future__ import annotations

import uvicorn

from tfstate.api.app import create_app
from tfstate.core.config import AppSettings
from tfstate.core.logging_config import configure_logging


def main() -> None:
    settings = AppSettings()
    configure_logging(settings)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()

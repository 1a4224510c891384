"""Run the authentication service under uvicorn."""

from __future__ import annotations

import logging.config

import uvicorn

from .config import get_settings
from .logging_config import get_logging_config


def main() -> None:
    settings = get_settings()
    log_config = get_logging_config(settings.log_level)
    logging.config.dictConfig(log_config)
    uvicorn.run(
        "authentication_service.main:app",
        host=settings.http_host,
        port=settings.http_port,
        log_config=log_config,
    )


if __name__ == "__main__":
    main()

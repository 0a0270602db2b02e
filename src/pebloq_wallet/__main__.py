"""Run the API server: ``python -m pebloq_wallet``."""

from __future__ import annotations

import logging

import uvicorn

from pebloq_wallet.api.app import create_app
from pebloq_wallet.config import get_settings


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(settings),
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

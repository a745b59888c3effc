"""
Run the TravelSafe Hub backend under uvicorn.
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

import uvicorn

from travelsafe.app import create_app
from travelsafe.config import get_settings
from travelsafe.errors import ConfigError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="TravelSafe Hub backend")
    parser.add_argument("--host", type=str, default=None, help="Override HOST")
    parser.add_argument("--port", type=int, default=None, help="Override PORT")
    parser.add_argument(
        "--log-level", type=str, default=None, help="Override LOG_LEVEL"
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    updates = {
        key: value
        for key, value in (
            ("host", args.host),
            ("port", args.port),
            ("log_level", args.log_level),
        )
        if value is not None
    }
    if updates:
        settings = settings.model_copy(update=updates)

    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    try:
        app = create_app(settings)
    except ConfigError as exc:
        logger.error("Refusing to start: %s", exc)
        return 1

    logger.info(
        "TravelSafe Hub backend running at http://%s:%d", settings.host, settings.port
    )
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=False,
    )
    return 0

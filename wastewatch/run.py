import logging

import uvicorn

from wastewatch.config.logging_setup import setup_logging
from wastewatch.config.settings import get_settings

logger = logging.getLogger("wastewatch.run")


def main():
    """Start the API server."""
    setup_logging()
    settings = get_settings()

    logger.info(f"Starting WasteWatch API on http://{settings.wastewatch_host}:{settings.wastewatch_port}")

    uvicorn.run(
        "wastewatch.main:app",
        host=settings.wastewatch_host,
        port=settings.wastewatch_port,
        log_config=None,  # Use the configuration already applied
    )


if __name__ == "__main__":
    main()

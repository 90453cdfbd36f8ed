"""
Configurable logging setup for the WasteWatch API.

Loads the logging configuration from a YAML file.
"""
import logging
import logging.config
from pathlib import Path
from typing import Optional, Union

import yaml

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    config_path: Optional[Union[str, Path]] = None,
    default_level: int = logging.INFO,
) -> None:
    """
    Configure logging from a YAML file.

    Args:
        config_path: Path to the YAML configuration.
                     If None, uses wastewatch/config/logging_config.yaml
        default_level: Level used when the configuration cannot be loaded
    """
    if config_path is None:
        config_path = Path(__file__).parent / "logging_config.yaml"

    config_path = Path(config_path)

    if not config_path.exists():
        logging.basicConfig(level=default_level, format=DEFAULT_FORMAT)
        logging.warning(f"Logging configuration not found: {config_path}")
        logging.info("Using default logging configuration")
        return

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        logging.config.dictConfig(config)

        logger = logging.getLogger(__name__)
        logger.info(f"Logging configured from: {config_path}")

    except Exception as e:
        # Fall back to a basic configuration if the file is invalid
        logging.basicConfig(level=default_level, format=DEFAULT_FORMAT)
        logging.error(f"Failed to load logging configuration: {e}")
        logging.warning("Using default logging configuration")

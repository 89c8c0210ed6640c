"""Logging utilities."""
from __future__ import annotations

import logging.config

import yaml

from rentledger.core.config import CONFIG_DIR


def configure_logging(level: int = logging.INFO) -> None:
    """Configure logging from ``configs/logging.yaml`` when present."""
    config_path = CONFIG_DIR / "logging.yaml"
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as config_file:
            logging.config.dictConfig(yaml.safe_load(config_file))
    else:
        logging.basicConfig(level=level)

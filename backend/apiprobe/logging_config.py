"""
Logging configuration.

Reads a YAML dictConfig, substituting ``${VAR}`` references from the
environment. Without a config file, falls back to ``basicConfig``.
"""

import logging
import logging.config
import os
import string

import yaml

from .config import settings


def setup_logging(config_path: str = None):
    config_path = config_path or settings.LOG_CONFIG_PATH
    if not os.path.exists(config_path):
        logging.basicConfig(level=settings.LOG_LEVEL.upper())
        return

    with open(config_path, "r", encoding="utf-8") as f:
        template = string.Template(f.read())

    mapping = os.environ.copy()
    mapping.setdefault("LOG_LEVEL", settings.LOG_LEVEL.upper())

    config = yaml.safe_load(template.safe_substitute(mapping))
    logging.config.dictConfig(config)

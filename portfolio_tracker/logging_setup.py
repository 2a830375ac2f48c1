"""Central logging configuration utilities.

:func:`setup_logging` configures the root logger from the ini file named by
``log_config`` in :mod:`portfolio_tracker.config`, falling back to a plain
``basicConfig`` at ``log_level`` when no file is available. Calling it again
once the root logger has handlers is a no-op.
"""
from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Optional

from portfolio_tracker.config import config

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _resolve_log_config() -> Optional[Path]:
    if not config.log_config:
        return None
    config_path = Path(config.log_config)
    if not config_path.is_absolute():
        config_path = (config.repo_root or Path.cwd()) / config_path
    return config_path if config_path.exists() else None


def setup_logging() -> None:
    """Configure application logging once per process.

    If the root logger already has handlers (e.g. uvicorn was started with
    ``--log-config``) the existing configuration is left alone.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    config_path = _resolve_log_config()
    if config_path is not None:
        logging.config.fileConfig(config_path, disable_existing_loggers=False)
        return

    logging.basicConfig(level=config.log_level.upper(), format=DEFAULT_FORMAT)

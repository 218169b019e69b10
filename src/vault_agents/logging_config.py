"""Logging setup for the vault agents package.

Levels and log file come from `Settings` (see `config.load_settings`, which
also applies the VAULT_AGENTS_LOG_* env overrides). This module only wires
handlers.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ROOT_LOGGER = "vault_agents"

# Chatty client libraries used by the embedding providers
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3", "sentence_transformers")

_configured = False


def setup_logging(level: str = "INFO", log_file: Optional[str] = None, force: bool = False) -> logging.Logger:
    """Attach handlers to the package logger.

    Log lines go to stderr so CLI output on stdout stays clean. Provider
    client libraries are capped at WARNING unless `level` is DEBUG.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional extra log file
        force: Reconfigure even if already set up

    Returns:
        The package root logger
    """
    global _configured
    root = logging.getLogger(ROOT_LOGGER)
    if _configured and not force:
        return root

    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    root.setLevel(log_level)
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError:
            root.warning("Could not open log file %s, logging to stderr only", log_file)
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    library_level = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under `vault_agents`.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")

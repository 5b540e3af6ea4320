"""Logging setup shared by the app, the entrypoint and the core modules."""

import json
import logging
import os
import sys
from typing import Optional

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
ROOT_LOGGER = "pairchat"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, escaped with json.dumps."""

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure application logging.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: optional path; records go to stdout and to this file
        log_format: 'json' for structured output, anything else for readable lines
    """
    log_format = log_format or os.getenv("LOG_FORMAT", "dev")
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.root.handlers = handlers
    logging.root.setLevel(level)

    # uvicorn is chatty at INFO
    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(ROOT_LOGGER).info(f"Logging configured: level={log_level}, format={log_format}, file={log_file}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")

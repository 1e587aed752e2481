"""
logger.py — Structured logging with daily rotation.
"""
import os
import logging
import logging.handlers
from datetime import datetime, timezone

_initialized = False


class StructuredFormatter(logging.Formatter):
    """Flattens a record to ``key=value | key=value`` pairs."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        parts = [f"{k}={v}" for k, v in log_entry.items()]
        return " | ".join(parts)


def setup_logging(log_dir="logs", log_level="INFO"):
    """
    Configure the ``combiner`` logger with a daily rotating file handler.

    Parameters
    ----------
    log_dir : str — directory for log files; None logs to the console only
    log_level : str — logging level
    """
    global _initialized
    if _initialized:
        return logging.getLogger("combiner")

    logger = logging.getLogger("combiner")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # File handler — daily rotation, keep 30 days
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, "combiner.log")
        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_path, when="midnight", backupCount=30, encoding="utf-8"
        )
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    # Console handler for dev
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s"
    ))
    logger.addHandler(console)

    _initialized = True
    logger.info("Structured logging initialised")
    return logger

"""Logging setup shared by the web process and Celery workers."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once with a timestamped format."""
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    logging.getLogger("ledgershare").setLevel(numeric_level)

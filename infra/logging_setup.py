"""Process-wide logging configuration."""

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO", log_file: Optional[str] = "logs/swapbank.log") -> None:
    """
    Configure root logging with a stream handler and, optionally, a file handler.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Path of the log file; None logs to stderr only
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    logging.getLogger(__name__).info(f"Logging configured: level={level.upper()}, file={log_file}")

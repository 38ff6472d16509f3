# helpers/logger.py
import logging
import sys
from pathlib import Path
from typing import Optional

LOG_NAME = "ordo"
LOG_FILE = "solver_log.txt"


def configure_logging(log_path: Optional[Path] = None, level: int = logging.INFO) -> logging.Logger:
    """Give the ``ordo`` logger a stdout handler and, when log_path is set, a file handler."""
    logger = logging.getLogger(LOG_NAME)
    logger.setLevel(level)

    # Prevent duplicate handlers when called once per run in the same process
    for h in list(logger.handlers):
        if getattr(h, "_ordo_handler", False):
            logger.removeHandler(h)
            h.close()

    # Stream handler (stdout)
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    stream_handler._ordo_handler = True
    logger.addHandler(stream_handler)

    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        file_handler._ordo_handler = True
        logger.addHandler(file_handler)

    return logger

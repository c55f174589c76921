import sys
import logging

from pathlib import Path
from typing import List, Optional


_installed: List[logging.Handler] = []


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Configure console logging and, if log_file is given, a log file.

    Calling it again replaces the handlers installed by the previous call.
    """

    log_level = getattr(logging, level.upper(), logging.INFO)

    # Create formatter
    formatter = logging.Formatter(
        fmt="%(asctime)s> %(message)s",
        datefmt="%m/%d/%Y %H:%M:%S",
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    while _installed:
        handler = _installed.pop()
        root_logger.removeHandler(handler)
        handler.close()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    _installed.append(console_handler)

    # File handler (if enabled)
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(
            log_file,
            mode="w",
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        _installed.append(file_handler)

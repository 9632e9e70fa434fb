"""Logging helpers: Rich console handler per logger, optional file log."""
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

_file_logging_configured = False


def setup_file_logging(log_file: Path, verbose: bool = False):
    """Mirror every vuln_pkg logger into a plain-text log file.

    Args:
        log_file: Destination file; parent directories are created.
        verbose: Enable debug-level logging
    """
    global _file_logging_configured

    if _file_logging_configured:
        return

    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger("vuln_pkg")
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    _file_logging_configured = True


def set_verbose(verbose: bool):
    """Switch every vuln_pkg logger between INFO and DEBUG."""
    level = logging.DEBUG if verbose else logging.INFO
    for name, logger in logging.root.manager.loggerDict.items():
        if name.startswith("vuln_pkg") and isinstance(logger, logging.Logger):
            logger.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a Rich console handler attached once.

    Args:
        name: Logger name (typically __name__)
    """
    logger = logging.getLogger(name)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger

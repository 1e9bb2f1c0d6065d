from __future__ import annotations
import logging
from rich.logging import RichHandler
from rich.console import Console

_LOGGER = logging.getLogger("taxonomia")
_HANDLER = RichHandler(rich_tracebacks=True, markup=False)
_FORMAT = "%(message)s"
_CONSOLE = Console()

def setup_logger(verbose: bool = False) -> logging.Logger:
    """Setup the taxonomia logger with a Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=_FORMAT, datefmt="[%X]", handlers=[_HANDLER])
    _LOGGER.setLevel(level)
    return _LOGGER

def log() -> logging.Logger:
    return _LOGGER

def console() -> Console:
    """Rich console for styled CLI output."""
    return _CONSOLE

"""Logging for stencilforge, routed through a shared Rich console."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


# Log records go to stderr so rendered output on stdout stays clean
console = Console(stderr=True)

ROOT_LOGGER_NAME = "stencilforge"


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the stencilforge hierarchy.

    The Rich handler is attached once, to the package root logger, so module
    loggers propagate to it and still reach pytest's ``caplog``.

    Parameters
    ----------
    name : str
        Logger name, typically ``__name__``.

    Returns
    -------
    logging.Logger
        Logger whose records are rendered by Rich.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
        root.setLevel(logging.WARNING)

    return logging.getLogger(name)


def set_verbosity(verbose: bool) -> None:
    """Switch the package loggers between DEBUG and WARNING."""
    get_logger(ROOT_LOGGER_NAME).setLevel(logging.DEBUG if verbose else logging.WARNING)

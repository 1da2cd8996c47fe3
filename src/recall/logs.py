"""Logging setup for the recall CLI.

Library modules only create ``logging.getLogger(__name__)`` loggers; handlers
are installed here, by the application, never on import.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: int | str = logging.WARNING, console: Console | None = None) -> None:
    """Route ``recall.*`` log records to a rich handler on stderr.

    Calling it again replaces the previous handler.
    """
    logger = logging.getLogger("recall")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    # LiteLLM is chatty at INFO.
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)

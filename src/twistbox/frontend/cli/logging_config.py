"""Logging setup shared by the TUI and the command line."""

import logging


def configure_logging(level: int = logging.INFO) -> None:
    # Root logger goes to stderr so stdout stays clean for command results.
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

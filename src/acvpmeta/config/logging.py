"""Shared logging helpers."""

from __future__ import annotations

import logging

_NOISY_LOGGERS = ("httpx", "httpcore", "hishel")


def level_for_verbosity(verbosity: int) -> int:
    """Map a ``-v`` count onto a logging level (0: INFO, 1+: DEBUG, negative: WARNING)."""

    if verbosity < 0:
        return logging.WARNING
    if verbosity == 0:
        return logging.INFO
    return logging.DEBUG


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with a terse format suitable for CLI output.

    Transport libraries stay at WARNING unless DEBUG was requested, so that the
    operator-facing payload dumps are not drowned in request lines. Pass
    ``force=True`` to reconfigure during tests.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    transport_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)

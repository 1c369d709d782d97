import logging
from logging.handlers import RotatingFileHandler

from .config import settings

_installed: list[logging.Handler] = []


def configure_logging(level: str | None = None) -> None:
    logger = logging.getLogger()
    logger.setLevel((level or settings.log_level).upper())

    # Safe to call again (tests, repeated CLI runs in one process)
    for h in _installed:
        logger.removeHandler(h)
        h.close()
    _installed.clear()

    fmt = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s - %(message)s"
    )

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    _installed.append(ch)

    # Rotating file (report runs can be frequent)
    if settings.log_file:
        fh = RotatingFileHandler(
            settings.log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
        )
        fh.setFormatter(fmt)
        _installed.append(fh)

    for h in _installed:
        logger.addHandler(h)

    # Silence per-statement sqlite chatter
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

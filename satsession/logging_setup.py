from __future__ import annotations
import logging

# Libraries that are chatty at DEBUG and drown out session events
QUIET_LOGGERS = ("urllib3", "sqlalchemy.engine", "multipart", "httpx")


def setup_console_logging(level: int | str = logging.DEBUG) -> None:
    """
    Call once at app start. Prints session engine logs to console.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    if root.handlers:
        # already configured (avoid duplicates)
        root.setLevel(level)
        return

    root.setLevel(level)
    h = logging.StreamHandler()
    fmt = logging.Formatter(
        "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    h.setFormatter(fmt)
    root.addHandler(h)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

"""Unified logging configuration for teamwatch.

One rotated log file at ``<home>/teamwatch.log`` is shared by the web
server, the sync engine and the watchdog observer threads.  Each record
is tagged with the component that produced it through the ``log_caller``
context variable:

    [server]          request handlers and startup
    [engine]          the event consumer loop
    [watcher:<tree>]  watchdog threads for teams / tasks / outputs

Usage::

    from teamwatch.logging_setup import configure_logging, caller

    configure_logging(tw_home)          # once, at process startup
    with caller("watcher:teams"):       # scoped tag on a worker thread
        ...

The level comes from the *level* argument, else ``TEAMWATCH_LOG_LEVEL``,
else INFO.
"""

import contextlib
import contextvars
import logging
import logging.handlers
import os
from pathlib import Path

from teamwatch.paths import log_file_path

log_caller: contextvars.ContextVar[str] = contextvars.ContextVar(
    "log_caller", default="server",
)

LOG_FORMAT = "%(asctime)s [%(caller)s] %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that report every raw filesystem event at DEBUG.
NOISY_LOGGERS = ("watchdog", "watchdog.observers")

_configured = False


class _CallerFilter(logging.Filter):
    """Stamp ``record.caller`` from :data:`log_caller`."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.caller = log_caller.get()  # type: ignore[attr-defined]
        return True


@contextlib.contextmanager
def caller(name: str):
    """Tag log records emitted inside the block with *name*."""
    token = log_caller.set(name)
    try:
        yield
    finally:
        log_caller.reset(token)


def resolve_level(level: int | str | None = None) -> int:
    """Turn *level* (or ``TEAMWATCH_LOG_LEVEL``) into a logging level.

    Unknown names fall back to INFO.
    """
    if level is None:
        level = os.environ.get("TEAMWATCH_LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    tw_home: Path | None = None,
    *,
    level: int | str | None = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
    console: bool = True,
) -> None:
    """Attach the file and console handlers to the root logger.

    Only the first call in a process has any effect.
    """
    global _configured
    if _configured:
        return
    _configured = True

    resolved = resolve_level(level)
    root = logging.getLogger()
    root.setLevel(resolved)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.INFO))

    fmt = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    caller_filter = _CallerFilter()

    handlers: list[logging.Handler] = []
    if tw_home is not None:
        tw_home.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            str(log_file_path(tw_home)),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ))
    if console:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(resolved)
        handler.setFormatter(fmt)
        handler.addFilter(caller_filter)
        root.addHandler(handler)

"""Logging setup shared by the convert CLI and library callers.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where records go and how they look:
    - stderr console handler, optionally colored
    - optional file handler (plain or size-rotated), human or JSON lines
    - contextual fields attached to every record (app, image, pass)
    - Python warnings routed into logging
    - uncaught exceptions logged before exit

Public API:
    setup_logging(log_level="INFO", log_file=None, context={"app": "convert"})
    reset_logging()
    get_logger(name)
    push_context(image="cat.png") / pop_context(keys=["image"])
    with log_context(**{"pass": 2}): ...
    install_excepthook()

Line layout:
    human: 2026-03-02T09:12:44.120Z | INFO     | app=convert pass=2 | Angle 90.0 deg ...
    json:  {"t": "...", "lvl": "INFO", "name": "...", "pid": 42, "msg": "...", "pass": 2}

Context lives in a contextvars.ContextVar, so fields pushed in one thread
or task are invisible to others. Calling setup_logging() again replaces
the handlers it installed earlier and leaves any other root handlers alone.
"""

import contextlib
import contextvars
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

_FIELDS: contextvars.ContextVar = contextvars.ContextVar('hatchplot_log_fields', default={})

# Handlers owned by this module; the only ones setup_logging() may remove
_owned_handlers: List[logging.Handler] = []

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


class ContextFormatter(logging.Formatter):
    """Render records with the current context fields appended.

    Parameters
    ----------
    fmt_mode : str
        "human" or "json"
    use_color : bool
        Color the level name (only when stderr is a terminal)
    tz : str
        "UTC" or "local" timestamps
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True, tz: str = "UTC"):
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"Unknown log format {fmt_mode!r}; expected 'human' or 'json'")
        super().__init__()
        self.fmt_mode = fmt_mode
        self.tz = tz
        self.use_color = use_color and sys.stderr.isatty()

    def _timestamp(self, record: logging.LogRecord) -> datetime:
        if self.tz == "UTC":
            return datetime.fromtimestamp(record.created, tz=timezone.utc)
        return datetime.fromtimestamp(record.created)

    def format(self, record: logging.LogRecord) -> str:
        fields = _FIELDS.get()
        when = self._timestamp(record)
        exc_text = self.formatException(record.exc_info) if record.exc_info else None

        if self.fmt_mode == "json":
            payload: Dict[str, Any] = {
                't': when.isoformat(),
                'lvl': record.levelname,
                'name': record.name,
                'pid': os.getpid(),
                'msg': record.getMessage(),
                **fields,
            }
            if exc_text:
                payload['exc'] = exc_text
            return json.dumps(payload, default=str)

        level = f"{record.levelname:<8}"
        if self.use_color and record.levelname in _LEVEL_COLORS:
            level = _LEVEL_COLORS[record.levelname] + level + _RESET
        pieces = [when.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z', level]
        if fields:
            pieces.append(' '.join(f"{key}={value}" for key, value in fields.items()))
        pieces.append(record.getMessage())
        text = ' | '.join(pieces)
        return f"{text}\n{exc_text}" if exc_text else text


def _file_handler(
    log_file: str,
    rotate: Optional[Dict[str, Any]],
    as_json: bool,
    tz: str,
) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    if rotate:
        handler: logging.Handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=int(rotate.get('max_bytes', 10_000_000)),
            backupCount=int(rotate.get('backup_count', 3)),
        )
    else:
        handler = logging.FileHandler(path)
    handler.setFormatter(ContextFormatter("json" if as_json else "human", use_color=False, tz=tz))
    return handler


def _drop_owned_handlers() -> None:
    root = logging.getLogger()
    while _owned_handlers:
        handler = _owned_handlers.pop()
        root.removeHandler(handler)
        handler.close()


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    tz: str = "UTC",
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Configure the root logger; safe to call repeatedly.

    Parameters
    ----------
    log_level : str
        Level name, e.g. "DEBUG" or "INFO"
    log_file : str, optional
        Also log to this file (parent directories are created)
    json : bool
        Write the file as JSON lines instead of human lines
    color : bool
        Color console level names
    to_stderr : bool
        Attach the console handler
    rotate : dict, optional
        ``{"max_bytes": ..., "backup_count": ...}`` for a rotating file
    tz : str
        "UTC" or "local"
    capture_warnings : bool
        Route ``warnings.warn`` through logging
    quiet_libs : list[str], optional
        Loggers capped at WARNING; defaults to ["PIL"]
    context : dict, optional
        Fields pushed for every following record, e.g. {"app": "convert"}

    Returns
    -------
    dict
        ``{"handlers": [...]}``, the handlers that were installed.

    Raises
    ------
    ValueError
        If log_level is not a logging level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    _drop_owned_handlers()

    installed: List[logging.Handler] = []
    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter("human", color, tz))
        installed.append(console)
    if log_file:
        installed.append(_file_handler(log_file, rotate, json, tz))

    root = logging.getLogger()
    root.setLevel(level)
    for handler in installed:
        root.addHandler(handler)
    _owned_handlers.extend(installed)

    for name in quiet_libs if quiet_libs is not None else ["PIL"]:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.captureWarnings(capture_warnings)

    if context:
        push_context(**context)

    return {'handlers': installed}


def reset_logging() -> None:
    """Remove the handlers setup_logging() installed and clear all context."""
    _drop_owned_handlers()
    pop_context()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def push_context(**fields: Any) -> None:
    """Attach fields to every record logged from now on in this context."""
    _FIELDS.set({**_FIELDS.get(), **fields})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Detach the given fields, or every field when keys is None."""
    if keys is None:
        _FIELDS.set({})
        return
    _FIELDS.set({k: v for k, v in _FIELDS.get().items() if k not in keys})


def get_context() -> Dict[str, Any]:
    return dict(_FIELDS.get())


@contextlib.contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach fields for the duration of a ``with`` block.

    Values a field had before the block are restored on exit.
    """
    token = _FIELDS.set({**_FIELDS.get(), **fields})
    try:
        yield
    finally:
        _FIELDS.reset(token)


def install_excepthook() -> None:
    """Log uncaught exceptions (Ctrl+C excluded) at CRITICAL before exit."""
    def _hook(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = _hook

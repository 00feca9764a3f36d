"""Loguru-style logging facade backed by stdlib logging + rich.

Usage::

    from cloudpool.observability.logger import logger

    log = logger.bind(component="planner", pool="web")
    log.info("need {n} victim(s)", n=2)
    # -> [component=planner pool=web] need 2 victim(s)

Records from cloudpool modules go to the ``logging.Logger`` named after the
calling module; records from anywhere else go to the ``cloudpool`` logger.
That logger does not propagate and only carries a NullHandler until
``logger.add`` attaches a sink.
"""

from __future__ import annotations

import inspect
import itertools
import logging
import logging.handlers
import os
import sys
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_root = logging.getLogger("cloudpool")

# bound keys rendered in front of the message, in this order
_CONTEXT_KEYS = ("component", "pool", "machine_id", "driver")

_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}
DEFAULT_ROTATION_BYTES = 50 * 1024**2
DEFAULT_RETENTION = 10

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def _caller_frame() -> inspect.FrameInfo:
    stack = inspect.stack()
    return next((f for f in stack[1:] if f.filename != __file__), stack[-1])


def _target_logger(module: str) -> logging.Logger:
    if module.split(".", 1)[0] != _root.name:
        return _root
    return logging.getLogger(module)


def _render(context: dict[str, object], message: str, args: tuple, kwargs: dict) -> str:
    if kwargs or args:
        message = message.format(*args, **kwargs)
    prefix = " ".join(f"{k}={context[k]}" for k in _CONTEXT_KEYS if k in context)
    return f"[{prefix}] {message}" if prefix else message


class BoundLogger:
    """A logger carrying bound context values."""

    __slots__ = ("_context",)

    def __init__(self, context: dict[str, object] | None = None) -> None:
        self._context = context or {}

    def bind(self, **context: object) -> BoundLogger:
        return BoundLogger(self._context | context)

    def _emit(self, level: int, message: str, args: tuple, kwargs: dict) -> None:
        with_traceback = kwargs.pop("exc_info", False)
        caller = _caller_frame()
        target = _target_logger(caller.frame.f_globals.get("__name__", _root.name))
        if not target.isEnabledFor(level):
            return
        record = target.makeRecord(
            target.name,
            level,
            caller.filename,
            caller.lineno,
            _render(self._context, message, args, kwargs),
            (),
            sys.exc_info() if with_traceback else None,
            func=caller.function,
            extra={"context": dict(self._context)},
        )
        record.filename = os.path.basename(caller.filename)
        target.handle(record)

    def trace(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._emit(TRACE, message, args, kwargs)

    def debug(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._emit(logging.DEBUG, message, args, kwargs)

    def info(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._emit(logging.INFO, message, args, kwargs)

    def warning(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._emit(logging.WARNING, message, args, kwargs)

    def error(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._emit(logging.ERROR, message, args, kwargs)

    def exception(self, message: str, /, *args: object, **kwargs: object) -> None:
        kwargs["exc_info"] = True
        self._emit(logging.ERROR, message, args, kwargs)


def _parse_rotation_bytes(rotation: str) -> int:
    """Parse sizes such as "50 MB"; anything else falls back to the default."""
    match rotation.strip().split():
        case [amount, unit] if amount.isdigit() and unit.upper() in _SIZE_UNITS:
            return int(amount) * _SIZE_UNITS[unit.upper()]
        case _:
            return DEFAULT_ROTATION_BYTES


def _file_sink(path: str, level: int, rotation: str | None, retention: int | None) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=_parse_rotation_bytes(rotation) if rotation else DEFAULT_ROTATION_BYTES,
        backupCount=DEFAULT_RETENTION if retention is None else retention,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    handler.setLevel(level)
    return handler


def _console_sink(stream: TextIO, level: int) -> logging.Handler:
    handler = RichHandler(
        console=Console(file=stream),
        markup=False,
        rich_tracebacks=True,
        log_time_format="%H:%M:%S",
    )
    handler.setLevel(level)
    return handler


class LoguruCompat(BoundLogger):
    """The module-level ``logger``: an unbound logger that also manages sinks."""

    __slots__ = ()

    _ids = itertools.count(1)
    _sinks: dict[int, logging.Handler] = {}

    def add(
        self,
        sink: str | TextIO,
        *,
        level: str = "DEBUG",
        rotation: str | None = None,
        retention: int | None = None,
    ) -> int:
        """Attach a file path or text stream sink; returns its id."""
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            numeric = logging.DEBUG

        match sink:
            case str() as path:
                handler = _file_sink(path, numeric, rotation, retention)
            case stream:
                handler = _console_sink(stream, numeric)

        sink_id = next(self._ids)
        self._sinks[sink_id] = handler
        _root.addHandler(handler)
        return sink_id

    def remove(self, sink_id: int | None = None) -> None:
        """Detach one sink, or all of them."""
        ids = list(self._sinks) if sink_id is None else [sink_id]
        for i in ids:
            handler = self._sinks.pop(i, None)
            if handler is not None:
                _root.removeHandler(handler)
                handler.close()

    def enable(self, name: str = "cloudpool") -> None:
        logging.getLogger(name).setLevel(TRACE)

    def disable(self, name: str = "cloudpool") -> None:
        logging.getLogger(name).setLevel(logging.CRITICAL + 1)


logger = LoguruCompat()

_root.setLevel(TRACE)
_root.propagate = False
_root.addHandler(logging.NullHandler())

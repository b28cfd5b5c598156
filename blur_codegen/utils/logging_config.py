"""Logging configuration for the generator entrypoints.

Generated source goes to stdout, so the handler installed here writes
to stderr.  Two record layouts are supported:

    Human: 2026-10-19T13:45:12.345Z | INFO     | run=cli | Emitted 7 levels
    JSON:  {"t":"2026-10-19T13:45:12.345000+00:00","lvl":"INFO","run":"cli","msg":"..."}

Public API:
    setup_logging(log_level="INFO", json=False, context={"run": "cli"})
    push_context(power=3)
    pop_context(keys=["power"])

Contextual fields live in a ``contextvars.ContextVar``.
Repeated ``setup_logging()`` calls replace handlers instead of stacking them.
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


_context_var = contextvars.ContextVar('blur_codegen_logging_context', default={})

_installed: List[logging.Handler] = []


class ContextFormatter(logging.Formatter):
    """Formatter that appends the current contextual fields.

    Parameters
    ----------
    fmt_mode : str
        ``"human"`` or ``"json"``
    use_color : bool
        ANSI level colors; only honoured when stderr is a TTY
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"Unknown log format: {fmt_mode}. Use 'human' or 'json'.")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        context = _context_var.get({})
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)

        if self.fmt_mode == "json":
            payload = {
                't': ts.isoformat(),
                'lvl': record.levelname,
                'name': record.name,
                'msg': record.getMessage(),
            }
            payload.update(context)
            if record.exc_info:
                payload['exc'] = self.formatException(record.exc_info)
            return json.dumps(payload)

        ts_str = ts.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        parts = [ts_str, '|', level, '|']
        if context:
            parts.append(' '.join(f"{k}={v}" for k, v in context.items()))
            parts.append('|')
        parts.append(record.getMessage())

        line = ' '.join(parts)
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_level: str = "INFO",
    *,
    json: bool = False,
    color: bool = True,
    context: Optional[Dict[str, Any]] = None,
) -> List[logging.Handler]:
    """Configure the root logger (idempotent).

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
    json : bool
        Emit JSON lines on stderr instead of the human layout
    color : bool
        ANSI colors on stderr (ignored when not a TTY)
    context : dict, optional
        Initial contextual fields, e.g. ``{"run": "cli"}``

    Returns
    -------
    list[logging.Handler]
        Handlers installed on the root logger

    Raises
    ------
    ValueError
        If *log_level* is not a known level name
    """
    global _installed

    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ContextFormatter("json" if json else "human", color))
    root.addHandler(console)

    if context:
        push_context(**context)

    logging.captureWarnings(True)

    _installed = [console]
    return list(_installed)


def push_context(**kwargs) -> None:
    """Add contextual fields to every subsequent record.

    Examples
    --------
    >>> push_context(run="cli")
    >>> push_context(power=3)   # records now carry run=cli power=3
    """
    current = _context_var.get({})
    _context_var.set({**current, **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove the given contextual fields, or all of them when *keys* is None."""
    if keys is None:
        _context_var.set({})
        return
    current = dict(_context_var.get({}))
    for key in keys:
        current.pop(key, None)
    _context_var.set(current)


def get_context() -> Dict[str, Any]:
    """Return a copy of the active contextual fields."""
    return dict(_context_var.get({}))


def reset_logging() -> None:
    """Remove the handlers installed by ``setup_logging`` and clear context."""
    global _installed
    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed = []
    pop_context()

"""Logging utilities.

Console output goes through rich. Every record carries the id of the drafting run and the
agent step it belongs to, bound with :func:`run_context`.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
from collections.abc import Iterator
from pathlib import Path

from rich.logging import RichHandler

_run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("thesisforge_run_id", default="-")
_step_var: contextvars.ContextVar[str] = contextvars.ContextVar("thesisforge_step", default="-")

_CONSOLE_FORMAT = "run=%(run_id)s step=%(step)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s run=%(run_id)s step=%(step)s %(name)s: %(message)s"

# Per-request INFO lines from the HTTP stack drown out the workflow log
_NOISY_LOGGERS = ("httpx", "httpcore", "openai")


class _ContextFilter(logging.Filter):
    """Stamp run id and step onto log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id = _run_id_var.get()  # type: ignore[attr-defined]
        record.step = _step_var.get()  # type: ignore[attr-defined]
        return True


@contextlib.contextmanager
def run_context(*, run_id: str, step: str | None = None) -> Iterator[None]:
    """Bind run id and step for every record logged inside the block.

    Args:
        run_id: Drafting run identifier.
        step: Acting agent or review action; inherits the enclosing step when omitted.
    """

    token_run = _run_id_var.set(run_id)
    token_step = _step_var.set(step or _step_var.get())
    try:
        yield
    finally:
        _run_id_var.reset(token_run)
        _step_var.reset(token_step)


def _ensure_filter(handler: logging.Handler) -> None:
    if not any(isinstance(f, _ContextFilter) for f in handler.filters):
        handler.addFilter(_ContextFilter())


def configure_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    """Configure application logging.

    Safe to call repeatedly; the CLI and the API factory both call it.

    Args:
        level: Logging level name.
        log_file: Also append plain-text records to this file.
    """

    root = logging.getLogger()
    root.setLevel(level)

    console = next((h for h in root.handlers if isinstance(h, RichHandler)), None)
    if console is None:
        console = RichHandler(rich_tracebacks=True, show_time=True, show_level=True)
        root.addHandler(console)
    console.setFormatter(logging.Formatter(fmt=_CONSOLE_FORMAT))
    _ensure_filter(console)

    if log_file is not None:
        target = str(log_file.resolve())
        existing = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        if not any(h.baseFilename == target for h in existing):
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
            _ensure_filter(file_handler)
            root.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    return logging.getLogger(name)

from __future__ import annotations

import logging
import os
from typing import Optional

try:
    import coloredlogs  # type: ignore
except Exception:  # pragma: no cover
    coloredlogs = None  # type: ignore

from .. import config as _cfg

ROOT_LOGGER = "clxor"
_FMT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LOGGER_CREATED: dict[str, logging.Logger] = {}


def _resolve_level(level_name: Optional[str]) -> int:
    if not level_name:
        return logging.INFO
    name = str(level_name).upper()
    return getattr(logging, name, logging.INFO)


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root
    level = _resolve_level(os.environ.get("CLXOR_LOG_LEVEL") or _cfg.get("CLXOR_LOG_LEVEL"))
    root.setLevel(level)
    if coloredlogs is not None:
        coloredlogs.install(level=level, logger=root, fmt=_FMT)  # type: ignore
    else:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(_FMT))
        root.addHandler(handler)
    root.propagate = False
    return root


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Return a logger under the `clxor` hierarchy.

    Handlers live on the `clxor` root only; child loggers propagate to it.
    """
    if name in _LOGGER_CREATED:
        return _LOGGER_CREATED[name]
    _configure_root()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    logger = logging.getLogger(name)
    _LOGGER_CREATED[name] = logger
    return logger


def log_text_block(logger: logging.Logger, header: str, text: str, level: int = logging.INFO) -> None:
    """Emit a multi-line text (e.g. a compiler log) under a header line."""
    logger.log(level, "%s\n%s", header, text.rstrip())

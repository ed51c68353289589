# /_logging.py
# PlexRelay - module-tagged logger
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import logging
import sys
from typing import Any

RESET = "\033[0m"
DIM = "\033[2m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "SUCCESS": SUCCESS,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

_LEVEL_COLORS: dict[int, str] = {
    logging.DEBUG: DIM,
    SUCCESS: GREEN,
    logging.WARNING: YELLOW,
    logging.ERROR: RED,
}

ROOT_NAME = "plexrelay"


class _Formatter(logging.Formatter):
    def __init__(self, use_color: bool) -> None:
        super().__init__("%(asctime)s %(levelname)-7s [%(module_tag)s] %(message)s", "%H:%M:%S")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "module_tag"):
            record.module_tag = record.name.rsplit(".", 1)[-1].upper()
        line = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno) if self.use_color else None
        return f"{color}{line}{RESET}" if color else line


class Logger:
    use_color: bool = sys.stdout.isatty()

    def __init__(self, module: str = "APP") -> None:
        self.module = (module or "APP").upper()
        self._logger = logging.getLogger(f"{ROOT_NAME}.{self.module.lower()}")

    def __call__(self, msg: str, level: str = "INFO", module: str | None = None, **_: Any) -> None:
        target = self if not module or module.upper() == self.module else self.child(module)
        lvl = _LEVELS.get(str(level or "INFO").upper(), logging.INFO)
        target._logger.log(lvl, msg, extra={"module_tag": target.module})

    def child(self, module: str) -> Logger:
        return Logger(module)

    def debug(self, msg: str) -> None:
        self(msg, level="DEBUG")

    def info(self, msg: str) -> None:
        self(msg, level="INFO")

    def success(self, msg: str) -> None:
        self(msg, level="SUCCESS")

    def warn(self, msg: str) -> None:
        self(msg, level="WARN")

    def error(self, msg: str) -> None:
        self(msg, level="ERROR")


def configure(debug: bool = False) -> None:
    """Attach a single stream handler to the project's root logger."""
    root = logging.getLogger(ROOT_NAME)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    for h in list(root.handlers):
        if getattr(h, "_plexrelay", False):
            root.removeHandler(h)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_Formatter(Logger.use_color))
    handler._plexrelay = True  # type: ignore[attr-defined]
    root.addHandler(handler)


log = Logger("APP")

__all__ = ["log", "Logger", "configure", "BLUE", "GREEN", "DIM", "RESET"]

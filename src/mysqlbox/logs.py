"""Per-manager logging sink.

Each :class:`~mysqlbox.box.LifecycleManager` owns one ``LogSink``. Messages
go to the module logger as usual and are also kept, formatted, in a bounded
buffer that belongs to that manager alone, so a failing test can dump what
its own sandbox went through without other sandboxes' noise.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any

logger = logging.getLogger(__name__)


class LogSink:
    """Forward messages to a logger and keep the last *capacity* lines."""

    def __init__(
        self,
        name: str | None = None,
        *,
        capacity: int = 1000,
        target: logging.Logger | None = None,
    ) -> None:
        self.name = name
        self._logger = target or logger
        self._lines: deque[str] = deque(maxlen=capacity)

    def log(self, level: int, msg: str, *args: Any) -> None:
        text = msg % args if args else msg
        prefix = f"[{self.name}] " if self.name else ""
        self._lines.append(f"{logging.getLevelName(level)} {prefix}{text}")
        self._logger.log(level, "%s%s", prefix, text)

    def debug(self, msg: str, *args: Any) -> None:
        self.log(logging.DEBUG, msg, *args)

    def info(self, msg: str, *args: Any) -> None:
        self.log(logging.INFO, msg, *args)

    def warning(self, msg: str, *args: Any) -> None:
        self.log(logging.WARNING, msg, *args)

    def error(self, msg: str, *args: Any) -> None:
        self.log(logging.ERROR, msg, *args)

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def text(self) -> str:
        return "\n".join(self._lines)

    def clear(self) -> None:
        self._lines.clear()

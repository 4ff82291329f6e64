"""
MODULE OVERVIEW:
The pluggable pieces a `SmallBot` talks to besides the homeserver.

WHAT IS HAPPENING HERE:
A bot needs somewhere to log, somewhere to keep its sync cursor and a way to
turn HTML into plain text. Each of these is a small Protocol with one default
adapter. Callers can hand in anything with the same shape; there is no base
class to inherit from.
"""
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol, runtime_checkable
from loguru import logger

from smallbot.shared.models import TimelineEvent

if TYPE_CHECKING:
    from smallbot.client.small_bot import SmallBot

EventHandler = Callable[["SmallBot", str, TimelineEvent], Awaitable[None]]
HtmlFormatter = Callable[[str], str]

@runtime_checkable
class BotLogger(Protocol):
    def info(self, message: str) -> None: ...
    def error(self, message: str) -> None: ...

@runtime_checkable
class BotStore(Protocol):
    def read(self) -> str | None: ...
    def write(self, since: str) -> None: ...

class LoguruLogger:
    """Forwards to the process-wide loguru logger (stderr unless reconfigured)."""

    def info(self, message: str) -> None:
        logger.opt(depth=1).info(message)

    def error(self, message: str) -> None:
        logger.opt(depth=1).error(message)

class FileStore:
    """
    Keeps the sync cursor as the whole content of a single text file.
    A file that is missing or unreadable reads as "no cursor yet".
    """

    def __init__(self, path: str | Path = "small.store"):
        self.path = Path(path)

    def read(self) -> str | None:
        try:
            since = self.path.read_text(encoding="utf-8").strip()
        except OSError:
            return None
        return since or None

    def write(self, since: str) -> None:
        self.path.write_text(since, encoding="utf-8")

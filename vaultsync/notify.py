"""User-facing notifications and prompts."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import threading
from typing import Callable, List, Optional

from rich.console import Console
from rich.text import Text

logger = logging.getLogger("vaultsync.notify")


class Notifier(ABC):
    """Delivers short messages to a human and asks for short input."""

    @abstractmethod
    def notify(self, message: str, duration: Optional[float] = None) -> None:
        """Show ``message``; ``duration`` is how long a transient UI keeps it."""

    @abstractmethod
    def prompt(self, message: str) -> str:
        """Ask for one line of input and return it stripped."""


class ConsoleNotifier(Notifier):
    """Prints notices with Rich; prompts on stdin.

    Notices can arrive from the listener's timer thread while the shell is
    waiting for input, so printing is serialized.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        input_fn: Callable[[str], str] = input,
    ):
        self.console = console or Console()
        self.input_fn = input_fn
        self._lock = threading.Lock()

    def notify(self, message: str, duration: Optional[float] = None) -> None:
        # duration is a hint for toast-style UIs; a terminal keeps the line
        logger.info("Notice: %s", message)
        with self._lock:
            self.console.print(Text(f"[notice] {message}", style="bold yellow"))

    def prompt(self, message: str) -> str:
        with self._lock:
            return self.input_fn(f"{message} ").strip()


class RecordingNotifier(Notifier):
    """Collects notices in memory; used when running headless."""

    def __init__(self, answers: Optional[List[str]] = None):
        self.messages: List[str] = []
        self.answers = list(answers or [])

    def notify(self, message: str, duration: Optional[float] = None) -> None:
        logger.info("Notice: %s", message)
        self.messages.append(message)

    def prompt(self, message: str) -> str:
        self.messages.append(message)
        return self.answers.pop(0) if self.answers else ""


__all__ = ["Notifier", "ConsoleNotifier", "RecordingNotifier"]

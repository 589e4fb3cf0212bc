"""Severity-coded terminal messages."""

from rich.console import Console
from rich.text import Text

console = Console(highlight=False)

_STYLES = {
    "INFO": "bold cyan",
    "SUCCESS": "bold green",
    "WARN": "bold yellow",
    "ERROR": "bold red",
}


def _emit(level: str, message: str) -> None:
    console.print(Text.assemble((f"[{level}]", _STYLES[level]), " ", message))


def info(message: str) -> None:
    _emit("INFO", message)


def success(message: str) -> None:
    _emit("SUCCESS", message)


def warn(message: str) -> None:
    _emit("WARN", message)


def error(message: str) -> None:
    _emit("ERROR", message)

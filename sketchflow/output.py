"""Output sink and editor-side collaborators used by the orchestrator."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod

import click


class OutputChannel(ABC):
    """Sink for toolchain output and progress messages."""

    @abstractmethod
    def write(self, text: str) -> None:
        """Append raw text (toolchain output is streamed through here)."""

    def show(self) -> None:
        """Bring the channel to the user's attention. Optional."""

    def start(self, message: str) -> None:
        self.write(f"[Starting] {message}{os.linesep}")

    def end(self, message: str) -> None:
        self.write(f"[Done] {message}{os.linesep}")

    def info(self, message: str) -> None:
        self.write(f"{message}{os.linesep}")

    def warning(self, message: str) -> None:
        self.write(f"[Warning] {message}{os.linesep}")

    def error(self, message: str) -> None:
        self.write(f"[Error] {message}{os.linesep}")


class ConsoleChannel(OutputChannel):
    """Writes to the terminal; errors and warnings go to stderr."""

    def write(self, text: str) -> None:
        click.echo(text, nl=False)

    def warning(self, message: str) -> None:
        click.echo(f"[Warning] {message}", err=True)

    def error(self, message: str) -> None:
        click.echo(f"[Error] {message}", err=True)


class BufferChannel(OutputChannel):
    """Collects everything written, for callers that post-process output."""

    def __init__(self) -> None:
        self.chunks: list[str] = []

    def write(self, text: str) -> None:
        self.chunks.append(text)

    @property
    def text(self) -> str:
        return "".join(self.chunks)


class SerialMonitor:
    """Editor serial monitor. The default implementation never has a port open."""

    async def close_serial_monitor(self, port: str) -> bool:
        """Close the monitor if it is attached to `port`. Return True if it was open."""
        return False

    async def open_serial_monitor(self) -> None:
        """Reopen a monitor previously closed by close_serial_monitor."""


class HotplugListener:
    """USB hotplug watcher, paused while the toolchain resets the board."""

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass

"""Board selection and per-project device state."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

SKETCH_SUFFIXES = (".ino", ".pde")


@dataclass(frozen=True)
class BoardDescriptor:
    """A selected target board, read-only to the build core."""
    package: str
    architecture: str
    board: str
    # Menu options, e.g. "cpu=atmega328,speed=16"
    options: str = ""

    @classmethod
    def parse(cls, fqbn: str, options: str = "") -> BoardDescriptor:
        """Build a descriptor from a fully qualified board name (vendor:arch:board[:opts])."""
        parts = fqbn.split(":", 3)
        if len(parts) < 3 or not all(parts[:3]):
            raise ValueError(f"Invalid board identifier: {fqbn!r} (expected package:arch:board)")
        if len(parts) == 4 and not options:
            options = parts[3]
        return cls(package=parts[0], architecture=parts[1], board=parts[2], options=options)

    @property
    def build_config(self) -> str:
        """The fully qualified board name passed to the toolchain."""
        base = f"{self.package}:{self.architecture}:{self.board}"
        return f"{base}:{self.options}" if self.options else base


@dataclass
class DeviceContext:
    """Per-project settings: which sketch, which port, where build output goes."""
    project_root: Path | None = None
    sketch: str | None = None
    port: str | None = None
    output: str | None = None
    board: str | None = None
    configuration: str = ""

    @property
    def sketch_path(self) -> Path | None:
        if self.project_root is None or not self.sketch:
            return None
        return self.project_root / self.sketch

    def has_sketch(self) -> bool:
        path = self.sketch_path
        return path is not None and path.is_file()

    def board_descriptor(self) -> BoardDescriptor | None:
        """Return the selected board, or None when nothing valid is selected."""
        if not self.board:
            return None
        try:
            return BoardDescriptor.parse(self.board, self.configuration)
        except ValueError:
            return None


def is_sketch_file(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in SKETCH_SUFFIXES


async def find_main_sketch(ctx: DeviceContext) -> str | None:
    """Pick a sketch in the project root and record it on the context.

    Prefers `<folder>.ino` (the Arduino naming convention), then the first
    sketch file in name order.
    """
    root = ctx.project_root
    if root is None or not root.is_dir():
        return None
    candidates = sorted(p for p in root.iterdir() if is_sketch_file(p))
    if not candidates:
        return None
    preferred = [p for p in candidates if p.stem == root.name]
    chosen = (preferred or candidates)[0]
    ctx.sketch = chosen.name
    return ctx.sketch

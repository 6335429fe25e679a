"""Error types for sketchflow."""

from __future__ import annotations


class SketchflowError(Exception):
    """Structured error with an exit code."""

    exit_code = 1

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class UserConfigError(SketchflowError):
    """No board, port, sketch folder or command configured."""

    exit_code = 2


class ResolutionError(SketchflowError):
    """A platform directory, sketch or upload pattern could not be located."""

    exit_code = 3


class FilesystemError(SketchflowError):
    """Removing an installed package or library failed."""

    exit_code = 4


class SerialError(SketchflowError):
    """Opening a serial port failed.

    Exit codes:
        2: port not found / device disconnected
        3: port busy
        4: permission denied
    """

    exit_code = 2


class ToolchainExitError(SketchflowError):
    """The external toolchain exited with a non-zero code."""

    def __init__(self, message: str, exit_code: int):
        super().__init__(message, exit_code=exit_code)

"""Board package and library installation through the IDE executable."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable

from sketchflow.errors import FilesystemError, ToolchainExitError
from sketchflow.output import OutputChannel
from sketchflow.process import spawn

logger = logging.getLogger(__name__)

# Installing a package that does not exist still refreshes the indexes first.
INDEX_REFRESH_PACKAGE = "dummy"

# Exit code the IDE uses when the requested version is already installed.
EXIT_ALREADY_INSTALLED = 1

Spawn = Callable[..., Awaitable[int]]


class InstallStatus(Enum):
    SUCCESS = "success"
    ALREADY_PRESENT = "already-present"
    FAILURE = "failure"


@dataclass
class InstallResult:
    status: InstallStatus
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.status is not InstallStatus.FAILURE

    @classmethod
    def from_exit_code(cls, code: int) -> InstallResult:
        if code == 0:
            return cls(InstallStatus.SUCCESS, 0)
        if code == EXIT_ALREADY_INSTALLED:
            return cls(InstallStatus.ALREADY_PRESENT, code)
        return cls(InstallStatus.FAILURE, code)


def package_specifier(name: str, *qualifiers: str) -> str:
    """Join `name` with its non-empty qualifiers: name[:arch][:version]."""
    return ":".join([name, *[q for q in qualifiers if q]])


class PackageInstaller:
    """Installs and removes board packages and libraries.

    Installs go through `<command> --install-boards` / `--install-library`.
    The IDE exits with code 1 when there is nothing to do, which is treated
    as success.
    """

    def __init__(self, command_path: Path | str, channel: OutputChannel, spawn: Spawn = spawn):
        self._command_path = str(command_path)
        self._channel = channel
        self._spawn = spawn

    async def install_board_package(
        self, name: str, arch: str = "", version: str = "", show_output: bool = True,
    ) -> InstallResult:
        refresh = not name and not arch and not version
        if refresh:
            started, done = "Update package index files...", "Updated package index files."
        else:
            started = f"Install package - {name}..."
            done = f"Installed board package - {name}"
        spec = package_specifier(name or INDEX_REFRESH_PACKAGE, arch, version)
        return await self._install("--install-boards", spec, started, done, show_output)

    async def install_library(self, name: str, version: str = "", show_output: bool = True) -> InstallResult:
        refresh = not name and not version
        if refresh:
            started, done = "Update library index files...", "Updated library index files."
        else:
            started = f"Install library - {name}"
            done = f"Installed library - {name}"
        spec = package_specifier(name or INDEX_REFRESH_PACKAGE, version)
        return await self._install("--install-library", spec, started, done, show_output)

    def uninstall_board_package(self, name: str, package_path: Path | str) -> None:
        self._channel.start(f"Uninstall board package - {name}...")
        _remove_tree(package_path)
        self._channel.end(f"Uninstalled board package - {name}{os.linesep}")

    def uninstall_library(self, name: str, library_path: Path | str) -> None:
        self._channel.start(f"Remove library - {name}")
        _remove_tree(library_path)
        self._channel.end(f"Removed library - {name}{os.linesep}")

    async def _install(self, flag: str, spec: str, started: str, done: str, show_output: bool) -> InstallResult:
        self._channel.show()
        self._channel.start(started)
        try:
            code = await self._spawn(
                self._command_path,
                self._channel if show_output else None,
                [flag, spec],
            )
        except ToolchainExitError as e:
            code = e.exit_code

        result = InstallResult.from_exit_code(code)
        if result.ok:
            if result.status is InstallStatus.ALREADY_PRESENT:
                logger.debug("%s %s: nothing to install", flag, spec)
            self._channel.end(f"{done}{os.linesep}")
        else:
            logger.warning("%s %s failed with exit code %d", flag, spec, code)
            self._channel.error(f"Exit with code={code}{os.linesep}")
        return result


def _remove_tree(path: Path | str) -> None:
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Could not remove {path}: {e}") from e

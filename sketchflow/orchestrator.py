"""Verify and upload pipelines for Arduino sketches.

Three strategies are supported, selected by the `build.builder` setting:

* ``command``: run a user supplied command line verbatim.
* ``arduino-builder``: compile with arduino-builder and upload with the
  pattern from the platform's platform.txt/boards.txt.
* ``arduino`` (default): drive the IDE executable with --verify/--upload.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable

from sketchflow.board import BoardDescriptor, DeviceContext, find_main_sketch
from sketchflow.config import Settings
from sketchflow.errors import ResolutionError, ToolchainExitError, UserConfigError
from sketchflow.installer import PackageInstaller
from sketchflow.output import ConsoleChannel, HotplugListener, OutputChannel, SerialMonitor
from sketchflow.platform import resolve_platform_path
from sketchflow.process import spawn, split_args
from sketchflow.properties import PropertySet
from sketchflow.serial.negotiator import ListDevices, SerialPortNegotiator, Sleep
from sketchflow.serial.port import list_serial_devices

logger = logging.getLogger(__name__)

Spawn = Callable[..., Awaitable[int]]
SketchFinder = Callable[[DeviceContext], Awaitable["str | None"]]


class Builder(Enum):
    COMMAND = "command"
    PATTERN = "arduino-builder"
    IDE = "arduino"

    @classmethod
    def from_setting(cls, value: str | None) -> Builder:
        """Map the build.builder setting to a strategy; anything unknown uses the IDE."""
        for member in cls:
            if member.value == value:
                return member
        return cls.IDE


class Bootstrap(Enum):
    ATTEMPTED = "attempted"
    SKIPPED = "skipped"


@dataclass
class BootstrapResult:
    """Outcome of a best-effort setup step. Failures are recorded, not raised."""
    step: str
    outcome: Bootstrap
    error: str | None = None


class Orchestrator:
    """Runs verify and upload for a sketch.

    Each call is an independent pipeline; the orchestrator keeps no state
    between calls. Collaborators are injected so they can be replaced in
    tests or by a host editor.
    """

    def __init__(
        self,
        settings: Settings,
        channel: OutputChannel | None = None,
        spawn: Spawn = spawn,
        list_devices: ListDevices = list_serial_devices,
        sleep: Sleep = asyncio.sleep,
        serial_monitor: SerialMonitor | None = None,
        hotplug: HotplugListener | None = None,
        sketch_finder: SketchFinder = find_main_sketch,
        negotiator: SerialPortNegotiator | None = None,
    ):
        self.settings = settings
        self.channel = channel or ConsoleChannel()
        self._spawn = spawn
        self.serial_monitor = serial_monitor or SerialMonitor()
        self.hotplug = hotplug or HotplugListener()
        self._sketch_finder = sketch_finder
        self.negotiator = negotiator or SerialPortNegotiator(
            list_devices=list_devices, sleep=sleep, channel=self.channel,
        )
        self.installer = PackageInstaller(settings.command_path, self.channel, spawn=spawn)

    # --- Public pipelines ---

    async def verify(self, ctx: DeviceContext, board: BoardDescriptor | None, output: str = "") -> bool:
        """Compile the sketch. Returns True when the toolchain exits with 0."""
        build_config = self._board_build_string(board)
        await self._ensure_sketch(ctx)

        builder = Builder.from_setting(self.settings.builder)
        logger.debug("verify %s with %s", ctx.sketch, builder.value)
        if builder is Builder.COMMAND:
            return await self._verify_by_command(ctx)
        if builder is Builder.PATTERN:
            return await self._verify_by_builder(ctx, build_config, output)
        return await self._verify_by_ide(ctx, build_config, output)

    async def upload(self, ctx: DeviceContext, board: BoardDescriptor | None) -> bool:
        """Compile and flash the sketch to the board on ctx.port."""
        build_config = self._board_build_string(board)
        await self._ensure_sketch(ctx)
        if not ctx.port:
            raise UserConfigError("Please specify the upload serial port.")

        builder = Builder.from_setting(self.settings.builder)
        logger.debug("upload %s to %s with %s", ctx.sketch, ctx.port, builder.value)
        self.hotplug.pause()
        try:
            if builder is Builder.COMMAND:
                return await self._upload_by_command(ctx)
            if builder is Builder.PATTERN:
                return await self._upload_by_pattern(ctx, board)
            return await self._upload_by_ide(ctx, build_config)
        finally:
            self.hotplug.resume()

    # --- Best-effort setup ---

    async def set_pref(self, key: str, value: str) -> None:
        await self._spawn(self.settings.command_path, None, ["--pref", f"{key}={value}", "--save-prefs"])

    async def initialize(self, force: bool = False) -> list[BootstrapResult]:
        """Create the IDE preferences file and package index if they are missing."""
        results = []
        if not self.settings.preference_path.exists():
            try:
                await self.set_pref("boardsmanager.additional.urls", "")
                results.append(BootstrapResult("preferences", Bootstrap.ATTEMPTED))
            except ToolchainExitError as e:
                logger.debug("Ignoring preferences bootstrap failure: %s", e)
                results.append(BootstrapResult("preferences", Bootstrap.ATTEMPTED, e.message))
        else:
            results.append(BootstrapResult("preferences", Bootstrap.SKIPPED))

        if force or not (self.settings.package_path / "package_index.json").exists():
            result = await self.installer.install_board_package("", show_output=True)
            error = None if result.ok else f"exit code {result.exit_code}"
            results.append(BootstrapResult("package_index", Bootstrap.ATTEMPTED, error))
        else:
            results.append(BootstrapResult("package_index", Bootstrap.SKIPPED))
        return results

    async def initialize_library(self, force: bool = False) -> BootstrapResult:
        """Download the library index if it is missing."""
        if not force and (self.settings.package_path / "library_index.json").exists():
            return BootstrapResult("library_index", Bootstrap.SKIPPED)
        result = await self.installer.install_library("", show_output=True)
        error = None if result.ok else f"exit code {result.exit_code}"
        return BootstrapResult("library_index", Bootstrap.ATTEMPTED, error)

    # --- Shared stages ---

    def _board_build_string(self, board: BoardDescriptor | None) -> str:
        if board is None:
            raise UserConfigError("No board selected. Please select a board first.")
        return board.build_config

    async def _ensure_sketch(self, ctx: DeviceContext) -> None:
        if ctx.project_root is None or not ctx.project_root.is_dir():
            raise UserConfigError("Cannot find the sketch file.")
        if ctx.has_sketch():
            return
        await self._sketch_finder(ctx)
        if not ctx.has_sketch():
            raise ResolutionError(
                "No sketch file was found. Please specify the sketch in the arduino.json file"
            )

    async def _run(self, executable, args: list[str], cwd: Path | None = None) -> bool:
        """Spawn the toolchain, reporting a non-zero exit on the channel."""
        try:
            await self._spawn(executable, self.channel, args, cwd=cwd)
        except ToolchainExitError as e:
            self.channel.error(f"Exit with code={e.exit_code}{os.linesep}")
            return False
        return True

    def _output_path(self, ctx: DeviceContext, output: str = "") -> Path | None:
        folder = output or ctx.output
        if not folder:
            return None
        return ctx.project_root / folder

    # --- Verify strategies ---

    async def _verify_by_command(self, ctx: DeviceContext) -> bool:
        self.channel.start(f"Verify sketch - {ctx.sketch}")
        self.channel.show()
        args = self._user_command(self.settings.verify_command, "verify")
        if not await self._run(args[0], args[1:], cwd=ctx.project_root):
            return False
        self.channel.end(f"Finished verify sketch - {ctx.sketch}{os.linesep}")
        return True

    async def _verify_by_builder(self, ctx: DeviceContext, build_config: str, output: str) -> bool:
        self.channel.start(f"Verify sketch - {ctx.sketch}")
        args = self.builder_args(ctx, build_config, output)
        self.channel.show()
        if not await self._run(self.settings.builder_path, args):
            return False
        self.channel.end(f"Finished verify sketch - {ctx.sketch}{os.linesep}")
        return True

    def builder_args(self, ctx: DeviceContext, build_config: str, output: str = "") -> list[str]:
        """Command line for arduino-builder -compile."""
        s = self.settings
        args = ["-compile"]
        for p in (s.default_package_path, s.package_path / "packages", s.sketchbook_path / "packages"):
            if p.is_dir():
                args += ["-hardware", str(p)]
        for p in (s.arduino_path / "tools-builder", s.default_package_path / "tools" / "avr",
                  s.package_path / "packages"):
            if p.is_dir():
                args += ["-tools", str(p)]

        args += ["-built-in-libraries", str(s.arduino_path / "libraries")]
        libraries = s.sketchbook_path / "libraries"
        if libraries.is_dir():
            args += ["-libraries", str(libraries)]

        args += ["-fqbn", build_config]
        output_path = self._output_path(ctx, output)
        if output_path is not None:
            output_path.mkdir(parents=True, exist_ok=True)
            args += ["-build-path", str(output_path)]
        else:
            self.channel.warning("No output folder specified. Output to a temporary folder.")
        if s.verbose:
            args.append("-verbose")
        args += ["-logger", "humantags", str(ctx.sketch_path)]
        return args

    async def _verify_by_ide(self, ctx: DeviceContext, build_config: str, output: str) -> bool:
        self.channel.start(f"Verify sketch - {ctx.sketch}")
        args = ["--verify", "--board", build_config, str(ctx.sketch_path)]
        if self.settings.verbose:
            args.append("--verbose")
        output_path = self._output_path(ctx, output)
        if output_path is not None:
            args += ["--pref", f"build.path={output_path}"]

        self.channel.show()
        if not await self._run(self.settings.command_path, args):
            return False
        self.channel.end(f"Finished verify sketch - {ctx.sketch}{os.linesep}")
        return True

    # --- Upload strategies ---

    async def _upload_by_command(self, ctx: DeviceContext) -> bool:
        self.channel.show()
        self.channel.start(f"Upload sketch - {ctx.sketch}")
        args = self._user_command(self.settings.upload_command, "upload")
        need_restore = await self.serial_monitor.close_serial_monitor(ctx.port)

        if not await self._run(args[0], args[1:], cwd=ctx.project_root):
            return False
        await self._uploaded(ctx, need_restore)
        return True

    async def _upload_by_pattern(self, ctx: DeviceContext, board: BoardDescriptor) -> bool:
        properties = self.upload_properties(ctx, board)
        tool = properties.get("upload.tool")
        pattern = properties.get(f"tools.{tool}.upload.pattern")
        if not pattern:
            raise ResolutionError(f"No upload pattern found for tool {tool!r}.")

        need_restore = await self.serial_monitor.close_serial_monitor(ctx.port)
        port = await self.negotiator.prepare_upload_port(ctx.port, properties, self.settings.verbose)
        set_serial_port(properties, port)

        args = split_args(properties.expand(pattern))
        logger.debug("upload pattern for %s: %s", tool, args)
        if not await self._run(args[0], args[1:], cwd=ctx.project_root):
            return False
        await self.negotiator.wait_for_port(ctx.port)
        await self._uploaded(ctx, need_restore)
        return True

    def upload_properties(self, ctx: DeviceContext, board: BoardDescriptor) -> PropertySet:
        """Merge platform.txt, the board's boards.txt entries and tool overrides."""
        package_dir = resolve_platform_path(board, self.settings.default_package_path, self.settings.package_path)
        if package_dir is None:
            raise ResolutionError("Cannot find properties for upload.")

        properties = PropertySet.load_file(package_dir / "platform.txt")
        board_prefs = PropertySet.load_file(package_dir / "boards.txt")
        properties.merge(board_prefs.extract_with_prefix(board.board))
        properties.merge(self.settings.tool_properties)

        if not ctx.output:
            raise UserConfigError("No output folder specified. Cannot find binary.")
        properties.set("build.path", str(ctx.project_root / ctx.output))
        properties.set("build.project_name", Path(ctx.sketch).name)

        tool = properties.get("upload.tool")
        mode = "verbose" if self.settings.verbose else "quiet"
        params = properties.get(f"tools.{tool}.upload.params.{mode}")
        if params is not None:
            properties.set("upload.verbose", params)
        return properties

    async def _upload_by_ide(self, ctx: DeviceContext, build_config: str) -> bool:
        self.channel.show()
        self.channel.start(f"Upload sketch - {ctx.sketch}")
        need_restore = await self.serial_monitor.close_serial_monitor(ctx.port)

        args = ["--upload", "--board", build_config, "--port", ctx.port, str(ctx.sketch_path)]
        if self.settings.verbose:
            args.append("--verbose")
        if not await self._run(self.settings.command_path, args):
            return False
        await self._uploaded(ctx, need_restore)
        return True

    async def _uploaded(self, ctx: DeviceContext, need_restore: bool) -> None:
        if need_restore:
            await self.serial_monitor.open_serial_monitor()
        self.channel.end(f"Uploaded the sketch: {ctx.sketch}{os.linesep}")

    def _user_command(self, command: str, action: str) -> list[str]:
        args = split_args(command or "")
        if not args:
            raise UserConfigError(f"No {action} command configured (build.{action}_command).")
        return args


def set_serial_port(properties: PropertySet, port: str) -> None:
    """Set serial.port and serial.port.file (the port without /dev/)."""
    properties.set("serial.port", port)
    if port.startswith("/dev/"):
        properties.set("serial.port.file", port[len("/dev/"):])
    else:
        properties.set("serial.port.file", port)

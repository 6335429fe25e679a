"""Shared fakes for sketchflow tests."""

from pathlib import Path

import pytest

from sketchflow.config import Settings
from sketchflow.errors import ToolchainExitError
from sketchflow.output import BufferChannel, HotplugListener, SerialMonitor


class FakeSpawn:
    """Records spawn calls and exits with a preset code."""

    def __init__(self, exit_code=0, output=""):
        self.exit_code = exit_code
        self.output = output
        self.calls = []

    async def __call__(self, executable, sink, args, cwd=None):
        self.calls.append({"executable": str(executable), "args": list(args), "cwd": cwd, "sink": sink})
        if sink is not None and self.output:
            sink.write(self.output)
        if self.exit_code != 0:
            raise ToolchainExitError(f"{executable} exited with code {self.exit_code}", exit_code=self.exit_code)
        return 0


class FakeDevices:
    """Returns successive enumeration snapshots; the last one repeats."""

    def __init__(self, *snapshots):
        self.snapshots = [list(s) for s in snapshots] or [[]]
        self.calls = 0

    async def __call__(self):
        index = min(self.calls, len(self.snapshots) - 1)
        self.calls += 1
        return list(self.snapshots[index])


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)

    @property
    def total(self):
        return sum(self.delays)


class RecordingMonitor(SerialMonitor):
    def __init__(self, was_open=False):
        self.was_open = was_open
        self.closed = []
        self.reopened = 0

    async def close_serial_monitor(self, port):
        self.closed.append(port)
        return self.was_open

    async def open_serial_monitor(self):
        self.reopened += 1


class RecordingHotplug(HotplugListener):
    def __init__(self):
        self.events = []

    def pause(self):
        self.events.append("pause")

    def resume(self):
        self.events.append("resume")


@pytest.fixture
def channel():
    return BufferChannel()


@pytest.fixture
def fake_spawn():
    return FakeSpawn()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at an empty IDE install and package folder under tmp_path."""
    arduino = tmp_path / "arduino"
    arduino.mkdir()
    packages = tmp_path / "arduino15"
    packages.mkdir()
    sketchbook = tmp_path / "sketchbook"
    sketchbook.mkdir()
    return Settings(
        arduino_path=arduino,
        package_path=packages,
        sketchbook_path=sketchbook,
        command=arduino / "arduino",
        builder_command=arduino / "arduino-builder",
    )


@pytest.fixture
def project(tmp_path):
    """A project folder containing blink.ino."""
    root = tmp_path / "blink"
    root.mkdir()
    (root / "blink.ino").write_text("void setup() {}\nvoid loop() {}\n")
    return root

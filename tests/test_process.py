"""Tests for toolchain subprocess execution."""

import asyncio
import sys

import pytest

from sketchflow.errors import ToolchainExitError
from sketchflow.process import EXIT_NOT_FOUND, spawn, split_args


class TestSplitArgs:
    def test_whitespace(self):
        assert split_args("make  flash PORT=/dev/ttyACM0") == ["make", "flash", "PORT=/dev/ttyACM0"]

    def test_quotes(self):
        args = split_args('"/opt/avr tools/avrdude" -C"/etc/avrdude.conf" -v')
        assert args == ["/opt/avr tools/avrdude", "-C/etc/avrdude.conf", "-v"]

    def test_empty(self):
        assert split_args("") == []


class TestSpawn:
    def test_success_streams_output(self, channel):
        code = asyncio.run(spawn(sys.executable, channel, ["-c", "print('compiled')"]))
        assert code == 0
        assert "compiled" in channel.text

    def test_stderr_is_streamed(self, channel):
        asyncio.run(spawn(sys.executable, channel, ["-c", "import sys; sys.stderr.write('warn\\n')"]))
        assert "warn" in channel.text

    def test_nonzero_exit_raises_with_code(self, channel):
        with pytest.raises(ToolchainExitError) as exc_info:
            asyncio.run(spawn(sys.executable, channel, ["-c", "import sys; print('boom'); sys.exit(3)"]))
        assert exc_info.value.exit_code == 3
        assert "boom" in channel.text

    def test_no_sink(self):
        assert asyncio.run(spawn(sys.executable, None, ["-c", "print('quiet')"])) == 0

    def test_cwd(self, channel, tmp_path):
        asyncio.run(spawn(sys.executable, channel, ["-c", "import os; print(os.getcwd())"], cwd=tmp_path))
        assert tmp_path.name in channel.text

    def test_missing_executable(self, channel, tmp_path):
        with pytest.raises(ToolchainExitError) as exc_info:
            asyncio.run(spawn(str(tmp_path / "no-such-tool"), channel, []))
        assert exc_info.value.exit_code == EXIT_NOT_FOUND

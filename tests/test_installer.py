"""Tests for board package and library installation."""

import asyncio

import pytest

from conftest import FakeSpawn
from sketchflow.errors import FilesystemError
from sketchflow.installer import (
    InstallResult,
    InstallStatus,
    PackageInstaller,
    package_specifier,
)


@pytest.fixture
def installer(channel, fake_spawn):
    return PackageInstaller("/opt/arduino/arduino", channel, spawn=fake_spawn)


class TestPackageSpecifier:
    def test_name_only(self):
        assert package_specifier("arduino") == "arduino"

    def test_name_arch_version(self):
        assert package_specifier("arduino", "avr", "1.8.3") == "arduino:avr:1.8.3"

    def test_skips_empty_arch(self):
        assert package_specifier("Servo", "", "1.1.8") == "Servo:1.1.8"


class TestInstallResult:
    def test_zero_is_success(self):
        result = InstallResult.from_exit_code(0)
        assert result.status is InstallStatus.SUCCESS
        assert result.ok

    def test_one_is_already_present(self):
        result = InstallResult.from_exit_code(1)
        assert result.status is InstallStatus.ALREADY_PRESENT
        assert result.ok

    def test_two_is_failure(self):
        result = InstallResult.from_exit_code(2)
        assert result.status is InstallStatus.FAILURE
        assert not result.ok
        assert result.exit_code == 2


class TestInstallBoardPackage:
    def test_invokes_install_boards(self, installer, fake_spawn):
        asyncio.run(installer.install_board_package("arduino", "avr", "1.8.3"))
        call = fake_spawn.calls[0]
        assert call["executable"] == "/opt/arduino/arduino"
        assert call["args"] == ["--install-boards", "arduino:avr:1.8.3"]

    def test_success(self, installer, channel):
        result = asyncio.run(installer.install_board_package("arduino", "avr"))
        assert result.ok
        assert "Installed board package - arduino" in channel.text

    def test_exit_code_one_matches_success(self, channel):
        ok = asyncio.run(PackageInstaller("arduino", channel, spawn=FakeSpawn(0)).install_board_package("arduino"))
        already = asyncio.run(PackageInstaller("arduino", channel, spawn=FakeSpawn(1)).install_board_package("arduino"))
        assert ok.ok == already.ok is True
        assert "Exit with code" not in channel.text

    def test_exit_code_two_is_failure(self, channel):
        installer = PackageInstaller("arduino", channel, spawn=FakeSpawn(2))
        result = asyncio.run(installer.install_board_package("arduino"))
        assert not result.ok
        assert result.exit_code == 2
        assert "Exit with code=2" in channel.text

    def test_index_refresh(self, installer, fake_spawn, channel):
        result = asyncio.run(installer.install_board_package(""))
        assert result.ok
        assert fake_spawn.calls[0]["args"] == ["--install-boards", "dummy"]
        assert "Update package index files..." in channel.text
        assert "Updated package index files." in channel.text
        assert "Install package" not in channel.text

    def test_index_refresh_failure_uses_same_rules(self, channel):
        installer = PackageInstaller("arduino", channel, spawn=FakeSpawn(1))
        assert asyncio.run(installer.install_board_package("")).ok
        installer = PackageInstaller("arduino", channel, spawn=FakeSpawn(3))
        assert not asyncio.run(installer.install_board_package("")).ok

    def test_hidden_output(self, installer, fake_spawn):
        asyncio.run(installer.install_board_package("arduino", show_output=False))
        assert fake_spawn.calls[0]["sink"] is None


class TestInstallLibrary:
    def test_invokes_install_library(self, installer, fake_spawn, channel):
        result = asyncio.run(installer.install_library("Servo", "1.1.8"))
        assert result.ok
        assert fake_spawn.calls[0]["args"] == ["--install-library", "Servo:1.1.8"]
        assert "Installed library - Servo" in channel.text

    def test_already_installed(self, channel):
        installer = PackageInstaller("arduino", channel, spawn=FakeSpawn(1))
        result = asyncio.run(installer.install_library("Servo"))
        assert result.status is InstallStatus.ALREADY_PRESENT

    def test_index_refresh(self, installer, fake_spawn, channel):
        asyncio.run(installer.install_library(""))
        assert fake_spawn.calls[0]["args"] == ["--install-library", "dummy"]
        assert "Updated library index files." in channel.text


class TestUninstall:
    def test_removes_board_package(self, installer, tmp_path, channel, fake_spawn):
        pkg = tmp_path / "packages" / "esp32"
        (pkg / "hardware" / "esp32" / "2.0.0").mkdir(parents=True)
        installer.uninstall_board_package("esp32", pkg)
        assert not pkg.exists()
        assert fake_spawn.calls == []
        assert "Uninstalled board package - esp32" in channel.text

    def test_removes_library(self, installer, tmp_path, channel):
        lib = tmp_path / "libraries" / "Servo"
        lib.mkdir(parents=True)
        (lib / "Servo.h").write_text("")
        installer.uninstall_library("Servo", lib)
        assert not lib.exists()
        assert "Removed library - Servo" in channel.text

    def test_missing_directory_raises(self, installer, tmp_path):
        with pytest.raises(FilesystemError):
            installer.uninstall_library("Servo", tmp_path / "nope")

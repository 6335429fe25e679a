"""Tests for platform directory resolution."""

from sketchflow.board import BoardDescriptor
from sketchflow.platform import default_package_lib_paths, resolve_platform_path


def _dirs(tmp_path):
    builtin = tmp_path / "arduino" / "hardware"
    user = tmp_path / "arduino15"
    builtin.mkdir(parents=True)
    user.mkdir()
    return builtin, user


class TestResolvePlatformPath:
    def test_builtin_platform(self, tmp_path):
        builtin, user = _dirs(tmp_path)
        (builtin / "arduino" / "avr").mkdir(parents=True)
        board = BoardDescriptor.parse("arduino:avr:uno")
        assert resolve_platform_path(board, builtin, user) == builtin / "arduino" / "avr"

    def test_installed_platform_version(self, tmp_path):
        builtin, user = _dirs(tmp_path)
        (user / "packages" / "unoPlatform" / "hardware" / "avr" / "1.8.3").mkdir(parents=True)
        board = BoardDescriptor.parse("unoPlatform:avr:uno")
        path = resolve_platform_path(board, builtin, user)
        assert path is not None
        assert path.parts[-5:] == ("packages", "unoPlatform", "hardware", "avr", "1.8.3")

    def test_builtin_wins_over_installed(self, tmp_path):
        builtin, user = _dirs(tmp_path)
        (builtin / "arduino" / "avr").mkdir(parents=True)
        (user / "packages" / "arduino" / "hardware" / "avr" / "1.8.6").mkdir(parents=True)
        board = BoardDescriptor.parse("arduino:avr:uno")
        assert resolve_platform_path(board, builtin, user) == builtin / "arduino" / "avr"

    def test_first_version_in_listing_order(self, tmp_path):
        builtin, user = _dirs(tmp_path)
        arch = user / "packages" / "esp32" / "hardware" / "esp32"
        (arch / "2.0.9").mkdir(parents=True)
        (arch / "2.0.11").mkdir()
        board = BoardDescriptor.parse("esp32:esp32:esp32")
        # Plain name order, no version comparison.
        assert resolve_platform_path(board, builtin, user) == arch / "2.0.11"

    def test_files_in_arch_dir_are_not_versions(self, tmp_path):
        builtin, user = _dirs(tmp_path)
        arch = user / "packages" / "esp32" / "hardware" / "esp32"
        arch.mkdir(parents=True)
        (arch / ".DS_Store").write_text("")
        board = BoardDescriptor.parse("esp32:esp32:esp32")
        assert resolve_platform_path(board, builtin, user) is None

    def test_not_found(self, tmp_path):
        builtin, user = _dirs(tmp_path)
        board = BoardDescriptor.parse("adafruit:samd:feather_m0")
        assert resolve_platform_path(board, builtin, user) is None

    def test_missing_roots(self, tmp_path):
        board = BoardDescriptor.parse("arduino:avr:uno")
        assert resolve_platform_path(board, tmp_path / "x", tmp_path / "y") is None


class TestDefaultPackageLibPaths:
    def test_lists_core_dirs(self, tmp_path):
        (tmp_path / "cores" / "arduino").mkdir(parents=True)
        (tmp_path / "cores" / "robot").mkdir()
        paths = default_package_lib_paths(tmp_path)
        assert [p.name for p in paths] == ["arduino", "robot"]

    def test_no_cores(self, tmp_path):
        assert default_package_lib_paths(tmp_path) == []

    def test_no_platform(self):
        assert default_package_lib_paths(None) == []

"""Settings and per-project device context for sketchflow."""

from __future__ import annotations

import json
import os
import re
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path

from sketchflow.board import DeviceContext
from sketchflow.properties import PropertySet

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[no-redef]

CONFIG_FILE = "sketchflow.toml"
DEVICE_CONTEXT_FILE = Path(".vscode") / "arduino.json"


def _default_arduino_path() -> Path:
    found = shutil.which("arduino")
    if found:
        return Path(found).resolve().parent
    if sys.platform == "darwin":
        return Path("/Applications/Arduino.app/Contents/Java")
    if sys.platform == "win32":
        return Path(os.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)")) / "Arduino"
    return Path("/usr/share/arduino")


def _default_package_path() -> Path:
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Arduino15"
    if sys.platform == "win32":
        return Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local")) / "Arduino15"
    return Path.home() / ".arduino15"


def _default_sketchbook_path() -> Path:
    if sys.platform in ("darwin", "win32"):
        return Path.home() / "Documents" / "Arduino"
    return Path.home() / "Arduino"


@dataclass
class Settings:
    """Where the IDE lives and how verify/upload should run."""
    arduino_path: Path = field(default_factory=_default_arduino_path)
    package_path: Path = field(default_factory=_default_package_path)
    sketchbook_path: Path = field(default_factory=_default_sketchbook_path)
    command: Path | None = None
    builder_command: Path | None = None
    builder: str = "arduino"
    verify_command: str = ""
    upload_command: str = ""
    log_level: str = "info"
    tool_properties: PropertySet = field(default_factory=PropertySet)

    @property
    def command_path(self) -> Path:
        """The IDE executable, used for --verify/--upload/--install-*."""
        if self.command is not None:
            return self.command
        if sys.platform == "win32":
            return self.arduino_path / "arduino_debug.exe"
        if sys.platform == "darwin":
            return self.arduino_path.parent / "MacOS" / "Arduino"
        return self.arduino_path / "arduino"

    @property
    def builder_path(self) -> Path:
        if self.builder_command is not None:
            return self.builder_command
        name = "arduino-builder.exe" if sys.platform == "win32" else "arduino-builder"
        return self.arduino_path / name

    @property
    def default_package_path(self) -> Path:
        """Root of the platforms bundled with the IDE."""
        return self.arduino_path / "hardware"

    @property
    def preference_path(self) -> Path:
        return self.package_path / "preferences.txt"

    @property
    def verbose(self) -> bool:
        return self.log_level == "verbose"


def _read_toml(project_dir: Path | str) -> dict | None:
    toml_path = Path(project_dir) / CONFIG_FILE
    if not toml_path.exists():
        return None
    with open(toml_path, "rb") as f:
        return tomllib.load(f)


def _path_or_none(value) -> Path | None:
    return Path(value).expanduser() if value else None


def load_settings(project_dir: Path | str) -> Settings:
    """Parse sketchflow.toml into Settings. A missing file gives defaults."""
    data = _read_toml(project_dir) or {}
    arduino = data.get("arduino", {})
    build = data.get("build", {})

    settings = Settings()
    if arduino.get("path"):
        settings.arduino_path = Path(arduino["path"]).expanduser()
    if arduino.get("package_path"):
        settings.package_path = Path(arduino["package_path"]).expanduser()
    if arduino.get("sketchbook_path"):
        settings.sketchbook_path = Path(arduino["sketchbook_path"]).expanduser()
    settings.command = _path_or_none(arduino.get("command"))
    settings.builder_command = _path_or_none(arduino.get("builder"))

    settings.builder = build.get("builder", settings.builder)
    settings.verify_command = build.get("verify_command", "")
    settings.upload_command = build.get("upload_command", "")
    settings.log_level = build.get("log_level", settings.log_level)

    settings.tool_properties = PropertySet({
        str(k): str(v) for k, v in data.get("tool_properties", {}).items()
    })
    return settings


def load_device_context(project_dir: Path | str) -> DeviceContext:
    """Read .vscode/arduino.json. A missing file gives an empty context."""
    project_dir = Path(project_dir)
    ctx = DeviceContext(project_root=project_dir)
    path = project_dir / DEVICE_CONTEXT_FILE
    if not path.exists():
        return ctx

    data = json.loads(path.read_text())
    ctx.sketch = data.get("sketch") or None
    ctx.port = data.get("port") or None
    ctx.output = data.get("output") or None
    ctx.board = data.get("board") or None
    ctx.configuration = data.get("configuration") or ""
    return ctx


def get_config_value(project_dir: Path | str, key: str):
    """Dotted key lookup, e.g. 'build.builder', 'arduino.path'."""
    data = _read_toml(project_dir)
    if data is None:
        return None

    parts = key.split(".", 1)
    if len(parts) == 2:
        section, k = parts
        return data.get(section, {}).get(k)
    return data.get(key)


def set_config_value(project_dir: Path | str, key: str, value) -> None:
    """Write a value to sketchflow.toml using line-based editing."""
    toml_path = Path(project_dir) / CONFIG_FILE

    parts = key.split(".", 1)
    if len(parts) != 2:
        raise ValueError(f"Key must be dotted (section.key), got: {key}")
    section, k = parts

    val_str = json.dumps(value) if isinstance(value, str) else str(value)
    # Keys like tools.avrdude.path must be quoted to stay a single key.
    key_str = f'"{k}"' if "." in k else k

    if toml_path.exists():
        lines = toml_path.read_text().splitlines(keepends=True)
    else:
        lines = []

    section_header = f"[{section}]"
    section_idx = None
    key_idx = None
    next_section_idx = None
    key_pattern = rf'^("{re.escape(k)}"|{re.escape(k)})\s*='

    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped == section_header:
            section_idx = i
        elif section_idx is not None and next_section_idx is None:
            if stripped.startswith("[") and stripped.endswith("]"):
                next_section_idx = i
            elif re.match(key_pattern, stripped):
                key_idx = i

    if key_idx is not None:
        lines[key_idx] = f"{key_str} = {val_str}\n"
    elif section_idx is not None:
        insert_at = next_section_idx if next_section_idx is not None else len(lines)
        lines.insert(insert_at, f"{key_str} = {val_str}\n")
    else:
        if lines and not lines[-1].endswith("\n"):
            lines.append("\n")
        if lines:
            lines.append("\n")
        lines.append(f"{section_header}\n")
        lines.append(f"{key_str} = {val_str}\n")

    toml_path.write_text("".join(lines))


def list_config(project_dir: Path | str) -> dict:
    """Return a flat dotted-key dict of all config values."""
    data = _read_toml(project_dir)
    if data is None:
        return {}

    result = {}
    for section, values in data.items():
        if isinstance(values, dict):
            for k, v in values.items():
                result[f"{section}.{k}"] = v
        else:
            result[section] = values
    return result

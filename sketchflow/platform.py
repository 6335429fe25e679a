"""Locate the installed hardware platform for a board."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from sketchflow.board import BoardDescriptor

logger = logging.getLogger(__name__)


def resolve_platform_path(
    board: BoardDescriptor,
    builtin_root: Path | str,
    user_root: Path | str,
) -> Path | None:
    """Return the directory holding platform.txt/boards.txt for `board`.

    Platforms bundled with the IDE live at <builtin>/<package>/<arch>.
    Platforms installed through the boards manager live in a versioned
    directory under <user>/packages/<package>/hardware/<arch>/<version>;
    the first version in listing order is used.
    """
    builtin = Path(builtin_root) / board.package / board.architecture
    if builtin.is_dir():
        logger.debug("Using built-in platform %s", builtin)
        return builtin

    external = Path(user_root) / "packages" / board.package / "hardware" / board.architecture
    try:
        versions = sorted(
            name for name in os.listdir(external)
            if (external / name).is_dir()
        )
    except OSError:
        versions = []
    if versions:
        logger.debug("Using installed platform %s (version %s)", external, versions[0])
        return external / versions[0]

    logger.debug("No platform found for %s", board.build_config)
    return None


def default_package_lib_paths(platform_path: Path | None) -> list[Path]:
    """Core source directories of a platform (e.g. cores/arduino)."""
    if platform_path is None:
        return []
    cores = platform_path / "cores"
    if not cores.is_dir():
        return []
    return [p for p in sorted(cores.iterdir()) if p.is_dir()]

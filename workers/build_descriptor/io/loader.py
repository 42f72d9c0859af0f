"""
Loader: read a build file and the properties files around it.

Flutter project layout::

    android/
        key.properties          release signing credentials (optional)
        local.properties        sdk.dir, flutter.sdk, flutter.versionCode, ...
        app/
            build.gradle.kts    the app-module build file
            google-services.json

``local.properties`` is looked up next to the build file first, then in
its parent directory.  ``key.properties`` is looked up in the same two
places.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from build_descriptor.core.script_parser import ParseResult, parse_build_file
from build_descriptor.core.signing import read_properties

logger = logging.getLogger(__name__)

LOCAL_PROPERTIES = "local.properties"
KEY_PROPERTIES = "key.properties"
BUILD_FILE_NAMES = ("build.gradle.kts", "build.gradle")


@dataclass
class LoadedProject:
    parse_result: ParseResult
    project_dir: Path
    local_properties: Dict[str, str] = field(default_factory=dict)
    key_properties: Dict[str, str] = field(default_factory=dict)


def _find_properties(build_dir: Path, name: str) -> Optional[Path]:
    for directory in (build_dir, build_dir.parent):
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def find_build_file(path: Path) -> Path:
    """Accept either a build file or a module directory containing one."""
    if path.is_dir():
        for name in BUILD_FILE_NAMES:
            candidate = path / name
            if candidate.is_file():
                return candidate
            # also accept the Flutter project root or android/ dir
            candidate = path / "app" / name
            if candidate.is_file():
                return candidate
            candidate = path / "android" / "app" / name
            if candidate.is_file():
                return candidate
        raise FileNotFoundError(f"No build.gradle(.kts) under {path}")
    if not path.is_file():
        raise FileNotFoundError(f"Build file not found: {path}")
    return path


def load_project(build_file: Path) -> LoadedProject:
    """
    Parse *build_file* and read the properties files beside it.

    Raises ``FileNotFoundError`` when *build_file* does not exist.
    Syntax errors are captured in ``parse_result``.
    """
    build_file = find_build_file(build_file)
    build_dir = build_file.parent

    parse_result = parse_build_file(build_file)

    local_props: Dict[str, str] = {}
    local_path = _find_properties(build_dir, LOCAL_PROPERTIES)
    if local_path is not None:
        local_props = read_properties(local_path)

    key_props: Dict[str, str] = {}
    key_path = _find_properties(build_dir, KEY_PROPERTIES)
    if key_path is not None:
        key_props = read_properties(key_path)
        logger.info("Using signing properties from %s", key_path)

    return LoadedProject(
        parse_result=parse_result,
        project_dir=build_dir,
        local_properties=local_props,
        key_properties=key_props,
    )

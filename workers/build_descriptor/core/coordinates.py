"""
Maven coordinates: ``group:artifact[:version[:classifier]][@extension]``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_PART_RE = re.compile(r"^[A-Za-z0-9_.\-+\[\](),]+$")


@dataclass(frozen=True)
class Dependency:
    """One declared dependency within a Gradle configuration."""
    configuration: str          # implementation | api | coreLibraryDesugaring | ...
    group: str
    artifact: str
    version: Optional[str] = None
    classifier: Optional[str] = None
    extension: Optional[str] = None
    platform: bool = False      # declared through platform()/enforcedPlatform()

    @property
    def coordinate(self) -> str:
        """Coordinate key used for conflict detection: ``group:artifact``."""
        return f"{self.group}:{self.artifact}"

    @property
    def notation(self) -> str:
        parts = [self.group, self.artifact]
        if self.version is not None:
            parts.append(self.version)
            if self.classifier:
                parts.append(self.classifier)
        text = ":".join(parts)
        if self.extension:
            text += f"@{self.extension}"
        return text

    @property
    def group_path(self) -> str:
        return self.group.replace(".", "/")


def parse_coordinate(
    notation: str,
    configuration: str = "implementation",
    *,
    platform: bool = False,
) -> Dependency:
    """
    Parse a dependency notation string.

    Raises ``ValueError`` for notations that are not Maven coordinates
    (e.g. ``":core"`` project paths or a bare artifact name).
    """
    text = notation.strip()
    extension = None
    if "@" in text:
        text, extension = text.rsplit("@", 1)
        if not extension:
            raise ValueError(f"empty extension in {notation!r}")

    parts = text.split(":")
    if len(parts) < 2 or len(parts) > 4:
        raise ValueError(f"not a group:artifact[:version[:classifier]] coordinate: {notation!r}")
    if any(not p or not _PART_RE.match(p) for p in parts):
        raise ValueError(f"malformed coordinate: {notation!r}")

    group, artifact = parts[0], parts[1]
    version = parts[2] if len(parts) > 2 else None
    classifier = parts[3] if len(parts) > 3 else None
    return Dependency(
        configuration=configuration,
        group=group,
        artifact=artifact,
        version=version,
        classifier=classifier,
        extension=extension,
        platform=platform,
    )

"""
Package-coordinate resolver.

Locates declared dependencies in an ordered list of package sources
(remote Maven repositories over HTTP, local Maven repository
directories).  Dynamic versions (``2.+``, ``latest.release``,
``[1.0,2.0)``) are matched against the versions a source lists.  Only
the declared artifacts are located; transitive resolution and version
conflict mediation belong to the build engine.
"""
from __future__ import annotations

import functools
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

import httpx

from build_descriptor.core.coordinates import Dependency
from build_descriptor.core.errors import UnresolvedDependencyError

logger = logging.getLogger(__name__)

GOOGLE_MAVEN = "https://dl.google.com/dl/android/maven2"
MAVEN_CENTRAL = "https://repo.maven.apache.org/maven2"
DEFAULT_REPOSITORIES = (GOOGLE_MAVEN, MAVEN_CENTRAL)
METADATA_FILENAME = "maven-metadata.xml"


@dataclass(frozen=True)
class ResolvedDependency:
    coordinate: str
    version: Optional[str]
    configuration: str
    source: str
    location: str
    requested: Optional[str] = None      # dynamic selector the version was chosen by


@dataclass(frozen=True)
class VersionListing:
    """Versions a source publishes for one ``group:artifact``."""
    versions: List[str] = field(default_factory=list)
    release: Optional[str] = None
    latest: Optional[str] = None


def artifact_path(dep: Dependency) -> str:
    """Repository-relative path of the dependency's POM file."""
    return f"{dep.group_path}/{dep.artifact}/{dep.version}/{dep.artifact}-{dep.version}.pom"


def metadata_path(dep: Dependency) -> str:
    """Repository-relative path of the artifact's ``maven-metadata.xml``."""
    return f"{dep.group_path}/{dep.artifact}/{METADATA_FILENAME}"


# ── Dynamic versions ─────────────────────────────────────────────────────────

_RANGE_RE = re.compile(r"^([\[\]\(])\s*([^,\s]*)\s*,\s*([^,\s]*)\s*([\[\]\)])$")
_EXACT_RANGE_RE = re.compile(r"^\[\s*([^,\s]+)\s*\]$")
_VERSION_PART_RE = re.compile(r"\d+|[A-Za-z]+")


def is_dynamic_version(version: Optional[str]) -> bool:
    """``+`` prefixes, ``latest.*`` selectors and Maven/Ivy ranges."""
    if not version:
        return False
    return version.endswith("+") or version.startswith("latest.") or version[0] in "[]("


def _version_parts(version: str) -> List[Union[int, str]]:
    return [int(p) if p.isdigit() else p.lower() for p in _VERSION_PART_RE.findall(version)]


def compare_versions(a: str, b: str) -> int:
    """
    Order two versions the way Gradle does for the common cases.

    Parts split at separators and digit/letter boundaries; numeric parts
    compare numerically and sort above qualifiers.  An extra trailing
    numeric part makes a version newer (``1.0.1 > 1.0``), an extra
    qualifier makes it older (``1.0-rc1 < 1.0``).
    """
    pa, pb = _version_parts(a), _version_parts(b)
    for x, y in zip(pa, pb):
        if x == y:
            continue
        if isinstance(x, int) and isinstance(y, int):
            return -1 if x < y else 1
        if isinstance(x, int) != isinstance(y, int):
            return 1 if isinstance(x, int) else -1
        return -1 if str(x) < str(y) else 1
    if len(pa) == len(pb):
        return 0
    longer, sign = (pa, 1) if len(pa) > len(pb) else (pb, -1)
    extra = longer[min(len(pa), len(pb))]
    return sign if isinstance(extra, int) else -sign


def _in_range(version: str, selector: str) -> bool:
    m = _EXACT_RANGE_RE.match(selector)
    if m:
        return compare_versions(version, m.group(1)) == 0
    m = _RANGE_RE.match(selector)
    if m is None:
        return False
    opening, low, high, closing = m.groups()
    if low:
        cmp = compare_versions(version, low)
        if cmp < 0 or (cmp == 0 and opening != "["):
            return False
    if high:
        cmp = compare_versions(version, high)
        if cmp > 0 or (cmp == 0 and closing != "]"):
            return False
    return True


def _newest(versions: Sequence[str]) -> Optional[str]:
    if not versions:
        return None
    return max(versions, key=functools.cmp_to_key(compare_versions))


def select_version(selector: str, listing: VersionListing) -> Optional[str]:
    """
    Pick the version a dynamic *selector* resolves to, or None.

    ``latest.release`` prefers the listing's ``<release>`` and otherwise
    takes the newest non-snapshot; ``latest.integration`` prefers
    ``<latest>``.  Prefix (``2.+``) and range selectors take the newest
    match.
    """
    versions = listing.versions
    if selector == "latest.release":
        if listing.release:
            return listing.release
        return _newest([v for v in versions if not v.endswith("-SNAPSHOT")])
    if selector == "latest.integration":
        return listing.latest or _newest(versions)
    if selector.endswith("+"):
        prefix = selector[:-1]
        return _newest([v for v in versions if v.startswith(prefix)])
    return _newest([v for v in versions if _in_range(v, selector)])


def parse_metadata(text: str) -> VersionListing:
    """Read the ``<versioning>`` section of a ``maven-metadata.xml``."""
    root = ET.fromstring(text)
    versioning = root.find("versioning")
    if versioning is None:
        return VersionListing()
    return VersionListing(
        versions=[v.text.strip() for v in versioning.findall("versions/version") if v.text],
        release=(versioning.findtext("release") or "").strip() or None,
        latest=(versioning.findtext("latest") or "").strip() or None,
    )


# ── Sources ──────────────────────────────────────────────────────────────────

class PackageSource(Protocol):
    name: str

    def locate(self, dep: Dependency) -> Optional[str]:
        """Return the artifact location, or None when not present."""
        ...

    def list_versions(self, dep: Dependency) -> Optional[VersionListing]:
        """Versions published for ``dep.coordinate``, or None when unknown."""
        ...


class MavenRepositorySource:
    """Remote Maven repository, checked with HTTP HEAD requests."""

    def __init__(self, base_url: str, client: httpx.Client | None = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.name = self.base_url
        self._client = client
        self._timeout = timeout

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout, follow_redirects=True)
        return self._client

    def locate(self, dep: Dependency) -> Optional[str]:
        if is_dynamic_version(dep.version):
            # selectors are matched through list_versions() first
            return None
        url = f"{self.base_url}/{artifact_path(dep)}"
        try:
            resp = self._get_client().head(url)
        except httpx.HTTPError as e:
            logger.warning("Lookup of %s in %s failed: %s", dep.notation, self.name, e)
            return None
        if resp.status_code == 200:
            return url
        if resp.status_code != 404:
            logger.warning(
                "Unexpected HTTP %d from %s for %s", resp.status_code, self.name, dep.notation,
            )
        return None

    def list_versions(self, dep: Dependency) -> Optional[VersionListing]:
        url = f"{self.base_url}/{metadata_path(dep)}"
        try:
            resp = self._get_client().get(url)
        except httpx.HTTPError as e:
            logger.warning("Version listing of %s in %s failed: %s", dep.coordinate, self.name, e)
            return None
        if resp.status_code != 200:
            if resp.status_code != 404:
                logger.warning(
                    "Unexpected HTTP %d from %s for %s", resp.status_code, self.name, url,
                )
            return None
        try:
            return parse_metadata(resp.text)
        except ET.ParseError as e:
            logger.warning("Malformed %s for %s in %s: %s", METADATA_FILENAME, dep.coordinate, self.name, e)
            return None

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


class LocalRepositorySource:
    """Maven-layout directory such as ``~/.m2/repository``."""

    def __init__(self, root: Path):
        self.root = Path(root).expanduser()
        self.name = str(self.root)

    def locate(self, dep: Dependency) -> Optional[str]:
        if is_dynamic_version(dep.version):
            return None
        pom = self.root / artifact_path(dep)
        if pom.is_file():
            return str(pom)
        return None

    def list_versions(self, dep: Dependency) -> Optional[VersionListing]:
        """Version directories holding the artifact's POM."""
        artifact_dir = self.root / dep.group_path / dep.artifact
        if not artifact_dir.is_dir():
            return None
        versions = sorted(
            d.name for d in artifact_dir.iterdir()
            if (d / f"{dep.artifact}-{d.name}.pom").is_file()
        )
        return VersionListing(versions=versions)


class DependencyResolver:
    """Tries each source in order; the first hit wins."""

    def __init__(self, sources: Sequence[PackageSource]):
        self.sources: List[PackageSource] = list(sources)

    @classmethod
    def default(
        cls,
        repositories: Sequence[str] = DEFAULT_REPOSITORIES,
        local_repository: Optional[Path] = None,
        timeout: float = 10.0,
    ) -> DependencyResolver:
        sources: List[PackageSource] = []
        if local_repository is not None:
            sources.append(LocalRepositorySource(local_repository))
        # one client shared by every remote source
        client = httpx.Client(timeout=timeout, follow_redirects=True)
        sources.extend(MavenRepositorySource(url, client=client) for url in repositories)
        return cls(sources)

    @property
    def source_names(self) -> List[str]:
        return [s.name for s in self.sources]

    def _pinned(self, source: PackageSource, dep: Dependency) -> Optional[Dependency]:
        """*dep* with its dynamic version replaced by the one *source* offers."""
        listing = source.list_versions(dep)
        chosen = select_version(dep.version, listing) if listing is not None else None
        if chosen is None:
            logger.debug("No version of %s matching %s in %s", dep.coordinate, dep.version, source.name)
            return None
        return replace(dep, version=chosen)

    def resolve(self, dep: Dependency) -> ResolvedDependency:
        """
        Locate *dep* in the configured sources.

        Dynamic versions are matched per source against the versions it
        lists.  Raises ``UnresolvedDependencyError`` when no source has
        it, or when the dependency carries no version and so cannot be
        located on its own.
        """
        if dep.version is None:
            raise UnresolvedDependencyError(dep.notation, self.source_names)

        dynamic = is_dynamic_version(dep.version)
        for source in self.sources:
            candidate = self._pinned(source, dep) if dynamic else dep
            if candidate is None:
                continue
            location = source.locate(candidate)
            if location is not None:
                logger.debug("Resolved %s in %s", candidate.notation, source.name)
                return ResolvedDependency(
                    coordinate=dep.coordinate,
                    version=candidate.version,
                    configuration=dep.configuration,
                    source=source.name,
                    location=location,
                    requested=dep.version if dynamic else None,
                )
        raise UnresolvedDependencyError(dep.notation, self.source_names)

    def close(self) -> None:
        for source in self.sources:
            close = getattr(source, "close", None)
            if close is not None:
                close()

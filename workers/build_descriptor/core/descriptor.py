"""
BuildDescriptor: the static record of parameters handed to the build engine.

Constructed once per invocation and never mutated.  ``validate()``
collects every violated constraint before failing so the whole file can
be fixed in one pass.
"""
from __future__ import annotations

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from build_descriptor.core.coordinates import Dependency
from build_descriptor.core.errors import ConfigurationError, Violation
from build_descriptor.core.resolver import DependencyResolver, ResolvedDependency
from build_descriptor.core.signing import SigningConfigStore

logger = logging.getLogger(__name__)

PACKAGE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)+$")

JAVA_LEVELS = frozenset(
    ["1.6", "1.7", "1.8"] + [str(v) for v in range(9, 25)]
)

DESUGARING_CONFIGURATION = "coreLibraryDesugaring"
RELEASE_BUILD_TYPE = "release"


class RejectReason:
    """REJECT reason codes carried by ``Violation.reason``."""
    MISSING_FIELD = "MISSING_FIELD"
    UNRESOLVED_REFERENCE = "UNRESOLVED_REFERENCE"
    INVALID_APPLICATION_ID = "INVALID_APPLICATION_ID"
    INVALID_NAMESPACE = "INVALID_NAMESPACE"
    SDK_ORDER = "SDK_ORDER"
    INVALID_VERSION_CODE = "INVALID_VERSION_CODE"
    UNKNOWN_JAVA_LEVEL = "UNKNOWN_JAVA_LEVEL"
    COMPATIBILITY_MISMATCH = "COMPATIBILITY_MISMATCH"
    JVM_TARGET_MISMATCH = "JVM_TARGET_MISMATCH"
    UNKNOWN_SIGNING_CONFIG = "UNKNOWN_SIGNING_CONFIG"
    DEPENDENCY_CONFLICT = "DEPENDENCY_CONFLICT"
    DESUGARING_MISCONFIGURED = "DESUGARING_MISCONFIGURED"
    INVALID_COORDINATE = "INVALID_COORDINATE"


@dataclass(frozen=True)
class BuildDescriptor:
    application_id: str
    namespace: str
    min_sdk: int
    target_sdk: int
    compile_sdk: int
    version_code: int
    version_name: str
    source_compatibility: str
    target_compatibility: str
    signing_store: SigningConfigStore = field(default_factory=SigningConfigStore)
    build_types: Mapping[str, Optional[str]] = field(
        default_factory=lambda: {RELEASE_BUILD_TYPE: "debug"},
        hash=False,
    )
    dependencies: Tuple[Dependency, ...] = ()
    plugins: Tuple[str, ...] = ()
    ndk_version: Optional[str] = None
    jvm_target: Optional[str] = None
    core_library_desugaring: bool = False
    flutter_source: Optional[str] = None

    def __post_init__(self) -> None:
        # read-only view over a private copy of the caller's mapping
        object.__setattr__(self, "build_types", MappingProxyType(dict(self.build_types)))

    @property
    def signing_config_ref(self) -> Optional[str]:
        """Signing config used by the ``release`` build type."""
        return self.build_types.get(RELEASE_BUILD_TYPE)

    # ── validation ───────────────────────────────────────────────────────────

    def violations(self) -> List[Violation]:
        """Every violated constraint, in a stable order."""
        found: List[Violation] = []
        found.extend(self._check_identifiers())
        found.extend(self._check_sdk_order())
        found.extend(self._check_version())
        found.extend(self._check_compatibility())
        found.extend(self._check_signing())
        found.extend(self._check_dependency_conflicts())
        found.extend(self._check_desugaring())
        return found

    def validate(self) -> BuildDescriptor:
        """
        Raise ``ConfigurationError`` listing every violation.

        Returns the descriptor itself so calls can be chained.
        """
        found = self.violations()
        if found:
            logger.debug("Descriptor %s has %d violations", self.application_id, len(found))
            raise ConfigurationError(found)
        return self

    def _check_identifiers(self) -> List[Violation]:
        found: List[Violation] = []
        for label, value, reason in (
            ("applicationId", self.application_id, RejectReason.INVALID_APPLICATION_ID),
            ("namespace", self.namespace, RejectReason.INVALID_NAMESPACE),
        ):
            if not value:
                found.append(Violation(RejectReason.MISSING_FIELD, f"{label} must not be empty"))
            elif not PACKAGE_NAME_RE.match(value):
                found.append(Violation(reason, f'{label} "{value}" is not a valid package name'))
        return found

    def _check_sdk_order(self) -> List[Violation]:
        found: List[Violation] = []
        if self.min_sdk < 1:
            found.append(Violation(RejectReason.SDK_ORDER, f"minSdk ({self.min_sdk}) must be at least 1"))
        if self.min_sdk > self.target_sdk:
            found.append(Violation(
                RejectReason.SDK_ORDER,
                f"minSdk ({self.min_sdk}) must not exceed targetSdk ({self.target_sdk})",
            ))
        if self.target_sdk > self.compile_sdk:
            found.append(Violation(
                RejectReason.SDK_ORDER,
                f"targetSdk ({self.target_sdk}) must not exceed compileSdk ({self.compile_sdk})",
            ))
        return found

    def _check_version(self) -> List[Violation]:
        if self.version_code < 1:
            return [Violation(
                RejectReason.INVALID_VERSION_CODE,
                f"versionCode ({self.version_code}) must be a positive integer",
            )]
        return []

    def _check_compatibility(self) -> List[Violation]:
        found: List[Violation] = []
        for label, level in (
            ("sourceCompatibility", self.source_compatibility),
            ("targetCompatibility", self.target_compatibility),
        ):
            if level not in JAVA_LEVELS:
                found.append(Violation(RejectReason.UNKNOWN_JAVA_LEVEL, f'{label} "{level}" is not a known Java level'))
        if self.source_compatibility != self.target_compatibility:
            found.append(Violation(
                RejectReason.COMPATIBILITY_MISMATCH,
                f"sourceCompatibility ({self.source_compatibility}) and "
                f"targetCompatibility ({self.target_compatibility}) must match",
            ))
        if self.jvm_target is not None and self.jvm_target != self.target_compatibility:
            found.append(Violation(
                RejectReason.JVM_TARGET_MISMATCH,
                f"kotlin jvmTarget ({self.jvm_target}) must match "
                f"targetCompatibility ({self.target_compatibility})",
            ))
        return found

    def _check_signing(self) -> List[Violation]:
        found: List[Violation] = []
        reported = set()
        for build_type, ref in self.build_types.items():
            if ref is None or ref in self.signing_store or ref in reported:
                continue
            reported.add(ref)
            found.append(Violation(RejectReason.UNKNOWN_SIGNING_CONFIG, f'unknown signing config "{ref}"'))
        return found

    def _check_dependency_conflicts(self) -> List[Violation]:
        versions: Dict[str, List[str]] = OrderedDict()
        for dep in self.dependencies:
            if dep.version is None:
                continue
            seen = versions.setdefault(dep.coordinate, [])
            if dep.version not in seen:
                seen.append(dep.version)
        return [
            Violation(
                RejectReason.DEPENDENCY_CONFLICT,
                f'conflicting versions for "{coordinate}": {", ".join(vs)}',
            )
            for coordinate, vs in versions.items()
            if len(vs) > 1
        ]

    def _check_desugaring(self) -> List[Violation]:
        has_lib = any(d.configuration == DESUGARING_CONFIGURATION for d in self.dependencies)
        if has_lib and not self.core_library_desugaring:
            return [Violation(
                RejectReason.DESUGARING_MISCONFIGURED,
                "coreLibraryDesugaring dependency declared but isCoreLibraryDesugaringEnabled is not set",
            )]
        if self.core_library_desugaring and not has_lib:
            return [Violation(
                RejectReason.DESUGARING_MISCONFIGURED,
                "isCoreLibraryDesugaringEnabled is set but no coreLibraryDesugaring dependency is declared",
            )]
        return []

    # ── dependencies ─────────────────────────────────────────────────────────

    def duplicate_dependencies(self) -> List[str]:
        """Notations declared more than once with identical versions."""
        seen = set()
        dupes: List[str] = []
        for dep in self.dependencies:
            key = (dep.coordinate, dep.version, dep.classifier)
            if key in seen and dep.notation not in dupes:
                dupes.append(dep.notation)
            seen.add(key)
        return dupes

    def resolve_dependencies(self, resolver: DependencyResolver) -> List[ResolvedDependency]:
        """
        Locate every declared dependency and return the flattened set.

        Version-less dependencies are accepted when a platform (BOM)
        dependency is declared; the platform supplies their version.
        Raises ``UnresolvedDependencyError`` on the first coordinate no
        source can locate.
        """
        has_platform = any(d.platform for d in self.dependencies)
        resolved: List[ResolvedDependency] = []
        seen = set()
        for dep in self.dependencies:
            key = (dep.coordinate, dep.version, dep.classifier)
            if key in seen:
                continue
            seen.add(key)
            if dep.version is None and has_platform:
                resolved.append(ResolvedDependency(
                    coordinate=dep.coordinate,
                    version=None,
                    configuration=dep.configuration,
                    source="platform",
                    location="",
                ))
                continue
            resolved.append(resolver.resolve(dep))
        logger.info("Resolved %d dependencies for %s", len(resolved), self.application_id)
        return resolved

"""
Verdict logic for build_descriptor v0.

REJECT comes from constraint violations (``BuildDescriptor.violations``);
WARN from conditions the build engine accepts but that usually point at
a release problem.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from build_descriptor.core.descriptor import RELEASE_BUILD_TYPE, BuildDescriptor
from build_descriptor.core.errors import Violation
from build_descriptor.policy.profile import DescriptorProfile

logger = logging.getLogger(__name__)

_SEMVER_RE = re.compile(r"^\d+\.\d+(\.\d+)?([-+][0-9A-Za-z.\-+]+)?$")


# ── Enums ────────────────────────────────────────────────────────────────────

class Verdict(str, Enum):
    ACCEPT = "ACCEPT"
    WARN = "WARN"
    REJECT = "REJECT"


class DescriptorWarnReason(str, Enum):
    RELEASE_SIGNED_WITH_DEBUG = "RELEASE_SIGNED_WITH_DEBUG"
    RELEASE_UNSIGNED = "RELEASE_UNSIGNED"
    TARGET_SDK_BELOW_STORE_MINIMUM = "TARGET_SDK_BELOW_STORE_MINIMUM"
    NON_SEMVER_VERSION_NAME = "NON_SEMVER_VERSION_NAME"
    DUPLICATE_DEPENDENCY = "DUPLICATE_DEPENDENCY"
    GOOGLE_SERVICES_CONFIG_MISSING = "GOOGLE_SERVICES_CONFIG_MISSING"


class DescriptorRejectReason(str, Enum):
    BUILD_SCRIPT_SYNTAX = "BUILD_SCRIPT_SYNTAX"
    UNRESOLVED_DEPENDENCY = "UNRESOLVED_DEPENDENCY"


# ── Warnings ─────────────────────────────────────────────────────────────────

def collect_warnings(
    descriptor: BuildDescriptor,
    profile: DescriptorProfile,
    project_dir: Optional[Path] = None,
) -> List[str]:
    """
    WARN reasons for a descriptor.

    *project_dir* is the directory holding the build file; the
    google-services check is skipped without it.
    """
    reasons: List[str] = []

    release_ref = descriptor.build_types.get(RELEASE_BUILD_TYPE)
    if release_ref == "debug":
        reasons.append(DescriptorWarnReason.RELEASE_SIGNED_WITH_DEBUG.value)
    elif release_ref is None:
        reasons.append(DescriptorWarnReason.RELEASE_UNSIGNED.value)

    if descriptor.target_sdk < profile.min_store_target_sdk:
        reasons.append(DescriptorWarnReason.TARGET_SDK_BELOW_STORE_MINIMUM.value)

    if not _SEMVER_RE.match(descriptor.version_name):
        reasons.append(DescriptorWarnReason.NON_SEMVER_VERSION_NAME.value)

    if descriptor.duplicate_dependencies():
        reasons.append(DescriptorWarnReason.DUPLICATE_DEPENDENCY.value)

    if (
        project_dir is not None
        and profile.google_services_plugin in descriptor.plugins
        and not (project_dir / profile.google_services_file).exists()
    ):
        reasons.append(DescriptorWarnReason.GOOGLE_SERVICES_CONFIG_MISSING.value)

    return reasons


# ── Descriptor-level judge ───────────────────────────────────────────────────

def reasons_of(violations: Sequence[Violation]) -> List[str]:
    """Distinct reason codes, in first-seen order."""
    reasons: List[str] = []
    for v in violations:
        if v.reason not in reasons:
            reasons.append(v.reason)
    return reasons


def judge_descriptor(
    descriptor: BuildDescriptor,
    profile: DescriptorProfile,
    project_dir: Optional[Path] = None,
) -> Tuple[Verdict, List[str]]:
    """
    Descriptor verdict.

    Any violation rejects the descriptor; warnings are only evaluated
    for descriptors that pass validation.
    """
    violations = descriptor.violations()
    if violations:
        return Verdict.REJECT, reasons_of(violations)

    reasons = collect_warnings(descriptor, profile, project_dir)
    if reasons:
        logger.debug("Descriptor %s warnings: %s", descriptor.application_id, reasons)
        return Verdict.WARN, reasons

    return Verdict.ACCEPT, reasons

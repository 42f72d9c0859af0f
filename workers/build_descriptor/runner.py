"""
Descriptor runner: top-level orchestration: build file → report.

This module ties parsing, descriptor assembly, policy verdicts,
dependency resolution and IO together into ``run_build_descriptor``,
which can be called from the API endpoint, from the CLI, or
programmatically.  Descriptor errors never escape: they are recorded in
the returned report.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Mapping, Optional

from build_descriptor.core.assembler import build_descriptor
from build_descriptor.core.descriptor import BuildDescriptor
from build_descriptor.core.errors import ConfigurationError, UnresolvedDependencyError
from build_descriptor.core.resolver import DEFAULT_REPOSITORIES, DependencyResolver, ResolvedDependency
from build_descriptor.core.script_parser import ParseResult, parse_build_text
from build_descriptor.io.loader import load_project
from build_descriptor.io.schema import (
    DependencyModel,
    DescriptorModel,
    DescriptorReport,
    ParseErrorModel,
    ResolvedDependencyModel,
    SigningConfigModel,
    ViolationModel,
)
from build_descriptor.io.writer import write_report
from build_descriptor.policy.profile import DescriptorProfile
from build_descriptor.policy.verdict import (
    DescriptorRejectReason,
    Verdict,
    judge_descriptor,
    reasons_of,
)

logger = logging.getLogger(__name__)


# ── Conversion helpers ───────────────────────────────────────────────────────

def descriptor_model(d: BuildDescriptor) -> DescriptorModel:
    """Convert a core BuildDescriptor to its schema model."""
    signing = []
    for name in d.signing_store.names():
        cfg = d.signing_store.get(name)
        signing.append(SigningConfigModel(
            name=cfg.name,
            store_file=cfg.store_file,
            key_alias=cfg.key_alias,
            missing_fields=cfg.missing_fields,
        ))
    return DescriptorModel(
        application_id=d.application_id,
        namespace=d.namespace,
        min_sdk=d.min_sdk,
        target_sdk=d.target_sdk,
        compile_sdk=d.compile_sdk,
        version_code=d.version_code,
        version_name=d.version_name,
        source_compatibility=d.source_compatibility,
        target_compatibility=d.target_compatibility,
        jvm_target=d.jvm_target,
        ndk_version=d.ndk_version,
        core_library_desugaring=d.core_library_desugaring,
        signing_config_ref=d.signing_config_ref,
        build_types=dict(d.build_types),
        signing_configs=signing,
        plugins=list(d.plugins),
        dependencies=[
            DependencyModel(
                configuration=dep.configuration,
                coordinate=dep.coordinate,
                version=dep.version,
                notation=dep.notation,
                platform=dep.platform,
            )
            for dep in d.dependencies
        ],
        flutter_source=d.flutter_source,
    )


def _resolved_model(r: ResolvedDependency) -> ResolvedDependencyModel:
    return ResolvedDependencyModel(
        coordinate=r.coordinate,
        version=r.version,
        requested=r.requested,
        configuration=r.configuration,
        source=r.source,
        location=r.location,
    )


# ── Public API ───────────────────────────────────────────────────────────────

def check_parse_result(
    pr: ParseResult,
    profile: DescriptorProfile | None = None,
    local_properties: Optional[Mapping[str, str]] = None,
    key_properties: Optional[Mapping[str, str]] = None,
    resolver: DependencyResolver | None = None,
    project_dir: Path | None = None,
) -> DescriptorReport:
    """
    Assemble, judge and optionally resolve one parsed build script.

    Parameters
    ----------
    pr : ParseResult
        Output of ``parse_build_file`` / ``parse_build_text``.
    profile : DescriptorProfile, optional
        Defaults to ``DescriptorProfile.v0()``.
    local_properties, key_properties : Mapping[str, str], optional
        Properties files beside the build file.
    resolver : DependencyResolver, optional
        When given, dependencies of a non-rejected descriptor are
        located; an unresolved coordinate rejects the descriptor.
    project_dir : Path, optional
        Directory holding the build file, for file-presence checks.
    """
    if profile is None:
        profile = DescriptorProfile.v0()

    report = DescriptorReport(
        profile_id=profile.profile_id,
        build_file=pr.build_file,
        build_file_hash=pr.file_hash,
        dialect=pr.dialect,
        parser_version=pr.parser_version,
        parse_status=pr.parse_status,
        parse_errors=[
            ParseErrorModel(line=e.line, column=e.column, message=e.message)
            for e in pr.parse_errors
        ],
    )

    # ── Step 1: parse gate ───────────────────────────────────────────
    if pr.script is None:
        report.verdict = Verdict.REJECT.value
        report.reasons = [DescriptorRejectReason.BUILD_SCRIPT_SYNTAX.value]
        return report

    # ── Step 2: assemble ─────────────────────────────────────────────
    try:
        descriptor = build_descriptor(
            pr.script,
            local_properties=local_properties,
            profile=profile,
            key_properties=key_properties,
        )
    except ConfigurationError as e:
        logger.info("Descriptor assembly failed for %s: %d violations", pr.build_file, len(e.violations))
        report.verdict = Verdict.REJECT.value
        report.reasons = reasons_of(e.violations)
        report.violations = [ViolationModel(reason=v.reason, message=v.message) for v in e.violations]
        return report

    report.descriptor = descriptor_model(descriptor)

    # ── Step 3: validate + judge ─────────────────────────────────────
    verdict, reasons = judge_descriptor(descriptor, profile, project_dir)
    report.verdict = verdict.value
    report.reasons = reasons
    if verdict == Verdict.REJECT:
        violations = descriptor.violations()
        report.violations = [ViolationModel(reason=v.reason, message=v.message) for v in violations]
        report.reasons = reasons_of(violations)
        return report

    # ── Step 4: resolve dependencies ─────────────────────────────────
    if resolver is not None:
        try:
            resolved = descriptor.resolve_dependencies(resolver)
        except UnresolvedDependencyError as e:
            logger.warning("%s: %s", pr.build_file, e)
            report.verdict = Verdict.REJECT.value
            report.reasons = [DescriptorRejectReason.UNRESOLVED_DEPENDENCY.value]
            report.unresolved_dependency = e.coordinate
            return report
        report.dependencies_resolved = True
        report.resolved_dependencies = [_resolved_model(r) for r in resolved]

    return report


def check_build_text(
    text: str,
    profile: DescriptorProfile | None = None,
    local_properties: Optional[Mapping[str, str]] = None,
    key_properties: Optional[Mapping[str, str]] = None,
    resolver: DependencyResolver | None = None,
    build_file: str = "<memory>",
) -> DescriptorReport:
    """Check build-script text that does not live on disk."""
    pr = parse_build_text(text, build_file=build_file)
    return check_parse_result(
        pr,
        profile=profile,
        local_properties=local_properties,
        key_properties=key_properties,
        resolver=resolver,
    )


def run_build_descriptor(
    build_file: Path,
    profile: DescriptorProfile | None = None,
    resolver: DependencyResolver | None = None,
    output_dir: Path | None = None,
) -> DescriptorReport:
    """
    Check one build file on disk.

    Parameters
    ----------
    build_file : Path
        ``build.gradle(.kts)`` file, or a directory containing one.
    profile : DescriptorProfile, optional
        Defaults to ``DescriptorProfile.v0()``.
    resolver : DependencyResolver, optional
        Dependency resolution is skipped when None.
    output_dir : Path, optional
        Directory to write the JSON report.  Not written when None.

    Returns
    -------
    DescriptorReport
    """
    if profile is None:
        profile = DescriptorProfile.v0()

    logger.info("Checking build file: %s", build_file)
    project = load_project(build_file)

    report = check_parse_result(
        project.parse_result,
        profile=profile,
        local_properties=project.local_properties,
        key_properties=project.key_properties,
        resolver=resolver,
        project_dir=project.project_dir,
    )

    if output_dir:
        path = write_report(report, output_dir)
        logger.info("Wrote build_descriptor report to %s", path)

    return report


# ── CLI ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for build_descriptor."""
    parser = argparse.ArgumentParser(
        description="build_descriptor: static checker for Android app-module build scripts",
    )
    parser.add_argument(
        "build_file",
        help="Path to build.gradle(.kts), or a directory containing one",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Directory to write the JSON report",
    )
    parser.add_argument(
        "--resolve",
        action="store_true",
        help="Locate declared dependencies in the package sources",
    )
    parser.add_argument(
        "--repo",
        action="append",
        default=None,
        help="Maven repository URL (repeatable; default: Google Maven + Maven Central)",
    )
    parser.add_argument(
        "--local-repo",
        type=Path,
        default=None,
        help="Local Maven repository directory searched before remote ones",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    build_path = Path(args.build_file)
    if not build_path.exists():
        logger.error("File not found: %s", build_path)
        return 1

    resolver = None
    if args.resolve:
        resolver = DependencyResolver.default(
            repositories=args.repo or DEFAULT_REPOSITORIES,
            local_repository=args.local_repo,
        )

    try:
        report = run_build_descriptor(
            build_path,
            resolver=resolver,
            output_dir=args.output_dir,
        )
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 1
    finally:
        if resolver is not None:
            resolver.close()

    # Print summary
    print(f"Build file: {report.build_file}")
    print(f"Verdict: {report.verdict}"
          + (f" ({', '.join(report.reasons)})" if report.reasons else ""))
    for v in report.violations:
        print(f"  - {v.message}")
    if report.unresolved_dependency:
        print(f"  - unresolved dependency: {report.unresolved_dependency}")
    if report.dependencies_resolved:
        print(f"Dependencies resolved: {len(report.resolved_dependencies)}")
    if args.output_dir:
        print(f"Report written to: {args.output_dir}")

    return 1 if report.verdict == Verdict.REJECT.value else 0


if __name__ == "__main__":
    sys.exit(main())

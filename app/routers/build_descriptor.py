"""
Build Descriptor Router
Static checks for Android app-module build scripts.

Accepts build-script text (plus the optional properties files a Flutter
project keeps beside it), runs the build_descriptor package and returns
the report.  Descriptor errors are part of a normal 200 response with a
REJECT verdict; only malformed requests are 4xx.
"""
import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from app.config import settings
from build_descriptor.core.resolver import DependencyResolver
from build_descriptor.io.schema import DescriptorReport
from build_descriptor.io.writer import write_report
from build_descriptor.policy.profile import DescriptorProfile
from build_descriptor.runner import check_build_text, run_build_descriptor

logger = logging.getLogger(__name__)


# =============================================================================
# Request Models
# =============================================================================

class ValidateRequest(BaseModel):
    """Request to check build-script text."""
    script: str = Field(
        ...,
        description="Contents of build.gradle or build.gradle.kts",
    )
    build_file: str = Field(
        "build.gradle.kts",
        description="Name reported for the script",
    )
    local_properties: Dict[str, str] = Field(
        default_factory=dict,
        description="local.properties entries (flutter.versionCode, ...)",
    )
    key_properties: Dict[str, str] = Field(
        default_factory=dict,
        description="key.properties entries for release signing",
    )
    resolve: bool = Field(
        False,
        description="Locate declared dependencies in the configured package sources",
    )


class ValidatePathRequest(BaseModel):
    """Request to check a build file on the shared volume."""
    build_file: str = Field(
        ...,
        description="Path to build.gradle(.kts) or a directory containing one",
    )
    resolve: bool = False
    write_outputs: bool = Field(
        False,
        description="Write the JSON report under REPORTS_PATH",
    )
    report_name: Optional[str] = Field(
        None,
        description="Subdirectory of REPORTS_PATH for the report",
        pattern=r"^[A-Za-z0-9_.\-]+$",
    )

    @field_validator("report_name")
    @classmethod
    def validate_report_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip("."):
            raise ValueError("report_name cannot consist only of dots")
        return v


def _make_resolver(resolve: bool) -> Optional[DependencyResolver]:
    if not resolve:
        return None
    return DependencyResolver.default(
        repositories=settings.MAVEN_REPOSITORIES,
        local_repository=settings.LOCAL_MAVEN_REPOSITORY,
        timeout=settings.RESOLVER_TIMEOUT,
    )


# =============================================================================
# Router
# =============================================================================

router = APIRouter()


@router.post(
    "/validate",
    response_model=DescriptorReport,
    status_code=status.HTTP_200_OK,
    summary="Check build-script text",
)
def validate_script(request: ValidateRequest):
    """
    Parse the script, assemble the descriptor, validate it and, when
    asked, resolve its dependencies.
    """
    resolver = _make_resolver(request.resolve)
    try:
        report = check_build_text(
            request.script,
            profile=DescriptorProfile.v0(),
            local_properties=request.local_properties,
            key_properties=request.key_properties,
            resolver=resolver,
            build_file=request.build_file,
        )
    finally:
        if resolver is not None:
            resolver.close()

    logger.info("validate %s → %s %s", request.build_file, report.verdict, report.reasons)
    return report


@router.post(
    "/validate-path",
    response_model=DescriptorReport,
    status_code=status.HTTP_200_OK,
    summary="Check a build file on disk",
)
def validate_path(request: ValidatePathRequest):
    """
    Check a build file that lives on the shared volume, picking up
    ``local.properties`` and ``key.properties`` beside it.
    """
    path = Path(request.build_file)
    if not path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Build file not found: {path}",
        )

    resolver = _make_resolver(request.resolve)
    try:
        report = run_build_descriptor(path, resolver=resolver)
    except FileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    finally:
        if resolver is not None:
            resolver.close()

    if request.write_outputs:
        reports_root = Path(settings.REPORTS_PATH).resolve()
        out_dir = (reports_root / (request.report_name or path.stem.split(".")[0])).resolve()
        if out_dir == reports_root or not out_dir.is_relative_to(reports_root):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Report directory escapes REPORTS_PATH: {out_dir}",
            )
        report_path = write_report(report, out_dir)
        logger.info("Wrote %s", report_path)

    return report

"""
Schema: Pydantic models for build_descriptor JSON outputs.

One output file:
  build_descriptor_report.json: parse status, descriptor, verdict,
  violations and resolved dependencies for one build file.

Runtime contract fields (present in every output):
  package_name, checker_version, profile_id, schema_version.

Signing passwords are never part of the report.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from build_descriptor import CHECKER_VERSION, PACKAGE_NAME, SCHEMA_VERSION


# ── Descriptor parts ─────────────────────────────────────────────────────────

class DependencyModel(BaseModel):
    configuration: str
    coordinate: str              # group:artifact
    version: Optional[str] = None
    notation: str
    platform: bool = False


class SigningConfigModel(BaseModel):
    """Signing config without credentials."""
    name: str
    store_file: Optional[str] = None
    key_alias: Optional[str] = None
    missing_fields: List[str] = Field(default_factory=list)


class DescriptorModel(BaseModel):
    application_id: str
    namespace: str
    min_sdk: int
    target_sdk: int
    compile_sdk: int
    version_code: int
    version_name: str
    source_compatibility: str
    target_compatibility: str
    jvm_target: Optional[str] = None
    ndk_version: Optional[str] = None
    core_library_desugaring: bool = False
    signing_config_ref: Optional[str] = None
    build_types: Dict[str, Optional[str]] = Field(default_factory=dict)
    signing_configs: List[SigningConfigModel] = Field(default_factory=list)
    plugins: List[str] = Field(default_factory=list)
    dependencies: List[DependencyModel] = Field(default_factory=list)
    flutter_source: Optional[str] = None


# ── Findings ─────────────────────────────────────────────────────────────────

class ParseErrorModel(BaseModel):
    line: int
    column: int
    message: str


class ViolationModel(BaseModel):
    reason: str
    message: str


class ResolvedDependencyModel(BaseModel):
    coordinate: str
    version: Optional[str] = None
    requested: Optional[str] = None     # dynamic selector, e.g. "2.+"
    configuration: str
    source: str
    location: str


# ── Top-level output ─────────────────────────────────────────────────────────

class DescriptorReport(BaseModel):
    """
    build_descriptor_report.json for one build file.
    """
    package_name: str = PACKAGE_NAME
    checker_version: str = CHECKER_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    build_file: str
    build_file_hash: str = ""
    dialect: str = ""                # kotlin | groovy
    parser_version: str = ""
    parse_status: str = "OK"         # OK | ERROR
    parse_errors: List[ParseErrorModel] = Field(default_factory=list)

    descriptor: Optional[DescriptorModel] = None

    verdict: str = "ACCEPT"          # ACCEPT | WARN | REJECT
    reasons: List[str] = Field(default_factory=list)
    violations: List[ViolationModel] = Field(default_factory=list)

    dependencies_resolved: bool = False
    resolved_dependencies: List[ResolvedDependencyModel] = Field(default_factory=list)
    unresolved_dependency: Optional[str] = None

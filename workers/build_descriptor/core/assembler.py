"""
Assembler: parsed build script → BuildDescriptor.

Evaluates the handful of expressions an app module uses for its
configuration values:

- literals;
- ``flutter.*`` extension properties, looked up in ``local.properties``
  and falling back to the profile defaults;
- ``JavaVersion.VERSION_x`` constants and ``.toString()`` on them;
- ``signingConfigs.getByName("x")`` / ``signingConfigs.x`` /
  ``signingConfigs["x"]``;
- top-level variables, ``props.getProperty("k")`` and ``props["k"]``
  lookups, ``.toInteger()`` / ``.toInt()`` conversions.

Anything else feeding a required field is reported as an unresolved
reference.  Missing and unresolvable fields are collected and raised
together as one ``ConfigurationError``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from build_descriptor.core.coordinates import Dependency, parse_coordinate
from build_descriptor.core.descriptor import RELEASE_BUILD_TYPE, BuildDescriptor, RejectReason
from build_descriptor.core.errors import ConfigurationError, Violation
from build_descriptor.core.script_model import (
    Assignment,
    Block,
    BoolValue,
    BuildScript,
    Call,
    CallValue,
    IndexValue,
    IntValue,
    NullValue,
    Opaque,
    Reference,
    StringValue,
    Value,
)
from build_descriptor.core.signing import SigningConfig, SigningConfigStore
from build_descriptor.policy.profile import DescriptorProfile

logger = logging.getLogger(__name__)

_JAVA_VERSION_RE = re.compile(r"^JavaVersion\.VERSION_(\d+)(?:_(\d+))?$")
_PLATFORM_CALLS = frozenset({"platform", "enforcedPlatform"})
_NON_COORDINATE_CALLS = frozenset({"project", "files", "fileTree", "kotlin", "gradleApi", "localGroovy"})
_CREDENTIAL_FIELDS = {
    "storeFile": "store_file",
    "storePassword": "store_password",
    "keyAlias": "key_alias",
    "keyPassword": "key_password",
}
_CATALOG_PREFIX = "libs."
_MAX_DEPTH = 16


class _Unresolved(Exception):
    pass


@dataclass
class _Setting:
    value: Value
    line: int


@dataclass
class _Context:
    profile: DescriptorProfile
    local_properties: Mapping[str, str]
    key_properties: Mapping[str, str]
    # candidate values per variable; conditional assignments come last
    variables: Dict[str, List[Value]] = field(default_factory=dict)


# ── Expression evaluation ────────────────────────────────────────────────────

def _java_level(path: str) -> Optional[str]:
    m = _JAVA_VERSION_RE.match(path)
    if m is None:
        return None
    major, minor = m.group(1), m.group(2)
    return f"{major}.{minor}" if minor is not None else major


def _properties_for(ctx: _Context, variable: str) -> Mapping[str, str]:
    # keystore/key properties vs. local.properties, by variable name
    if "key" in variable.lower():
        return ctx.key_properties
    return ctx.local_properties


def _evaluate(value: Value, ctx: _Context, depth: int = 0) -> Any:
    if depth > _MAX_DEPTH:
        raise _Unresolved("reference cycle")

    if isinstance(value, StringValue):
        return _interpolate(value.value, ctx, depth) if "$" in value.value else value.value
    if isinstance(value, (IntValue, BoolValue)):
        return value.value
    if isinstance(value, NullValue):
        return None

    if isinstance(value, Reference):
        path = value.path
        if path.startswith("flutter."):
            key = path[len("flutter."):]
            if path in ctx.local_properties:
                return ctx.local_properties[path]
            if key in ctx.profile.flutter_defaults:
                return ctx.profile.flutter_defaults[key]
            raise _Unresolved(path)
        level = _java_level(path)
        if level is not None:
            return level
        for candidate in ctx.variables.get(path, []):
            try:
                resolved = _evaluate(candidate, ctx, depth + 1)
            except _Unresolved:
                continue
            if resolved is not None:
                return resolved
        raise _Unresolved(path)

    if isinstance(value, CallValue):
        name = value.name
        base, _, method = name.rpartition(".")
        if method == "toString" and base:
            return str(_evaluate(Reference(base), ctx, depth + 1))
        if method in ("toInteger", "toInt") and base:
            raw = _evaluate(Reference(base), ctx, depth + 1)
            try:
                return int(raw)
            except (TypeError, ValueError):
                raise _Unresolved(f"{name}() on {raw!r}")
        if method == "getProperty" and base and value.args:
            key = _evaluate(value.args[0], ctx, depth + 1)
            props = _properties_for(ctx, base)
            if key in props:
                return props[key]
            if len(value.args) > 1:
                return _evaluate(value.args[1], ctx, depth + 1)
            raise _Unresolved(f'{base}.getProperty("{key}")')
        if name == "JavaVersion.toVersion" and value.args:
            return str(_evaluate(value.args[0], ctx, depth + 1))
        raise _Unresolved(f"{name}()")

    if isinstance(value, IndexValue):
        props = _properties_for(ctx, value.target)
        if value.key in props:
            return props[value.key]
        raise _Unresolved(f'{value.target}["{value.key}"]')

    if isinstance(value, Opaque) and value.inner is not None:
        return _evaluate(value.inner, ctx, depth + 1)

    text = value.text if isinstance(value, Opaque) else repr(value)
    raise _Unresolved(text)


def _signing_ref(value: Value) -> Optional[str]:
    """Name referenced by a ``signingConfig`` setting."""
    if isinstance(value, NullValue):
        return None
    if isinstance(value, Reference) and value.path.startswith("signingConfigs."):
        return value.path[len("signingConfigs."):]
    if isinstance(value, CallValue) and value.name in ("signingConfigs.getByName", "signingConfigs.named") and value.args:
        first = value.args[0]
        if isinstance(first, StringValue):
            return first.value
    if isinstance(value, IndexValue) and value.target == "signingConfigs":
        return value.key
    raise _Unresolved(_describe(value))


def _describe(value: Value) -> str:
    if isinstance(value, Reference):
        return value.path
    if isinstance(value, CallValue):
        return f"{value.name}()"
    if isinstance(value, Opaque):
        return value.text
    return repr(value)


# ── Block helpers ────────────────────────────────────────────────────────────

def _settings(block: Optional[Block]) -> Dict[str, _Setting]:
    """Property settings in *block*: ``key = v`` and Groovy ``key v``."""
    found: Dict[str, _Setting] = {}
    if block is None:
        return found
    for stmt in block.body:
        if isinstance(stmt, Assignment) and stmt.op == "=" and not stmt.local:
            found[stmt.target] = _Setting(stmt.value, stmt.line)
        elif isinstance(stmt, Call) and len(stmt.args) == 1 and not stmt.kwargs:
            found[stmt.name] = _Setting(stmt.args[0], stmt.line)
    return found


def _pick(settings: Mapping[str, _Setting], *names: str) -> Optional[Tuple[str, _Setting]]:
    for name in names:
        if name in settings:
            return name, settings[name]
    return None


class _Collector:
    """Accumulates violations while fields are read."""

    def __init__(self, ctx: _Context):
        self.ctx = ctx
        self.violations: List[Violation] = []

    def read(
        self,
        settings: Mapping[str, _Setting],
        names: Tuple[str, ...],
        kind: type,
        *,
        required: bool = True,
        default: Any = None,
    ) -> Any:
        picked = _pick(settings, *names)
        if picked is None:
            if required:
                self.violations.append(Violation(RejectReason.MISSING_FIELD, f"{names[0]} is not set"))
            return default
        name, setting = picked
        try:
            raw = _evaluate(setting.value, self.ctx)
        except _Unresolved as e:
            self.violations.append(Violation(
                RejectReason.UNRESOLVED_REFERENCE,
                f'unresolved reference "{e}" for {name} (line {setting.line})',
            ))
            return default
        return self._coerce(name, raw, kind, setting.line, default)

    def _coerce(self, name: str, raw: Any, kind: type, line: int, default: Any) -> Any:
        if kind is int:
            if isinstance(raw, bool):
                raw = None
            try:
                return int(raw)
            except (TypeError, ValueError):
                self.violations.append(Violation(
                    RejectReason.MISSING_FIELD,
                    f"{name} must be an integer, got {raw!r} (line {line})",
                ))
                return default
        if kind is bool:
            if isinstance(raw, bool):
                return raw
            if isinstance(raw, str) and raw.lower() in ("true", "false"):
                return raw.lower() == "true"
            self.violations.append(Violation(
                RejectReason.MISSING_FIELD, f"{name} must be a boolean, got {raw!r} (line {line})",
            ))
            return default
        if raw is None:
            return default
        return str(raw)


# ── Section readers ──────────────────────────────────────────────────────────

def _collect_variables(script: BuildScript) -> Dict[str, List[Value]]:
    """Root-level variables, plus fallbacks assigned inside ``if``/``else``."""
    variables: Dict[str, List[Value]] = {}
    conditional: List[Assignment] = []
    for stmt in script.body:
        if isinstance(stmt, Assignment) and stmt.op == "=" and "." not in stmt.target:
            variables.setdefault(stmt.target, []).insert(0, stmt.value)
        elif isinstance(stmt, Block) and stmt.name in ("if", "else"):
            conditional.extend(
                s for s in stmt.walk()
                if isinstance(s, Assignment) and s.op == "=" and "." not in s.target
            )
    for stmt in conditional:
        variables.setdefault(stmt.target, []).append(stmt.value)
    return variables


_TEMPLATE_RE = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_.]*)")


def _interpolate(text: str, ctx: _Context, depth: int = 0) -> str:
    """Expand Groovy/Kotlin ``$name`` and ``${name}`` templates."""
    def repl(m: re.Match) -> str:
        name = (m.group(1) or m.group(2)).strip()
        return str(_evaluate(Reference(name), ctx, depth + 1))
    return _TEMPLATE_RE.sub(repl, text)


def _collect_plugins(script: BuildScript) -> Tuple[str, ...]:
    plugins: List[str] = []
    block = script.block("plugins")
    for stmt in block.body if block is not None else []:
        if not isinstance(stmt, Call) or not stmt.args:
            continue
        arg = stmt.args[0]
        if isinstance(arg, Opaque) and arg.inner is not None:
            arg = arg.inner
        if not isinstance(arg, StringValue):
            continue
        if stmt.name == "id":
            plugins.append(arg.value)
        elif stmt.name == "kotlin":
            plugins.append(f"org.jetbrains.kotlin.{arg.value}")
    for stmt in script.body:
        if isinstance(stmt, Call) and stmt.name == "apply":
            plugin = stmt.kwargs.get("plugin")
            if isinstance(plugin, StringValue):
                plugins.append(plugin.value)
    return tuple(plugins)


def _collect_signing_configs(android: Optional[Block], col: _Collector) -> SigningConfigStore:
    declared: Dict[str, SigningConfig] = {}
    container = android.block("signingConfigs") if android is not None else None
    for child in container.blocks() if container is not None else []:
        settings = _settings(child)
        creds: Dict[str, Optional[str]] = {}
        for key, attr in _CREDENTIAL_FIELDS.items():
            setting = settings.get(key)
            if setting is None:
                continue
            value = setting.value
            # storeFile = file("upload.jks") / rootProject.file(...)
            if isinstance(value, CallValue) and value.name.endswith("file") and value.args:
                value = value.args[0]
            try:
                resolved = _evaluate(value, col.ctx)
            except _Unresolved as e:
                logger.debug("Signing config %s: %s unresolved (%s)", child.label, key, e)
                resolved = None
            creds[attr] = str(resolved) if resolved is not None else None
        config = SigningConfig(name=child.label, **creds)
        if child.label == RELEASE_BUILD_TYPE and col.ctx.key_properties:
            config = config.filled_from(col.ctx.key_properties)
        declared[child.label] = config
    return SigningConfigStore(declared)


def _collect_build_types(android: Optional[Block], col: _Collector) -> Dict[str, Optional[str]]:
    build_types: Dict[str, Optional[str]] = {"debug": "debug", RELEASE_BUILD_TYPE: None}
    container = android.block("buildTypes") if android is not None else None
    for child in container.blocks() if container is not None else []:
        setting = _settings(child).get("signingConfig")
        if setting is None:
            build_types.setdefault(child.label, None)
            continue
        try:
            build_types[child.label] = _signing_ref(setting.value)
        except _Unresolved as e:
            col.violations.append(Violation(
                RejectReason.UNRESOLVED_REFERENCE,
                f'unresolved reference "{e}" for signingConfig of build type '
                f'"{child.label}" (line {setting.line})',
            ))
    return build_types


def _dependency_from(
    configuration: str,
    value: Value,
    kwargs: Mapping[str, Value],
    ctx: _Context,
) -> Optional[Dependency]:
    """Build a Dependency, or None for project/file dependencies."""
    if kwargs and {"group", "name"} <= set(kwargs):
        keys = ["group", "name"] + (["version"] if "version" in kwargs else [])
        notation = ":".join(str(_evaluate(kwargs[k], ctx)) for k in keys)
        return parse_coordinate(notation, configuration)

    if isinstance(value, Opaque) and value.inner is not None:
        value = value.inner
    platform = False
    if isinstance(value, CallValue) and value.name in _PLATFORM_CALLS and value.args:
        platform = True
        value = value.args[0]
    if isinstance(value, CallValue) and value.name in _NON_COORDINATE_CALLS:
        return None
    if isinstance(value, StringValue):
        return parse_coordinate(_evaluate(value, ctx), configuration, platform=platform)
    if isinstance(value, Reference):
        if value.path.startswith(_CATALOG_PREFIX):
            # version-catalog accessor, declared in gradle/libs.versions.toml
            logger.debug("Skipping catalog dependency %s", value.path)
            return None
        return parse_coordinate(str(_evaluate(value, ctx)), configuration, platform=platform)
    raise ValueError(f"unsupported dependency notation {_describe(value)!r}")


def _collect_dependencies(script: BuildScript, col: _Collector) -> Tuple[Dependency, ...]:
    deps: List[Dependency] = []
    for block in script.blocks("dependencies"):
        for stmt in block.body:
            # `implementation("g:a:v") { exclude(...) }` parses as a block
            if isinstance(stmt, Block) and not stmt.args:
                continue
            if not isinstance(stmt, (Call, Block)):
                continue
            value: Value = stmt.args[0] if stmt.args else NullValue()
            try:
                kwargs = stmt.kwargs if isinstance(stmt, Call) else {}
                dep = _dependency_from(stmt.name, value, kwargs, col.ctx)
            except _Unresolved as e:
                col.violations.append(Violation(
                    RejectReason.UNRESOLVED_REFERENCE,
                    f'unresolved reference "{e}" in {stmt.name} dependency (line {stmt.line})',
                ))
                continue
            except ValueError as e:
                col.violations.append(Violation(
                    RejectReason.INVALID_COORDINATE, f"{stmt.name}: {e} (line {stmt.line})",
                ))
                continue
            if dep is not None:
                deps.append(dep)
    return tuple(deps)


# ── Public API ───────────────────────────────────────────────────────────────

def build_descriptor(
    script: BuildScript,
    local_properties: Optional[Mapping[str, str]] = None,
    profile: DescriptorProfile | None = None,
    key_properties: Optional[Mapping[str, str]] = None,
) -> BuildDescriptor:
    """
    Assemble a BuildDescriptor from a parsed build script.

    Parameters
    ----------
    script : BuildScript
        Lowered script, ``ParseResult.script``.
    local_properties : Mapping[str, str], optional
        Contents of ``local.properties`` (``flutter.versionCode`` …).
    profile : DescriptorProfile, optional
        Defaults to ``DescriptorProfile.v0()``.
    key_properties : Mapping[str, str], optional
        Contents of ``key.properties`` for release signing.

    Raises
    ------
    ConfigurationError
        Listing every missing or unresolvable field.  Semantic checks
        (SDK ordering, signing references, …) are left to
        ``BuildDescriptor.validate``.
    """
    if profile is None:
        profile = DescriptorProfile.v0()

    ctx = _Context(
        profile=profile,
        local_properties=dict(local_properties or {}),
        key_properties=dict(key_properties or {}),
        variables=_collect_variables(script),
    )
    col = _Collector(ctx)

    android = script.block("android")
    if android is None:
        col.violations.append(Violation(RejectReason.MISSING_FIELD, "android block is not declared"))

    top = _settings(android)
    default_config = _settings(android.block("defaultConfig") if android is not None else None)
    compile_options = _settings(android.block("compileOptions") if android is not None else None)
    kotlin_options = _settings(android.block("kotlinOptions") if android is not None else None)
    flutter = _settings(script.block("flutter"))

    namespace = col.read(top, ("namespace",), str, default="")
    compile_sdk = col.read(top, ("compileSdk", "compileSdkVersion"), int, default=0)
    ndk_version = col.read(top, ("ndkVersion",), str, required=False)

    application_id = col.read(default_config, ("applicationId",), str, default="")
    min_sdk = col.read(default_config, ("minSdk", "minSdkVersion"), int, default=0)
    target_sdk = col.read(default_config, ("targetSdk", "targetSdkVersion"), int, default=0)
    version_code = col.read(default_config, ("versionCode",), int, default=0)
    version_name = col.read(default_config, ("versionName",), str, default="")

    # AGP defaults both levels to Java 8 when compileOptions is silent
    source_compat = col.read(compile_options, ("sourceCompatibility",), str, required=False, default="1.8")
    target_compat = col.read(compile_options, ("targetCompatibility",), str, required=False, default="1.8")
    desugaring = col.read(
        compile_options,
        ("isCoreLibraryDesugaringEnabled", "coreLibraryDesugaringEnabled"),
        bool, required=False, default=False,
    )
    jvm_target = col.read(kotlin_options, ("jvmTarget",), str, required=False)
    flutter_source = col.read(flutter, ("source",), str, required=False)

    signing_store = _collect_signing_configs(android, col)
    build_types = _collect_build_types(android, col)
    dependencies = _collect_dependencies(script, col)
    plugins = _collect_plugins(script)

    if col.violations:
        raise ConfigurationError(col.violations)

    descriptor = BuildDescriptor(
        application_id=application_id,
        namespace=namespace,
        min_sdk=min_sdk,
        target_sdk=target_sdk,
        compile_sdk=compile_sdk,
        version_code=version_code,
        version_name=version_name,
        source_compatibility=source_compat,
        target_compatibility=target_compat,
        signing_store=signing_store,
        build_types=build_types,
        dependencies=dependencies,
        plugins=plugins,
        ndk_version=ndk_version,
        jvm_target=jvm_target,
        core_library_desugaring=desugaring,
        flutter_source=flutter_source,
    )
    logger.debug(
        "Assembled descriptor %s (sdk %d/%d/%d, %d dependencies)",
        descriptor.application_id, min_sdk, target_sdk, compile_sdk, len(dependencies),
    )
    return descriptor

"""Tests for the tree-sitter build-script parser and its lowering."""
from pathlib import Path

import pytest

from build_descriptor.core.errors import BuildScriptSyntaxError
from build_descriptor.core.script_model import (
    Assignment,
    Block,
    Call,
    CallValue,
    IndexValue,
    IntValue,
    Opaque,
    Reference,
    StringValue,
)
from build_descriptor.core.script_parser import (
    GROOVY,
    KOTLIN,
    dialect_for,
    parenthesize_command_calls,
    parse_build_file,
    parse_build_script,
    parse_build_text,
)


class TestParseBuildFile:
    """Tests for parse_build_file() / parse_build_text()."""

    def test_kotlin_parse_ok(self, flutter_project: Path):
        """The Flutter Kotlin-DSL module parses without errors."""
        result = parse_build_file(flutter_project)
        assert result.parse_status == "OK"
        assert len(result.parse_errors) == 0
        assert result.dialect == KOTLIN
        assert result.build_file == str(flutter_project)
        assert "tree-sitter-kotlin" in result.parser_version
        assert result.script is not None

    def test_groovy_parse_ok(self, groovy_project: Path):
        """build.gradle is parsed with the Groovy grammar."""
        result = parse_build_file(groovy_project)
        assert result.parse_status == "OK", result.parse_errors
        assert result.dialect == GROOVY
        assert "tree-sitter-groovy" in result.parser_version

    def test_tree_top_level_calls(self, flutter_project: Path):
        """Top-level configuration blocks are call expressions in the CST."""
        result = parse_build_file(flutter_project)
        root = result.tree.root_node  # type: ignore
        assert root.type == "source_file"
        calls = [c for c in root.children if c.type == "call_expression"]
        assert len(calls) == 4  # plugins, android, flutter, dependencies

    def test_hash_deterministic(self, flutter_project: Path):
        """Parsing the same file twice gives the same file_hash."""
        r1 = parse_build_file(flutter_project)
        r2 = parse_build_file(flutter_project)
        assert r1.file_hash == r2.file_hash
        assert len(r1.file_hash) == 64

    def test_hash_of_original_groovy_text(self, groovy_gradle: str):
        """The hash covers the file as written, not the rewritten source."""
        result = parse_build_text(groovy_gradle, build_file="build.gradle")
        assert b"signingConfig(signingConfigs.release)" in result.source_bytes
        assert result.file_hash == parse_build_text(groovy_gradle, build_file="other.gradle").file_hash
        assert result.file_hash != parse_build_text(
            groovy_gradle.replace("release", "upload"), build_file="build.gradle",
        ).file_hash

    def test_parse_error_detected(self, parse_error_file: Path):
        """An unclosed block yields ERROR/MISSING nodes and no script."""
        result = parse_build_file(parse_error_file)
        assert result.parse_status == "ERROR"
        assert len(result.parse_errors) > 0
        assert result.script is None
        assert all(e.line >= 1 and e.column >= 1 for e in result.parse_errors)

    def test_empty_text(self):
        """Empty text is a valid, empty script."""
        result = parse_build_text("")
        assert result.parse_status == "OK"
        assert result.source_bytes == b""
        assert result.script.body == []

    def test_explicit_dialect(self, groovy_gradle: str):
        result = parse_build_text(groovy_gradle, dialect=GROOVY)
        assert result.dialect == GROOVY
        assert result.parse_status == "OK"

    def test_dialect_for(self):
        assert dialect_for("android/app/build.gradle") == GROOVY
        assert dialect_for("android/app/build.gradle.kts") == KOTLIN
        assert dialect_for("<memory>") == KOTLIN


class TestCommandCalls:
    """Tests for parenthesize_command_calls()."""

    def test_expression_argument_parenthesized(self):
        text = "    versionCode flutterVersionCode.toInteger()\n"
        assert parenthesize_command_calls(text) == "    versionCode(flutterVersionCode.toInteger())\n"

    def test_index_and_ternary(self):
        text = "storeFile props['storeFile'] ? file(props['storeFile']) : null"
        assert parenthesize_command_calls(text) == (
            "storeFile(props['storeFile'] ? file(props['storeFile']) : null)"
        )

    def test_argument_list(self):
        text = "proguardFiles getDefaultProguardFile('proguard-android.txt'), 'proguard-rules.pro'"
        assert parenthesize_command_calls(text) == (
            "proguardFiles(getDefaultProguardFile('proguard-android.txt'), 'proguard-rules.pro')"
        )

    def test_trailing_comment_kept(self):
        text = "signingConfig signingConfigs.release // upload key"
        assert parenthesize_command_calls(text) == "signingConfig(signingConfigs.release) // upload key"

    @pytest.mark.parametrize("line", [
        "minSdkVersion 23",
        "namespace \"com.example.shop\"",
        "versionName flutterVersionName",
        "apply plugin: 'com.android.application'",
        "id 'com.android.application' version '8.5.0' apply false",
        "flutterVersionCode = '1'",
        "def x = rootProject.file('key.properties')",
        "return props.getProperty('x')",
        "android {",
        "url 'https://maven.example.com/releases' // mirror",
    ])
    def test_lines_left_alone(self, line: str):
        assert parenthesize_command_calls(line) == line

    def test_triple_quoted_string_left_alone(self):
        text = "def notes = '''\nsee docs.example\n'''\nversionCode code.toInteger()"
        assert parenthesize_command_calls(text).split("\n") == [
            "def notes = '''",
            "see docs.example",
            "'''",
            "versionCode(code.toInteger())",
        ]

    def test_line_count_preserved(self, groovy_gradle: str):
        rewritten = parenthesize_command_calls(groovy_gradle)
        assert rewritten.count("\n") == groovy_gradle.count("\n")


class TestLowering:
    """Tests for the BuildScript model lowered from the CST."""

    def test_kotlin_blocks_and_assignments(self, flutter_kts: str):
        script = parse_build_script(flutter_kts)
        android = script.block("android")
        assert isinstance(android, Block)
        namespace = next(s for s in android.body if isinstance(s, Assignment) and s.target == "namespace")
        assert namespace.value == StringValue("com.example.travelbuddy_final")
        assert namespace.line == 9
        compile_sdk = next(s for s in android.body if isinstance(s, Assignment) and s.target == "compileSdk")
        assert compile_sdk.value == Reference("flutter.compileSdkVersion")

    def test_top_level_block_names(self, flutter_kts: str):
        script = parse_build_script(flutter_kts)
        assert [b.name for b in script.blocks()] == ["plugins", "android", "flutter", "dependencies"]

    def test_comments_ignored(self, flutter_kts: str):
        script = parse_build_script(flutter_kts)
        compile_options = script.block("android").block("compileOptions")
        assert [s.target for s in compile_options.body] == [
            "sourceCompatibility", "targetCompatibility", "isCoreLibraryDesugaringEnabled",
        ]

    def test_call_value_argument(self, flutter_kts: str):
        script = parse_build_script(flutter_kts)
        release = script.block("android").block("buildTypes").block("release")
        setting = release.body[0]
        assert isinstance(setting, Assignment)
        assert setting.value == CallValue("signingConfigs.getByName", (StringValue("debug"),))

    def test_groovy_command_syntax(self, groovy_gradle: str):
        script = parse_build_script(groovy_gradle, dialect=GROOVY)
        default_config = script.block("android").block("defaultConfig")
        calls = {s.name: s for s in default_config.body if isinstance(s, Call)}
        assert calls["minSdkVersion"].args == [IntValue(23)]
        assert calls["applicationId"].args == [StringValue("com.example.shop")]
        assert calls["versionCode"].args == [CallValue("flutterVersionCode.toInteger")]
        assert calls["versionName"].args == [Reference("flutterVersionName")]

    def test_groovy_apply_plugin_kwargs(self, groovy_gradle: str):
        script = parse_build_script(groovy_gradle, dialect=GROOVY)
        applies = [s for s in script.body if isinstance(s, Call) and s.name == "apply"]
        assert [a.kwargs["plugin"] for a in applies] == [
            StringValue("com.android.application"),
            StringValue("kotlin-android"),
        ]

    def test_groovy_conditional_assignments(self, groovy_gradle: str):
        script = parse_build_script(groovy_gradle, dialect=GROOVY)
        conditionals = script.blocks("if")
        assignments = [s for b in conditionals for s in b.walk() if isinstance(s, Assignment)]
        assert [(a.target, a.value) for a in assignments] == [
            ("flutterVersionCode", StringValue("1")),
            ("flutterVersionName", StringValue("1.0")),
        ]

    def test_ternary_keeps_index_lookup(self, groovy_gradle: str):
        script = parse_build_script(groovy_gradle, dialect=GROOVY)
        release = script.block("android").block("signingConfigs").block("release")
        store_file = next(s for s in release.body if isinstance(s, Call) and s.name == "storeFile")
        value = store_file.args[0]
        assert isinstance(value, Opaque)
        assert value.inner == IndexValue("keystoreProperties", "storeFile")

    def test_safe_call_keeps_index_lookup(self, release_keystore_kts: str):
        script = parse_build_script(release_keystore_kts)
        release = script.block("android").block("signingConfigs").blocks()[0]
        store_file = next(s for s in release.body if s.target == "storeFile")
        assert isinstance(store_file.value, Opaque)
        assert store_file.value.inner == IndexValue("keystoreProperties", "storeFile")

    def test_cast_is_transparent(self):
        script = parse_build_script('signingConfigs {\n    keyAlias = props["keyAlias"] as String\n}\n')
        assert script.block("signingConfigs").body[0].value == IndexValue("props", "keyAlias")

    def test_named_element_label(self, release_keystore_kts: str):
        script = parse_build_script(release_keystore_kts)
        signing = script.block("android").block("signingConfigs")
        assert [b.label for b in signing.blocks()] == ["release"]
        build_types = script.block("android").block("buildTypes")
        assert [b.label for b in build_types.blocks()] == ["release"]

    def test_local_declarations(self, release_keystore_kts: str):
        script = parse_build_script(release_keystore_kts)
        locals_ = [s for s in script.body if isinstance(s, Assignment) and s.local]
        assert [s.target for s in locals_] == ["keystoreProperties", "keystorePropertiesFile"]
        assert locals_[1].value == CallValue("rootProject.file", (StringValue("key.properties"),))

    def test_imports_skipped(self, release_keystore_kts: str):
        script = parse_build_script(release_keystore_kts)
        assert [type(s).__name__ for s in script.body[:2]] == ["Block", "Assignment"]

    def test_plugin_modifiers(self):
        script = parse_build_script('plugins {\n    id("com.android.application") version "8.5.0" apply false\n}\n')
        call = script.block("plugins").body[0]
        assert call.args == [StringValue("com.android.application")]
        assert call.modifiers["version"] == StringValue("8.5.0")

    def test_named_arguments_and_trailing_block(self):
        script = parse_build_script(
            'dependencies {\n'
            '    implementation(group = "com.google.guava", name = "guava", version = "33.0.0-jre")\n'
            '    implementation("com.squareup.okhttp3:okhttp:4.12.0") {\n'
            '        exclude(group = "org.jetbrains.kotlin")\n'
            '    }\n'
            '}\n'
        )
        named, with_block = script.block("dependencies").body
        assert named.kwargs["name"] == StringValue("guava")
        assert isinstance(with_block, Block)
        assert with_block.args == [StringValue("com.squareup.okhttp3:okhttp:4.12.0")]
        assert with_block.body[0].kwargs == {"group": StringValue("org.jetbrains.kotlin")}

    def test_if_expression_value_is_opaque(self):
        script = parse_build_script('val base = "x" + suffix\nval code = if (ci) 2 else 1\n')
        base, code = script.body
        assert base.value == Opaque('"x" + suffix', StringValue("x"))
        assert code.value == Opaque("if (ci) 2 else 1")

    def test_walk_visits_nested(self, flutter_kts: str):
        script = parse_build_script(flutter_kts)
        targets = {s.target for s in script.walk() if isinstance(s, Assignment)}
        assert {"applicationId", "jvmTarget", "signingConfig", "source"} <= targets


class TestSyntaxErrors:
    """parse_build_script() raises on any ERROR or MISSING node."""

    @pytest.mark.parametrize("text", [
        'android {\n    namespace = "a.b"\n',
        "android {\n}\n}\n",
        'dependencies {\n    implementation("a:b:1"]\n}\n',
    ])
    def test_malformed_kotlin(self, text: str):
        with pytest.raises(BuildScriptSyntaxError) as exc:
            parse_build_script(text)
        assert exc.value.line >= 1

    def test_malformed_groovy(self):
        with pytest.raises(BuildScriptSyntaxError):
            parse_build_script("android {\n    compileSdkVersion 34\n", dialect=GROOVY)

"""Integration tests for the runner, loader, writer and CLI."""
import json
import textwrap
from pathlib import Path

import pytest

from build_descriptor.core.resolver import DependencyResolver, LocalRepositorySource
from build_descriptor.io.loader import find_build_file, load_project
from build_descriptor.io.writer import REPORT_FILENAME
from build_descriptor.runner import check_build_text, main, run_build_descriptor


class TestLoader:
    """Tests for build-file discovery and properties loading."""

    def test_properties_from_parent_dir(self, flutter_project: Path):
        project = load_project(flutter_project)
        assert project.project_dir == flutter_project.parent
        assert project.local_properties["flutter.versionCode"] == "12"
        assert project.local_properties["sdk.dir"] == "C:\\Users\\dev\\Android\\sdk"
        assert project.key_properties == {}

    def test_key_properties(self, groovy_project: Path):
        project = load_project(groovy_project)
        assert project.key_properties["keyAlias"] == "upload"

    def test_find_from_project_root(self, flutter_project: Path):
        root = flutter_project.parent.parent.parent
        assert find_build_file(root) == flutter_project

    def test_missing_build_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            find_build_file(tmp_path)


class TestRunBuildDescriptor:
    """Tests for run_build_descriptor()."""

    def test_flutter_project_warns(self, flutter_project: Path):
        report = run_build_descriptor(flutter_project)
        assert report.parse_status == "OK"
        assert report.verdict == "WARN"
        assert report.reasons == ["RELEASE_SIGNED_WITH_DEBUG"]
        assert report.descriptor.application_id == "com.group1.travel_buddy"
        assert report.descriptor.version_code == 12
        assert report.descriptor.version_name == "1.4.2"
        assert report.descriptor.core_library_desugaring is True

    def test_google_services_file_checked(self, flutter_project: Path):
        (flutter_project.parent / "google-services.json").unlink()
        report = run_build_descriptor(flutter_project)
        assert report.reasons == ["RELEASE_SIGNED_WITH_DEBUG", "GOOGLE_SERVICES_CONFIG_MISSING"]

    def test_groovy_project_accepted(self, groovy_project: Path):
        report = run_build_descriptor(groovy_project)
        assert report.verdict == "ACCEPT", report.reasons
        signing = {s.name: s for s in report.descriptor.signing_configs}
        assert signing["release"].key_alias == "upload"
        assert signing["release"].missing_fields == []

    def test_passwords_not_in_report(self, groovy_project: Path, tmp_path: Path):
        out = tmp_path / "out"
        run_build_descriptor(groovy_project, output_dir=out)
        assert "s3cret" not in (out / REPORT_FILENAME).read_text()

    def test_parse_error_rejected(self, parse_error_file: Path):
        report = run_build_descriptor(parse_error_file)
        assert report.parse_status == "ERROR"
        assert report.verdict == "REJECT"
        assert report.reasons == ["BUILD_SCRIPT_SYNTAX"]
        assert report.descriptor is None
        assert len(report.parse_errors) > 0
        assert report.parse_errors[0].line >= 1

    def test_output_written(self, flutter_project: Path, tmp_path: Path):
        out = tmp_path / "out"
        report = run_build_descriptor(flutter_project, output_dir=out)
        data = json.loads((out / REPORT_FILENAME).read_text())
        assert data["verdict"] == report.verdict
        assert data["package_name"] == "build_descriptor"
        assert data["build_file_hash"] == report.build_file_hash
        assert data["dialect"] == "kotlin"
        assert "tree-sitter-kotlin" in data["parser_version"]

    def test_resolution(self, flutter_project: Path, local_repo: Path):
        resolver = DependencyResolver([LocalRepositorySource(local_repo)])
        report = run_build_descriptor(flutter_project, resolver=resolver)
        assert report.dependencies_resolved is True
        assert [r.coordinate for r in report.resolved_dependencies] == ["com.android.tools:desugar_jdk_libs"]

    def test_unresolved_dependency_rejected(self, flutter_project: Path, tmp_path: Path):
        empty_repo = tmp_path / "empty-m2"
        empty_repo.mkdir()
        resolver = DependencyResolver([LocalRepositorySource(empty_repo)])
        report = run_build_descriptor(flutter_project, resolver=resolver)
        assert report.verdict == "REJECT"
        assert report.reasons == ["UNRESOLVED_DEPENDENCY"]
        assert report.unresolved_dependency == "com.android.tools:desugar_jdk_libs:2.1.4"


class TestCheckBuildText:
    """Tests for check_build_text()."""

    def test_configuration_error_in_report(self):
        report = check_build_text(textwrap.dedent("""\
            android {
                namespace = "com.example.app"
                compileSdk = 33
                defaultConfig {
                    applicationId = "com.example.app"
                    minSdk = 21
                    targetSdk = 34
                    versionCode = 1
                    versionName = "1.0"
                }
                buildTypes {
                    release {
                        signingConfig = signingConfigs.getByName("release")
                    }
                }
            }
        """))
        assert report.verdict == "REJECT"
        assert report.reasons == ["SDK_ORDER", "UNKNOWN_SIGNING_CONFIG"]
        assert [v.message for v in report.violations] == [
            "targetSdk (34) must not exceed compileSdk (33)",
            'unknown signing config "release"',
        ]
        assert report.descriptor is not None

    def test_assembly_error_in_report(self):
        report = check_build_text("android {\n}\n")
        assert report.verdict == "REJECT"
        assert report.reasons == ["MISSING_FIELD"]
        assert report.descriptor is None
        assert len(report.violations) == 7


class TestCli:
    """Tests for the CLI entry point."""

    def test_warn_exits_zero(self, flutter_project: Path, tmp_path: Path, capsys):
        out = tmp_path / "cli-out"
        assert main([str(flutter_project), "-o", str(out)]) == 0
        assert (out / REPORT_FILENAME).exists()
        printed = capsys.readouterr().out
        assert "Verdict: WARN (RELEASE_SIGNED_WITH_DEBUG)" in printed

    def test_reject_exits_one(self, parse_error_file: Path):
        assert main([str(parse_error_file)]) == 1

    def test_missing_file_exits_one(self, tmp_path: Path):
        assert main([str(tmp_path / "nope.gradle.kts")]) == 1

    def test_resolve_with_local_repo(self, flutter_project: Path, local_repo: Path, capsys):
        assert main([str(flutter_project), "--resolve", "--local-repo", str(local_repo), "--repo", "http://127.0.0.1:9/m2"]) == 0
        assert "Dependencies resolved: 1" in capsys.readouterr().out

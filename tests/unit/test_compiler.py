"""Unit tests for pickle_compiler.compiler."""

import json
import shutil
from pathlib import Path

import pytest

from pickle_compiler.catalog import StepCatalog
from pickle_compiler.compiler import (
    compile_feature,
    compile_features,
    find_feature_files,
    generate_project,
    is_stale,
    load_manifest,
    write_source,
)
from pickle_compiler.config import load_config, save_config
from pickle_compiler.errors import NoMatchError, ParseError
from pickle_compiler.generator import GeneratedClass

UNKNOWN_STEP_FEATURE = "Feature: Broken\n  Scenario: Bad\n    Given something undefined\n"


def _write_features(directory: Path, count: int) -> list[Path]:
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for i in range(count):
        path = directory / f"f{i:02d}.feature"
        path.write_text(f"Feature: Feature {i}\n  Scenario: S\n    Given the app is launched\n")
        paths.append(path)
    return paths


class TestCompileFeature:
    def test_compile(self, sample_feature_content: str, sample_catalog: StepCatalog) -> None:
        generated = compile_feature(
            sample_feature_content, sample_catalog, "com.example", source_file="cart.feature"
        )
        assert generated.class_name == "ShoppingCartTest"
        assert generated.feature_name == "Shopping cart"
        assert "from cart.feature" in generated.source

    def test_parse_error_propagates(self, sample_catalog: StepCatalog) -> None:
        with pytest.raises(ParseError):
            compile_feature("not gherkin", sample_catalog, "com.example")

    def test_resolution_error_propagates(self, sample_catalog: StepCatalog) -> None:
        with pytest.raises(NoMatchError):
            compile_feature(UNKNOWN_STEP_FEATURE, sample_catalog, "com.example")


class TestCompileFeatures:
    def test_parallel_keeps_input_order(self, tmp_path: Path, sample_catalog: StepCatalog) -> None:
        paths = _write_features(tmp_path, 12)
        results = compile_features(paths, sample_catalog, "com.example", jobs=4)
        assert [r.path for r in results] == paths
        assert [r.generated.class_name for r in results if r.generated] == [
            f"Feature{i}Test" for i in range(12)
        ]

    def test_parallel_matches_sequential(self, tmp_path: Path, sample_catalog: StepCatalog) -> None:
        paths = _write_features(tmp_path, 5)
        sequential = compile_features(paths, sample_catalog, "com.example")
        parallel = compile_features(paths, sample_catalog, "com.example", jobs=3)
        assert [r.generated for r in sequential] == [r.generated for r in parallel]

    def test_failures_are_isolated(self, tmp_path: Path, sample_catalog: StepCatalog) -> None:
        good, = _write_features(tmp_path, 1)
        bad = tmp_path / "bad.feature"
        bad.write_text(UNKNOWN_STEP_FEATURE)
        results = compile_features([bad, good], sample_catalog, "com.example", jobs=2)
        assert isinstance(results[0].error, NoMatchError)
        assert results[0].error.source_file == str(bad)
        assert results[1].ok

    def test_class_name_clash(self, tmp_path: Path, sample_catalog: StepCatalog) -> None:
        first = tmp_path / "a.feature"
        second = tmp_path / "b.feature"
        for path in (first, second):
            path.write_text("Feature: Same name\n  Scenario: S\n    Given the app is launched\n")
        results = compile_features([first, second], sample_catalog, "com.example")
        assert results[0].ok
        assert not results[1].ok
        assert "SameNameTest" in str(results[1].error)


class TestFiles:
    def test_find_feature_files(self, tmp_path: Path) -> None:
        (tmp_path / "sub").mkdir()
        (tmp_path / "b.feature").write_text("")
        (tmp_path / "sub" / "a.FEATURE").write_text("")
        (tmp_path / "notes.txt").write_text("")
        assert find_feature_files(tmp_path) == [tmp_path / "b.feature", tmp_path / "sub" / "a.FEATURE"]

    def test_find_feature_files_missing_dir(self, tmp_path: Path) -> None:
        assert find_feature_files(tmp_path / "missing") == []

    def test_write_source(self, tmp_path: Path) -> None:
        generated = GeneratedClass("com.example", "CartTest", "class CartTest {}\n")
        target = write_source(tmp_path, generated)
        assert target == tmp_path / "com" / "example" / "CartTest.java"
        assert target.read_text() == "class CartTest {}\n"
        assert [p.name for p in target.parent.iterdir()] == ["CartTest.java"]


class TestGenerateProject:
    def test_writes_sources_and_manifest(self, initialized_project: Path) -> None:
        config = load_config(initialized_project)
        summary = generate_project(initialized_project, config)
        target = initialized_project / "build/generated/com/example/app/ShoppingCartTest.java"
        assert summary.success
        assert summary.written == [target]
        assert target.exists()
        manifest = load_manifest(initialized_project)
        assert manifest["files"] == ["build/generated/com/example/app/ShoppingCartTest.java"]
        assert not is_stale(initialized_project, config)

    def test_skips_when_unchanged(self, initialized_project: Path) -> None:
        config = load_config(initialized_project)
        generate_project(initialized_project, config)
        assert generate_project(initialized_project, config).skipped
        assert not generate_project(initialized_project, config, force=True).skipped

    def test_feature_edit_makes_stale(self, initialized_project: Path) -> None:
        config = load_config(initialized_project)
        generate_project(initialized_project, config)
        feature = initialized_project / "features" / "cart.feature"
        feature.write_text(feature.read_text().replace("Login succeeds", "Login works"))
        assert is_stale(initialized_project, config)
        summary = generate_project(initialized_project, config)
        assert not summary.skipped
        assert "loginWorks" in summary.written[0].read_text()

    def test_config_change_makes_stale(self, initialized_project: Path) -> None:
        config = load_config(initialized_project)
        generate_project(initialized_project, config)
        config.package_name = "com.other"
        save_config(config, initialized_project)
        assert is_stale(initialized_project, config)

    def test_output_dir_change_regenerates(self, initialized_project: Path) -> None:
        config = load_config(initialized_project)
        first = generate_project(initialized_project, config).written[0]
        config.output_dir = "build/other"
        save_config(config, initialized_project)
        assert is_stale(initialized_project, config)
        summary = generate_project(initialized_project, config)
        assert not summary.skipped
        assert summary.written == [initialized_project / "build/other/com/example/app/ShoppingCartTest.java"]
        assert summary.removed == [first]

    def test_deleted_outputs_regenerate(self, initialized_project: Path) -> None:
        config = load_config(initialized_project)
        target = generate_project(initialized_project, config).written[0]
        shutil.rmtree(initialized_project / "build")
        assert is_stale(initialized_project, config)
        summary = generate_project(initialized_project, config)
        assert not summary.skipped
        assert target.exists()
        assert not is_stale(initialized_project, config)

    def test_removes_outputs_of_deleted_features(self, initialized_project: Path) -> None:
        config = load_config(initialized_project)
        first = generate_project(initialized_project, config).written[0]
        (initialized_project / "features" / "cart.feature").unlink()
        summary = generate_project(initialized_project, config)
        assert summary.removed == [first]
        assert not first.exists()
        assert json.loads((initialized_project / ".pickle" / "manifest.json").read_text())[
            "files"
        ] == []

    def test_strict_mode_aborts(self, initialized_project: Path) -> None:
        (initialized_project / "features" / "broken.feature").write_text(UNKNOWN_STEP_FEATURE)
        config = load_config(initialized_project)
        with pytest.raises(NoMatchError):
            generate_project(initialized_project, config)
        assert not (initialized_project / "build").exists()
        assert load_manifest(initialized_project) == {}

    def test_lenient_mode_writes_the_rest(self, initialized_project: Path) -> None:
        (initialized_project / "features" / "broken.feature").write_text(UNKNOWN_STEP_FEATURE)
        config = load_config(initialized_project)
        config.strict_mode = False
        summary = generate_project(initialized_project, config)
        assert not summary.success
        assert [f.path.name for f in summary.failures] == ["broken.feature"]
        assert [p.name for p in summary.written] == ["ShoppingCartTest.java"]
        assert load_manifest(initialized_project) == {}

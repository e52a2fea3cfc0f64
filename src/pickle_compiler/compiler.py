"""Feature compilation: parse, resolve and generate, per feature and per project."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from hashlib import sha256
from pathlib import Path

from pickle_compiler.catalog import StepCatalog, load_catalog
from pickle_compiler.config import PICKLE_DIR
from pickle_compiler.errors import PickleError
from pickle_compiler.generator import GeneratedClass, JUnitGenerator
from pickle_compiler.keywords import DEFAULT_LANGUAGE
from pickle_compiler.models import DEFAULT_RUNNER, FeatureDocument, ProjectConfig
from pickle_compiler.parser import parse_feature_file, parse_feature_string
from pickle_compiler.resolver import resolve_feature

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
FEATURE_SUFFIX = ".feature"


@dataclass
class FeatureResult:
    """Outcome of compiling one feature file."""

    path: Path
    generated: GeneratedClass | None = None
    error: PickleError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class GenerateSummary:
    """Outcome of a project-wide generate run."""

    written: list[Path] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)
    failures: list[FeatureResult] = field(default_factory=list)
    skipped: bool = False
    feature_count: int = 0

    @property
    def success(self) -> bool:
        return not self.failures


def compile_document(
    document: FeatureDocument,
    catalog: StepCatalog,
    package_name: str,
    runner: str = DEFAULT_RUNNER,
) -> GeneratedClass:
    """Resolve a parsed feature and render its test class."""
    resolved = resolve_feature(document, catalog)
    return JUnitGenerator(package_name, runner).generate_test_class(resolved)


def compile_feature(
    content: str,
    catalog: StepCatalog,
    package_name: str,
    source_file: str | None = None,
    runner: str = DEFAULT_RUNNER,
    language: str = DEFAULT_LANGUAGE,
) -> GeneratedClass:
    """Compile feature text into one generated test class.

    Raises a PickleError subclass on any parse or resolution failure; no
    partial output is ever returned.
    """
    document = parse_feature_string(content, source_file=source_file, language=language)
    return compile_document(document, catalog, package_name, runner)


def _compile_path(
    path: Path, catalog: StepCatalog, package_name: str, runner: str, language: str
) -> FeatureResult:
    try:
        document = parse_feature_file(path, language=language)
        generated = compile_document(document, catalog, package_name, runner)
    except PickleError as exc:
        logger.debug("Failed to compile %s: %s", path, exc)
        return FeatureResult(path=path, error=exc)
    return FeatureResult(path=path, generated=generated)


def compile_features(
    paths: list[Path],
    catalog: StepCatalog,
    package_name: str,
    runner: str = DEFAULT_RUNNER,
    language: str = DEFAULT_LANGUAGE,
    jobs: int = 1,
) -> list[FeatureResult]:
    """Compile many feature files, optionally in parallel.

    The catalog is only read, so workers share it. Results are returned in
    the order of ``paths`` regardless of completion order. Two features that
    map to the same class name make the later one fail.
    """
    if jobs > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            futures = [
                executor.submit(_compile_path, p, catalog, package_name, runner, language)
                for p in paths
            ]
            results = [f.result() for f in futures]
    else:
        results = [_compile_path(p, catalog, package_name, runner, language) for p in paths]

    owners: dict[str, Path] = {}
    for result in results:
        if result.generated is None:
            continue
        name = result.generated.qualified_name
        if name in owners:
            result.error = PickleError(
                f"generated class {name} clashes with the one from {owners[name]}",
                source_file=str(result.path),
                feature=result.generated.feature_name,
            )
            result.generated = None
        else:
            owners[name] = result.path
    return results


def find_feature_files(features_dir: Path) -> list[Path]:
    """All feature files below a directory, in a stable order."""
    if not features_dir.is_dir():
        return []
    return sorted(
        p for p in features_dir.rglob("*")
        if p.is_file() and p.suffix.lower() == FEATURE_SUFFIX
    )


def inputs_hash(feature_files: list[Path], steps_file: Path, config: ProjectConfig) -> str:
    """Hash everything that influences the generated sources."""
    digest = sha256()
    settings = {
        "package_name": config.package_name,
        "runner": config.runner,
        "language": config.language,
        "output_dir": config.output_dir,
    }
    digest.update(json.dumps(settings, sort_keys=True).encode())
    for path in [*feature_files, steps_file]:
        digest.update(str(path.name).encode())
        digest.update(b"\0")
        if path.exists():
            digest.update(path.read_bytes())
        digest.update(b"\0")
    return digest.hexdigest()


def _manifest_path(project_root: Path) -> Path:
    return project_root / PICKLE_DIR / MANIFEST_FILE


def load_manifest(project_root: Path) -> dict:
    path = _manifest_path(project_root)
    if not path.exists():
        return {}
    return json.loads(path.read_text())


def save_manifest(project_root: Path, digest: str, files: list[Path]) -> Path:
    path = _manifest_path(project_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {"hash": digest, "files": sorted(str(f) for f in files)}
    path.write_text(json.dumps(data, indent=2) + "\n")
    return path


def _project_inputs(project_root: Path, config: ProjectConfig) -> tuple[list[Path], Path]:
    feature_files = find_feature_files(project_root / config.features_dir)
    return feature_files, project_root / config.steps_file


def _up_to_date(project_root: Path, manifest: dict, digest: str) -> bool:
    """The manifest matches ``digest`` and every file it lists still exists."""
    if manifest.get("hash") != digest:
        return False
    return all((project_root / name).exists() for name in manifest.get("files", []))


def is_stale(project_root: Path, config: ProjectConfig) -> bool:
    """True when generated sources do not reflect the current inputs."""
    feature_files, steps_file = _project_inputs(project_root, config)
    manifest = load_manifest(project_root)
    return not _up_to_date(project_root, manifest, inputs_hash(feature_files, steps_file, config))


def write_source(output_dir: Path, generated: GeneratedClass) -> Path:
    """Write one generated class atomically (temp file + rename)."""
    target = output_dir / Path(*generated.relative_path.parts)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp-", suffix=".java")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(generated.source)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return target


def generate_project(
    project_root: Path, config: ProjectConfig, force: bool = False, jobs: int = 1
) -> GenerateSummary:
    """Compile every feature of a project and write the generated sources.

    In strict mode the first failing feature aborts the run before anything
    is written. Otherwise failing features are reported in the summary and
    the remaining ones are still written. Catalog errors always abort.
    """
    feature_files, steps_file = _project_inputs(project_root, config)
    digest = inputs_hash(feature_files, steps_file, config)
    summary = GenerateSummary(feature_count=len(feature_files))

    manifest = load_manifest(project_root)
    if not force and _up_to_date(project_root, manifest, digest):
        logger.debug("Inputs unchanged (%s), skipping generation", digest[:12])
        summary.skipped = True
        return summary

    catalog = load_catalog(steps_file)
    results = compile_features(
        feature_files, catalog, config.package_name, config.runner, config.language, jobs=jobs,
    )
    summary.failures = [r for r in results if not r.ok]
    errors = [r.error for r in results if r.error is not None]
    if errors and config.strict_mode:
        raise errors[0]

    output_dir = project_root / config.output_dir
    for result in results:
        if result.generated is not None:
            summary.written.append(write_source(output_dir, result.generated))

    current = {str(p.relative_to(project_root)) for p in summary.written}
    for previous in manifest.get("files", []):
        if previous not in current:
            stale = project_root / previous
            if stale.exists():
                stale.unlink()
                summary.removed.append(stale)

    if summary.success:
        save_manifest(project_root, digest, [p.relative_to(project_root) for p in summary.written])
    logger.debug(
        "Generated %d class(es), %d failure(s)", len(summary.written), len(summary.failures)
    )
    return summary

"""Click CLI entry point for pickle-compiler."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from pickle_compiler import __version__
from pickle_compiler.config import (
    PICKLE_DIR,
    ensure_initialized,
    is_initialized,
    load_config,
    save_config,
    validate_config,
)
from pickle_compiler.errors import PickleError
from pickle_compiler.models import ProjectConfig

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="pickle-compiler")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Pickle: compile Gherkin features into JUnit test classes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _project(ctx: click.Context) -> tuple[Path, ProjectConfig] | None:
    """Load the project config, reporting and exiting when unusable."""
    project_root = Path.cwd()
    try:
        config = ensure_initialized(project_root)
    except RuntimeError as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)
        return None
    problems = validate_config(config)
    if problems:
        for problem in problems:
            click.echo(f"Config error: {problem}")
        ctx.exit(1)
        return None
    logger.debug("Project root %s, package %s", project_root, config.package_name)
    return project_root, config


@cli.command()
@click.option("--package", "package_name", default=None, help="Java package of generated classes")
@click.option("--features-dir", default=None, help="Directory holding .feature files")
@click.option("--steps-file", default=None, help="YAML file describing step definitions")
@click.option("--output-dir", default=None, help="Directory for generated sources")
@click.option("--runner", default=None, help="Fully qualified JUnit runner class")
@click.option("--language", default=None, help="Default Gherkin language")
@click.option("--strict/--lenient", "strict_mode", default=None,
              help="Abort on the first failing feature (default) or keep going")
@click.pass_context
def init(
    ctx: click.Context,
    package_name: str | None,
    features_dir: str | None,
    steps_file: str | None,
    output_dir: str | None,
    runner: str | None,
    language: str | None,
    strict_mode: bool | None,
) -> None:
    """Initialize a project for feature compilation."""
    project_root = Path.cwd()
    already = is_initialized(project_root)

    if already:
        click.echo("Warning: Project is already initialized. Updating configuration.")
        config = load_config(project_root)
    else:
        config = ProjectConfig()

    if package_name is not None:
        config.package_name = package_name
    if features_dir is not None:
        config.features_dir = features_dir
    if steps_file is not None:
        config.steps_file = steps_file
    if output_dir is not None:
        config.output_dir = output_dir
    if runner is not None:
        config.runner = runner
    if language is not None:
        config.language = language
    if strict_mode is not None:
        config.strict_mode = strict_mode

    problems = validate_config(config)
    if problems:
        for problem in problems:
            click.echo(f"Config error: {problem}")
        ctx.exit(1)
        return

    features_path = project_root / config.features_dir
    features_path.mkdir(parents=True, exist_ok=True)
    config_path = save_config(config, project_root)

    if already:
        click.echo("Configuration updated. Existing feature files preserved.")
    else:
        click.echo("Initialized pickle-compiler project.")
        click.echo(f"  Created: {features_path}/")
        click.echo(f"  Config:  {config_path}")
        if not (project_root / config.steps_file).exists():
            click.echo(f"  Note: describe your step definitions in {config.steps_file}")


@cli.command("parse")
@click.option("--inspect", is_flag=True, default=False, help="Display parsed features")
@click.pass_context
def parse_cmd(ctx: click.Context, inspect: bool) -> None:
    """Parse feature files and write the JSON IR."""
    from pickle_compiler.compiler import find_feature_files
    from pickle_compiler.formatter import feature_to_ir
    from pickle_compiler.parser import parse_feature_file

    loaded = _project(ctx)
    if loaded is None:
        return
    project_root, config = loaded

    feature_files = find_feature_files(project_root / config.features_dir)
    if not feature_files:
        click.echo("No feature files found.")
        return

    documents = []
    failed = 0
    for path in feature_files:
        try:
            documents.append(parse_feature_file(path, language=config.language))
        except PickleError as e:
            click.echo(f"Error: {e}")
            failed += 1

    ir = [feature_to_ir(doc) for doc in documents]
    ir_path = project_root / PICKLE_DIR / "ir.json"
    ir_path.parent.mkdir(exist_ok=True)
    ir_path.write_text(json.dumps(ir, indent=2) + "\n")

    scenario_count = sum(len(doc.scenarios) for doc in documents)
    click.echo(f"Parsed {scenario_count} scenario(s) from {len(documents)} file(s).")

    if inspect:
        for entry in ir:
            click.echo(f"\n  Feature: {entry['name']}")
            click.echo(f"  Source: {entry['source_file']}")
            for scenario in entry["scenarios"]:
                label = "Outline" if scenario["outline"] else "Scenario"
                click.echo(f"    {label}: {scenario['name']} (line {scenario['line_number']})")
                for step in scenario["steps"]:
                    click.echo(f"      {step['keyword']} {step['text']}")

    if failed:
        ctx.exit(1)


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Parse and resolve every feature without writing sources."""
    from pickle_compiler.catalog import load_catalog
    from pickle_compiler.compiler import find_feature_files
    from pickle_compiler.parser import parse_feature_file
    from pickle_compiler.resolver import resolve_feature

    loaded = _project(ctx)
    if loaded is None:
        return
    project_root, config = loaded

    try:
        catalog = load_catalog(project_root / config.steps_file)
    except PickleError as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)
        return

    feature_files = find_feature_files(project_root / config.features_dir)
    errors: list[PickleError] = []
    scenario_count = 0
    for path in feature_files:
        try:
            document = parse_feature_file(path, language=config.language)
            resolved = resolve_feature(document, catalog)
        except PickleError as e:
            errors.append(e)
            continue
        scenario_count += len(resolved.scenarios)

    for e in errors:
        click.echo(f"Error: {e}")

    click.echo(
        f"Checked {len(feature_files)} feature(s): "
        f"{scenario_count} test method(s), {len(errors)} error(s)."
    )
    if errors:
        ctx.exit(1)


@cli.command()
@click.option("--force", is_flag=True, default=False, help="Regenerate even if inputs are unchanged")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=1, help="Parallel workers")
@click.pass_context
def generate(ctx: click.Context, force: bool, jobs: int) -> None:
    """Compile all features and write the generated test classes."""
    from pickle_compiler.compiler import generate_project

    loaded = _project(ctx)
    if loaded is None:
        return
    project_root, config = loaded

    try:
        summary = generate_project(project_root, config, force=force, jobs=jobs)
    except PickleError as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)
        return

    if summary.skipped:
        click.echo("Generated sources are up to date. Use --force to regenerate.")
        return

    if not summary.feature_count:
        click.echo("No feature files found.")

    for failure in summary.failures:
        click.echo(f"Error: {failure.error}")

    output_dir = project_root / config.output_dir
    click.echo(f"Generated {len(summary.written)} test class(es) in {output_dir}/")
    for path in summary.written:
        click.echo(f"  {path.relative_to(output_dir)}")
    for path in summary.removed:
        click.echo(f"  removed {path.relative_to(project_root)}")

    if not summary.success:
        click.echo(f"\n{len(summary.failures)} feature(s) failed.")
        ctx.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the current state of the project."""
    from pickle_compiler.catalog import load_descriptors
    from pickle_compiler.compiler import find_feature_files, is_stale, load_manifest

    project_root = Path.cwd()
    if not is_initialized(project_root):
        click.echo("Project is not initialized. Run `pickle-compiler init`.")
        return

    config = load_config(project_root)
    click.echo(f"Package: {config.package_name or '(unset)'}")

    feature_files = find_feature_files(project_root / config.features_dir)
    click.echo(f"Feature files: {len(feature_files)}")

    steps_path = project_root / config.steps_file
    if steps_path.exists():
        try:
            steps, hooks = load_descriptors(steps_path)
        except PickleError as e:
            click.echo(f"Step definitions: invalid ({e.message})")
        else:
            click.echo(f"Step definitions: {len(steps)} step(s), {len(hooks)} hook(s)")
    else:
        click.echo("Step definitions: missing")

    manifest = load_manifest(project_root)
    if not manifest:
        click.echo("Generated sources: none")
    elif is_stale(project_root, config):
        click.echo(f"Generated sources: {len(manifest.get('files', []))} (stale)")
    else:
        click.echo(f"Generated sources: {len(manifest.get('files', []))} (up to date)")

"""Configuration management for pickle-compiler projects."""

from __future__ import annotations

import json
from pathlib import Path

from pickle_compiler.models import DEFAULT_RUNNER, ProjectConfig

PICKLE_DIR = ".pickle"
CONFIG_FILE = "config.json"


def _config_path(project_root: Path) -> Path:
    return project_root / PICKLE_DIR / CONFIG_FILE


def save_config(config: ProjectConfig, project_root: Path) -> Path:
    """Save project config to .pickle/config.json. Returns the config path."""
    pickle_dir = project_root / PICKLE_DIR
    pickle_dir.mkdir(parents=True, exist_ok=True)
    path = _config_path(project_root)
    data = {
        "version": config.version,
        "package_name": config.package_name,
        "features_dir": config.features_dir,
        "steps_file": config.steps_file,
        "output_dir": config.output_dir,
        "runner": config.runner,
        "language": config.language,
        "strict_mode": config.strict_mode,
    }
    path.write_text(json.dumps(data, indent=2) + "\n")
    return path


def load_config(project_root: Path) -> ProjectConfig:
    """Load project config from .pickle/config.json."""
    path = _config_path(project_root)
    if not path.exists():
        raise FileNotFoundError(f"No config found at {path}")
    data = json.loads(path.read_text())
    return ProjectConfig(
        version=data.get("version", "0.1.0"),
        package_name=data.get("package_name", ""),
        features_dir=data.get("features_dir", "features"),
        steps_file=data.get("steps_file", "steps.yaml"),
        output_dir=data.get("output_dir", "build/generated/source/pickle"),
        runner=data.get("runner", DEFAULT_RUNNER),
        language=data.get("language", "en"),
        strict_mode=data.get("strict_mode", True),
    )


def validate_config(config: ProjectConfig) -> list[str]:
    """Return a list of configuration problems (empty if valid)."""
    errors: list[str] = []
    if not config.package_name:
        errors.append("package_name must be set")
    elif not all(part.isidentifier() for part in config.package_name.split(".")):
        errors.append(f"package_name '{config.package_name}' is not a valid Java package")
    if not config.features_dir:
        errors.append("features_dir must be set")
    if not config.steps_file:
        errors.append("steps_file must be set")
    if not config.output_dir:
        errors.append("output_dir must be set")
    return errors


def is_initialized(project_root: Path) -> bool:
    """Check if the project is initialized for pickle-compiler."""
    return _config_path(project_root).exists()


def ensure_initialized(project_root: Path) -> ProjectConfig:
    """Ensure the project is initialized. Raises if not."""
    if not is_initialized(project_root):
        raise RuntimeError(
            "Project is not initialized. Run `pickle-compiler init` first."
        )
    return load_config(project_root)

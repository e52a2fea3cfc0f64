"""Shared test fixtures for pickle-compiler."""

import json
from pathlib import Path

import pytest

from pickle_compiler.catalog import HookDescriptor, StepCatalog, StepDescriptor, build_catalog


@pytest.fixture
def sample_feature_content() -> str:
    """Return a feature with a background, a scenario and an outline."""
    return """\
@app
Feature: Shopping cart
  Customers collect items before checkout.

  Background:
    Given the app is launched

  Scenario: Login succeeds
    When I log in as "alice"
    Then I see the home screen

  @slow
  Scenario Outline: Add items
    When I add <count> items
    Then the cart shows <count> items

    Examples:
      | count |
      | 1     |
      | 3     |
"""


@pytest.fixture
def steps_yaml_content() -> str:
    """Return step and hook descriptors matching sample_feature_content."""
    return """\
steps:
  - type: steps.Steps
    method: theAppIsLaunched
    pattern: the app is launched
  - type: steps.Steps
    method: iLogInAs
    pattern: 'I log in as "{}"'
    params: [String]
  - type: steps.Steps
    method: iSeeTheHomeScreen
    pattern: I see the home screen
  - type: steps.CartSteps
    method: iAddItems
    pattern: 'I add {:d} items'
    params: [int]
  - type: steps.CartSteps
    method: theCartShows
    pattern: '^the cart shows (\\d+) items$'
    params: [int]
hooks:
  - type: steps.Hooks
    method: resetDatabase
    timing: before
  - type: steps.Hooks
    method: warmCaches
    timing: before
    tags: "@slow"
  - type: steps.Hooks
    method: closeApp
    timing: after
"""


@pytest.fixture
def sample_steps() -> list[StepDescriptor]:
    return [
        StepDescriptor("steps.Steps", "theAppIsLaunched", "the app is launched"),
        StepDescriptor("steps.Steps", "iLogInAs", 'I log in as "{}"', ("String",)),
        StepDescriptor("steps.Steps", "iSeeTheHomeScreen", "I see the home screen"),
        StepDescriptor("steps.CartSteps", "iAddItems", "I add {:d} items", ("int",)),
        StepDescriptor(
            "steps.CartSteps", "theCartShows", r"^the cart shows (\d+) items$", ("int",)
        ),
    ]


@pytest.fixture
def sample_hooks() -> list[HookDescriptor]:
    return [
        HookDescriptor("steps.Hooks", "resetDatabase", "before"),
        HookDescriptor("steps.Hooks", "warmCaches", "before", tags="@slow"),
        HookDescriptor("steps.Hooks", "closeApp", "after"),
    ]


@pytest.fixture
def sample_catalog(
    sample_steps: list[StepDescriptor], sample_hooks: list[HookDescriptor]
) -> StepCatalog:
    return build_catalog(sample_steps, sample_hooks)


@pytest.fixture
def initialized_project(
    tmp_path: Path, sample_feature_content: str, steps_yaml_content: str
) -> Path:
    """Create a temporary project with pickle-compiler initialized."""
    pickle_dir = tmp_path / ".pickle"
    pickle_dir.mkdir()
    features_dir = tmp_path / "features"
    features_dir.mkdir()

    config = {
        "version": "0.1.0",
        "package_name": "com.example.app",
        "features_dir": "features",
        "steps_file": "steps.yaml",
        "output_dir": "build/generated",
        "runner": "android.support.test.runner.AndroidJUnit4",
        "language": "en",
        "strict_mode": True,
    }
    (pickle_dir / "config.json").write_text(json.dumps(config, indent=2))
    (tmp_path / "steps.yaml").write_text(steps_yaml_content)
    (features_dir / "cart.feature").write_text(sample_feature_content)
    return tmp_path

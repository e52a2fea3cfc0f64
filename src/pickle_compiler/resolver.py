"""Step resolution: bind every step of a feature to one step definition."""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from pickle_compiler.catalog import StepCatalog
from pickle_compiler.errors import (
    AmbiguousMatchError,
    EmptyScenarioError,
    NoMatchError,
    PickleError,
)
from pickle_compiler.models import (
    DataTable,
    DocString,
    FeatureDocument,
    ResolvedFeature,
    ResolvedScenario,
    ResolvedStep,
    Scenario,
    Step,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"<([^<>]+)>")

Example = tuple[tuple[str, str], ...]


def substitute(text: str, values: dict[str, str]) -> str:
    """Replace `<column>` placeholders; unknown names are left as written."""
    return PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), text)


def _substitute_step(step: Step, values: dict[str, str]) -> Step:
    argument = step.argument
    if isinstance(argument, DataTable):
        argument = replace(
            argument,
            rows=tuple(tuple(substitute(cell, values) for cell in row) for row in argument.rows),
        )
    elif isinstance(argument, DocString):
        argument = replace(argument, content=substitute(argument.content, values))
    return replace(step, text=substitute(step.text, values), argument=argument)


def expand_scenario(scenario: Scenario) -> list[tuple[Scenario, Example | None]]:
    """Expand an outline into one concrete scenario per example row.

    Plain scenarios are returned unchanged with no example values.
    """
    if not scenario.is_outline:
        return [(scenario, None)]

    expanded: list[tuple[Scenario, Example | None]] = []
    for examples in scenario.examples:
        tags = tuple(dict.fromkeys(scenario.tags + examples.tags))
        for values in examples.mappings():
            concrete = Scenario(
                name=substitute(scenario.name, values),
                tags=tags,
                steps=tuple(_substitute_step(s, values) for s in scenario.steps),
                line_number=scenario.line_number,
            )
            expanded.append((concrete, tuple(values.items())))
    return expanded


def resolve_step(step: Step, catalog: StepCatalog) -> ResolvedStep:
    """Bind a step to exactly one step definition.

    Raises NoMatchError when nothing matches and AmbiguousMatchError when
    more than one pattern matches.
    """
    matches = catalog.find(step.text, step.argument)
    if not matches:
        raise NoMatchError(step.text, line_number=step.line_number)
    if len(matches) > 1:
        raise AmbiguousMatchError(
            step.text,
            [definition.describe() for definition, _ in matches],
            line_number=step.line_number,
        )
    definition, arguments = matches[0]
    return ResolvedStep(step=step, definition=definition, arguments=arguments)


def resolve_scenario(
    scenario: Scenario,
    catalog: StepCatalog,
    background: tuple[Step, ...] = (),
    example: Example | None = None,
) -> ResolvedScenario:
    """Resolve a concrete (already expanded) scenario, background first."""
    steps = background + scenario.steps
    if not steps:
        raise EmptyScenarioError(scenario=scenario.name, line_number=scenario.line_number)

    try:
        resolved = tuple(resolve_step(step, catalog) for step in steps)
    except PickleError as exc:
        raise exc.with_context(scenario=scenario.name)

    before, after = catalog.hooks.applicable(scenario.tags)
    return ResolvedScenario(
        name=scenario.name,
        tags=scenario.tags,
        steps=resolved,
        before_hooks=before,
        after_hooks=after,
        example=example,
        line_number=scenario.line_number,
    )


def resolve_feature(document: FeatureDocument, catalog: StepCatalog) -> ResolvedFeature:
    """Resolve every scenario of a feature, failing on the first bad step."""
    background = document.background.steps if document.background else ()
    scenarios: list[ResolvedScenario] = []
    try:
        for scenario in document.scenarios:
            for concrete, example in expand_scenario(scenario):
                scenarios.append(resolve_scenario(concrete, catalog, background, example))
    except PickleError as exc:
        raise exc.with_context(source_file=document.source_file, feature=document.name)

    logger.debug(
        "Resolved feature '%s': %d test method(s)", document.name, len(scenarios)
    )
    return ResolvedFeature(document=document, scenarios=tuple(scenarios))

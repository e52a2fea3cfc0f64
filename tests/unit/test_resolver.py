"""Unit tests for pickle_compiler.resolver."""

import pytest

from pickle_compiler.catalog import StepCatalog, StepDescriptor, build_catalog
from pickle_compiler.errors import AmbiguousMatchError, EmptyScenarioError, NoMatchError
from pickle_compiler.models import DataTable, DocString, Step, StepKeyword
from pickle_compiler.parser import parse_feature_string
from pickle_compiler.resolver import (
    expand_scenario,
    resolve_feature,
    resolve_scenario,
    resolve_step,
    substitute,
)


class TestSubstitute:
    def test_known_placeholders(self) -> None:
        assert substitute("add <n> to <cart>", {"n": "3", "cart": "basket"}) == "add 3 to basket"

    def test_unknown_placeholder_kept(self) -> None:
        assert substitute("add <n> and <m>", {"n": "1"}) == "add 1 and <m>"


class TestExpandScenario:
    def test_plain_scenario_unchanged(self, sample_feature_content: str) -> None:
        scenario = parse_feature_string(sample_feature_content).scenarios[0]
        assert expand_scenario(scenario) == [(scenario, None)]

    def test_outline_rows(self, sample_feature_content: str) -> None:
        outline = parse_feature_string(sample_feature_content).scenarios[1]
        expanded = expand_scenario(outline)
        assert [s.steps[0].text for s, _ in expanded] == ["I add 1 items", "I add 3 items"]
        assert [example for _, example in expanded] == [(("count", "1"),), (("count", "3"),)]
        assert all(not s.is_outline for s, _ in expanded)

    def test_name_and_arguments_substituted(self) -> None:
        doc = parse_feature_string(
            "Feature: X\n"
            "  Scenario Outline: buy <item>\n"
            "    Given a list\n"
            "      | <item> |\n"
            "    And a note\n"
            '      """\n'
            "      about <item>\n"
            '      """\n'
            "    Examples:\n"
            "      | item  |\n"
            "      | apple |\n"
        )
        [(concrete, _)] = expand_scenario(doc.scenarios[0])
        assert concrete.name == "buy apple"
        assert concrete.steps[0].argument == DataTable(rows=(("apple",),))
        assert concrete.steps[1].argument == DocString("about apple")

    def test_examples_tags_merged(self) -> None:
        doc = parse_feature_string(
            "@f\nFeature: X\n  Scenario Outline: Y\n    Given <n>\n"
            "    @fast\n    Examples:\n      | n |\n      | 1 |\n"
            "    @slow\n    Examples:\n      | n |\n      | 2 |\n"
        )
        expanded = expand_scenario(doc.scenarios[0])
        assert [s.tags for s, _ in expanded] == [("@f", "@fast"), ("@f", "@slow")]


class TestResolveStep:
    def test_single_match(self, sample_catalog: StepCatalog) -> None:
        step = Step(StepKeyword.WHEN, 'I log in as "alice"')
        resolved = resolve_step(step, sample_catalog)
        assert resolved.definition.method == "iLogInAs"
        assert resolved.arguments == ("alice",)

    def test_no_match(self, sample_catalog: StepCatalog) -> None:
        with pytest.raises(NoMatchError) as exc_info:
            resolve_step(Step(StepKeyword.GIVEN, "nothing", line_number=7), sample_catalog)
        assert exc_info.value.step_text == "nothing"
        assert exc_info.value.line_number == 7

    def test_keyword_does_not_affect_matching(self, sample_catalog: StepCatalog) -> None:
        step = Step(StepKeyword.THEN, "the app is launched")
        assert resolve_step(step, sample_catalog).definition.method == "theAppIsLaunched"

    def test_ambiguous(self) -> None:
        catalog = build_catalog([
            StepDescriptor("steps.A", "one", "I have {}", ("String",)),
            StepDescriptor("steps.B", "two", "^I have (\\d+)$", ("int",)),
        ])
        with pytest.raises(AmbiguousMatchError) as exc_info:
            resolve_step(Step(StepKeyword.GIVEN, "I have 3"), catalog)
        assert len(exc_info.value.candidates) == 2
        assert exc_info.value.candidates[0].startswith("steps.A.one")


class TestResolveScenario:
    def test_background_first(self, sample_feature_content: str, sample_catalog: StepCatalog) -> None:
        doc = parse_feature_string(sample_feature_content)
        assert doc.background is not None
        resolved = resolve_scenario(doc.scenarios[0], sample_catalog, doc.background.steps)
        assert [s.definition.method for s in resolved.steps] == [
            "theAppIsLaunched", "iLogInAs", "iSeeTheHomeScreen",
        ]

    def test_hooks_attached(self, sample_feature_content: str, sample_catalog: StepCatalog) -> None:
        doc = parse_feature_string(sample_feature_content)
        plain = resolve_scenario(doc.scenarios[0], sample_catalog)
        assert [h.method for h in plain.before_hooks] == ["resetDatabase"]
        assert [h.method for h in plain.after_hooks] == ["closeApp"]

        [(slow, example)] = expand_scenario(doc.scenarios[1])[:1]
        resolved = resolve_scenario(slow, sample_catalog, example=example)
        assert [h.method for h in resolved.before_hooks] == ["resetDatabase", "warmCaches"]
        assert resolved.example == (("count", "1"),)

    def test_empty_scenario(self, sample_catalog: StepCatalog) -> None:
        doc = parse_feature_string("Feature: X\n  Scenario: nothing\n")
        with pytest.raises(EmptyScenarioError) as exc_info:
            resolve_scenario(doc.scenarios[0], sample_catalog)
        assert exc_info.value.scenario == "nothing"

    def test_empty_scenario_with_background_is_allowed(self, sample_catalog: StepCatalog) -> None:
        doc = parse_feature_string(
            "Feature: X\n  Background:\n    Given the app is launched\n  Scenario: only setup\n"
        )
        assert doc.background is not None
        resolved = resolve_scenario(doc.scenarios[0], sample_catalog, doc.background.steps)
        assert len(resolved.steps) == 1


class TestResolveFeature:
    def test_method_count(self, sample_feature_content: str, sample_catalog: StepCatalog) -> None:
        resolved = resolve_feature(parse_feature_string(sample_feature_content), sample_catalog)
        assert [s.name for s in resolved.scenarios] == ["Login succeeds", "Add items", "Add items"]
        assert resolved.name == "Shopping cart"

    def test_error_context(self, sample_catalog: StepCatalog) -> None:
        doc = parse_feature_string(
            "Feature: Broken\n  Scenario: Bad step\n    Given an unknown step\n",
            source_file="features/broken.feature",
        )
        with pytest.raises(NoMatchError) as exc_info:
            resolve_feature(doc, sample_catalog)
        error = exc_info.value
        assert error.feature == "Broken"
        assert error.scenario == "Bad step"
        assert error.source_file == "features/broken.feature"
        assert str(error) == (
            "features/broken.feature:3: no step definition matches "
            "'an unknown step' (scenario: 'Bad step')"
        )

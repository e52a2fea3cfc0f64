"""Feature parser.

Feature text is parsed by gherkin-official into its AST (a nested dict of
``feature`` -> ``children`` -> ``background`` / ``scenario`` / ``rule``),
which is then folded into a FeatureDocument:

    feature tags      -> merged into every scenario's tags
    rule              -> its scenarios are flattened into the feature; rule
                         tags and rule background steps apply to them only
    And / But / *     -> take the class of the previous step

Parser failures are reported as ParseError(line, expected, found).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from gherkin.errors import (
    CompositeParserException,
    NoSuchLanguageException,
    ParserException,
    UnexpectedEOFException,
)
from gherkin.parser import Parser
from gherkin.token_matcher import TokenMatcher
from gherkin.token_scanner import TokenScanner

from pickle_compiler.errors import ParseError
from pickle_compiler.keywords import (
    DEFAULT_LANGUAGE,
    UnknownLanguageError,
    dialect_for,
    step_keyword,
)
from pickle_compiler.models import (
    Background,
    DataTable,
    DocString,
    Examples,
    FeatureDocument,
    Scenario,
    Step,
    StepKeyword,
)

logger = logging.getLogger(__name__)

# Readable names for the gherkin token types listed in "expected" errors.
TOKEN_NAMES = {
    "EOF": "end of file",
    "Language": "a language header",
    "TagLine": "tags",
    "FeatureLine": "'Feature:'",
    "RuleLine": "'Rule:'",
    "BackgroundLine": "'Background:'",
    "ScenarioLine": "'Scenario:'",
    "ExamplesLine": "'Examples:'",
    "StepLine": "a step",
    "DocStringSeparator": "a doc string delimiter",
    "TableRow": "a table row",
    "Other": "text",
}

# gherkin errors that carry a fixed message instead of a token list.
MESSAGE_EXPECTATIONS = {
    "inconsistent cell count within the table": "the same number of cells in every table row",
    "A tag may not contain whitespace": "tags without whitespace",
}

_LOCATION_PREFIX_RE = re.compile(r"^\(\d+:\d+\): ")
_EXPECTED_RE = re.compile(r"expected: (?P<expected>#\w+(?:, #\w+)*)(?:, got '(?P<found>.*)')?$", re.S)
_LANGUAGE_RE = re.compile(r"Language not supported: (?P<language>\S+)")


def _describe_expected(token_types: str) -> str:
    names = [name.lstrip("#") for name in token_types.split(", ")]
    described = [TOKEN_NAMES[name] for name in names if name in TOKEN_NAMES]
    return " or ".join(dict.fromkeys(described)) or "valid Gherkin"


def _parse_error(
    error: ParserException, lines: list[str], source_file: str | None
) -> ParseError:
    """Translate one gherkin parser error into a ParseError."""
    line_number = error.location["line"]
    message = _LOCATION_PREFIX_RE.sub("", error.args[0])
    source_line = lines[line_number - 1].strip() if 0 < line_number <= len(lines) else ""

    if isinstance(error, NoSuchLanguageException):
        match = _LANGUAGE_RE.search(message)
        found = match.group("language") if match else source_line
        return ParseError(line_number, "a supported language code", found, source_file=source_file)
    match = _EXPECTED_RE.search(message)
    if match is None:
        if message not in MESSAGE_EXPECTATIONS:
            logger.debug("Unrecognized gherkin error: %s", message)
        expected = MESSAGE_EXPECTATIONS.get(message, "valid Gherkin")
        return ParseError(line_number, expected, source_line, source_file=source_file)
    if isinstance(error, UnexpectedEOFException):
        found = "end of file"
    else:
        found = match.group("found") or source_line
    return ParseError(
        line_number, _describe_expected(match.group("expected")), found, source_file=source_file,
    )


class FeatureBuilder:
    """Folds a gherkin AST into a FeatureDocument."""

    def __init__(self, source_file: str | None = None) -> None:
        self.source_file = source_file

    def build(self, feature: dict[str, Any]) -> FeatureDocument:
        language = feature.get("language", DEFAULT_LANGUAGE)
        tags = self._tags(feature)

        background: Background | None = None
        scenarios: list[Scenario] = []
        for child in feature.get("children", []):
            if "background" in child:
                background = self._background(child["background"])
            elif "scenario" in child:
                scenarios.append(self._scenario(child["scenario"], tags, (), language))
            elif "rule" in child:
                scenarios.extend(self._rule(child["rule"], tags, language))

        return FeatureDocument(
            name=feature.get("name", ""),
            tags=tags,
            background=background,
            scenarios=tuple(scenarios),
            description=_description(feature.get("description", "")),
            language=language,
            keyword=feature.get("keyword", ""),
            source_file=self.source_file,
            line_number=feature["location"]["line"],
        )

    def _rule(
        self, rule: dict[str, Any], feature_tags: tuple[str, ...], language: str
    ) -> list[Scenario]:
        tags = _merge_tags(feature_tags, self._tags(rule))
        steps: tuple[Step, ...] = ()
        scenarios = []
        for child in rule.get("children", []):
            if "background" in child:
                steps = self._steps(child["background"].get("steps", []))
            elif "scenario" in child:
                scenarios.append(self._scenario(child["scenario"], tags, steps, language))
        return scenarios

    def _background(self, background: dict[str, Any]) -> Background:
        return Background(
            steps=self._steps(background.get("steps", [])),
            name=background.get("name", ""),
            keyword=background.get("keyword", ""),
            line_number=background["location"]["line"],
        )

    def _scenario(
        self,
        scenario: dict[str, Any],
        inherited_tags: tuple[str, ...],
        leading_steps: tuple[Step, ...],
        language: str,
    ) -> Scenario:
        name = scenario.get("name", "")
        keyword = scenario.get("keyword", "")
        line_number = scenario["location"]["line"]
        examples = tuple(self._examples(table) for table in scenario.get("examples", []))

        if not examples and keyword in dialect_for(language).scenario_outline_keywords:
            raise ParseError(
                line_number, f"'Examples:' for scenario outline '{name}'",
                source_file=self.source_file,
            )

        return Scenario(
            name=name,
            tags=_merge_tags(inherited_tags, self._tags(scenario)),
            steps=leading_steps + self._steps(scenario.get("steps", [])),
            examples=examples,
            is_outline=bool(examples),
            keyword=keyword,
            line_number=line_number,
        )

    def _examples(self, table: dict[str, Any]) -> Examples:
        line_number = table["location"]["line"]
        header = table.get("tableHeader")
        if header is None:
            raise ParseError(line_number, "examples table header row", source_file=self.source_file)

        columns = _cells(header)
        if len(set(columns)) != len(columns):
            raise ParseError(
                header["location"]["line"], "unique examples column names",
                "| " + " | ".join(columns) + " |", source_file=self.source_file,
            )

        return Examples(
            columns=columns,
            rows=tuple(_cells(row) for row in table.get("tableBody", [])),
            name=table.get("name", ""),
            tags=self._tags(table),
            keyword=table.get("keyword", ""),
            line_number=line_number,
        )

    def _steps(self, steps: list[dict[str, Any]]) -> tuple[Step, ...]:
        result: list[Step] = []
        previous = StepKeyword.GIVEN
        for step in steps:
            keyword = step_keyword(step.get("keywordType", "Unknown"), previous)
            previous = keyword

            argument: DataTable | DocString | None = None
            if "dataTable" in step:
                table = step["dataTable"]
                argument = DataTable(
                    rows=tuple(_cells(row) for row in table.get("rows", [])),
                    line_number=table["location"]["line"],
                )
            elif "docString" in step:
                doc = step["docString"]
                argument = DocString(
                    content=doc.get("content", ""),
                    content_type=doc.get("mediaType", ""),
                    line_number=doc["location"]["line"],
                )

            result.append(Step(
                keyword=keyword,
                text=step.get("text", "").strip(),
                argument=argument,
                literal_keyword=step.get("keyword", "").strip(),
                line_number=step["location"]["line"],
            ))
        return tuple(result)

    @staticmethod
    def _tags(node: dict[str, Any]) -> tuple[str, ...]:
        return _merge_tags((), tuple(tag.get("name", "") for tag in node.get("tags", [])))


def _cells(row: dict[str, Any]) -> tuple[str, ...]:
    return tuple(cell.get("value", "") for cell in row.get("cells", []))


def _description(text: str) -> str:
    return "\n".join(line.strip() for line in text.splitlines() if line.strip())


def _merge_tags(first: tuple[str, ...], second: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(first + second))


def parse_feature_string(
    content: str,
    source_file: str | None = None,
    language: str = DEFAULT_LANGUAGE,
) -> FeatureDocument:
    """Parse feature text into a FeatureDocument.

    ``language`` is used unless the text starts with a `# language:` header.
    """
    try:
        dialect_for(language)
    except UnknownLanguageError:
        raise ParseError(
            1, "a supported language code", language, source_file=source_file
        ) from None

    content = content.lstrip("\ufeff")
    lines = content.splitlines()
    try:
        ast = Parser().parse(TokenScanner(content), TokenMatcher(language))
    except CompositeParserException as exc:
        for error in exc.errors[1:]:
            logger.debug("Additional parse error in %s: %s", source_file or "<string>", error)
        raise _parse_error(exc.errors[0], lines, source_file) from exc

    feature = ast.get("feature")
    if feature is None:
        raise ParseError(len(lines) + 1, "'Feature:'", "end of file", source_file=source_file)

    document = FeatureBuilder(source_file).build(feature)
    logger.debug(
        "Parsed feature '%s' with %d scenario(s) from %s",
        document.name, len(document.scenarios), source_file or "<string>",
    )
    return document


def parse_feature_file(path: Path, language: str = DEFAULT_LANGUAGE) -> FeatureDocument:
    """Parse a feature file into a FeatureDocument."""
    content = path.read_text(encoding="utf-8")
    return parse_feature_string(content, source_file=str(path), language=language)

"""Render a FeatureDocument back to canonical Gherkin text and to JSON IR."""

from __future__ import annotations

from typing import Any

from gherkin.dialect import Dialect

from pickle_compiler.keywords import DEFAULT_LANGUAGE
from pickle_compiler.models import (
    Background,
    DataTable,
    DocString,
    Examples,
    FeatureDocument,
    Scenario,
    Step,
)


def _escape_cell(cell: str) -> str:
    return cell.replace("\\", "\\\\").replace("|", "\\|").replace("\n", "\\n")


def render_table(rows: tuple[tuple[str, ...], ...], indent: str) -> list[str]:
    escaped = [[_escape_cell(cell) for cell in row] for row in rows]
    widths = [max(len(row[i]) for row in escaped) for i in range(len(escaped[0]))] if escaped else []
    return [
        indent + "| " + " | ".join(cell.ljust(w) for cell, w in zip(row, widths)) + " |"
        for row in escaped
    ]


def render_doc_string(doc: DocString, indent: str) -> list[str]:
    fence = '"""'
    content = doc.content
    if '"""' in content:
        if "```" not in content:
            fence = "```"
        else:
            content = content.replace('"""', '\\"\\"\\"')
    lines = [f"{indent}{fence}{doc.content_type}"]
    lines.extend(f"{indent}{line}" if line else "" for line in content.split("\n"))
    lines.append(f"{indent}{fence}")
    return lines


class FeatureRenderer:
    """Serializes a document structure; comments and spacing are normalized."""

    def __init__(self, document: FeatureDocument) -> None:
        self.document = document
        language = document.language or DEFAULT_LANGUAGE
        self.dialect = Dialect.for_name(language) or Dialect.for_name(DEFAULT_LANGUAGE)

    def render(self) -> str:
        doc = self.document
        lines: list[str] = []
        if doc.language and doc.language != DEFAULT_LANGUAGE:
            lines.append(f"# language: {doc.language}")
        if doc.tags:
            lines.append(" ".join(doc.tags))
        keyword = doc.keyword or self.dialect.feature_keywords[0].strip()
        lines.append(f"{keyword}: {doc.name}".rstrip())
        for line in doc.description.split("\n") if doc.description else []:
            lines.append(f"  {line}")

        if doc.background is not None:
            lines.append("")
            lines.extend(self._background(doc.background))

        for scenario in doc.scenarios:
            lines.append("")
            lines.extend(self._scenario(scenario))
        return "\n".join(lines) + "\n"

    def _background(self, background: Background) -> list[str]:
        keyword = background.keyword or self.dialect.background_keywords[0].strip()
        lines = [f"  {keyword}: {background.name}".rstrip()]
        for step in background.steps:
            lines.extend(self._step(step))
        return lines

    def _scenario(self, scenario: Scenario) -> list[str]:
        lines: list[str] = []
        own_tags = [t for t in scenario.tags if t not in self.document.tags]
        if own_tags:
            lines.append("  " + " ".join(own_tags))
        if scenario.keyword:
            keyword = scenario.keyword
        elif scenario.is_outline:
            keyword = self.dialect.scenario_outline_keywords[0].strip()
        else:
            keyword = self.dialect.scenario_keywords[0].strip()
        lines.append(f"  {keyword}: {scenario.name}".rstrip())
        for step in scenario.steps:
            lines.extend(self._step(step))
        for examples in scenario.examples:
            lines.append("")
            lines.extend(self._examples(examples))
        return lines

    def _examples(self, examples: Examples) -> list[str]:
        lines: list[str] = []
        if examples.tags:
            lines.append("    " + " ".join(examples.tags))
        keyword = examples.keyword or self.dialect.examples_keywords[0].strip()
        lines.append(f"    {keyword}: {examples.name}".rstrip())
        lines.extend(render_table((examples.columns,) + examples.rows, "      "))
        return lines

    def _step(self, step: Step) -> list[str]:
        keyword = step.literal_keyword or step.keyword.value
        separator = "" if keyword.endswith(" ") else " "
        lines = [f"    {keyword}{separator}{step.text}"]
        if isinstance(step.argument, DataTable):
            lines.extend(render_table(step.argument.rows, "      "))
        elif isinstance(step.argument, DocString):
            lines.extend(render_doc_string(step.argument, "      "))
        return lines


def render_feature(document: FeatureDocument) -> str:
    """Render a document as canonical feature text."""
    return FeatureRenderer(document).render()


def _step_ir(step: Step) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "keyword": step.keyword.value,
        "text": step.text,
        "line": step.line_number,
    }
    if isinstance(step.argument, DataTable):
        entry["data_table"] = [list(row) for row in step.argument.rows]
    elif isinstance(step.argument, DocString):
        entry["doc_string"] = {
            "content": step.argument.content,
            "content_type": step.argument.content_type,
        }
    return entry


def feature_to_ir(document: FeatureDocument) -> dict[str, Any]:
    """Produce a JSON-ready view of a parsed feature."""
    return {
        "name": document.name,
        "source_file": document.source_file,
        "language": document.language,
        "tags": list(document.tags),
        "background": (
            [_step_ir(s) for s in document.background.steps] if document.background else None
        ),
        "scenarios": [
            {
                "name": s.name,
                "line_number": s.line_number,
                "tags": list(s.tags),
                "outline": s.is_outline,
                "steps": [_step_ir(step) for step in s.steps],
                "examples": [
                    {
                        "name": e.name,
                        "tags": list(e.tags),
                        "columns": list(e.columns),
                        "rows": [list(r) for r in e.rows],
                    }
                    for e in s.examples
                ],
            }
            for s in document.scenarios
        ],
    }

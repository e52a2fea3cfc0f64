"""Core data models for pickle-compiler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

DEFAULT_RUNNER = "android.support.test.runner.AndroidJUnit4"


class StepKeyword(Enum):
    """Semantic class of a step after And/But normalization."""

    GIVEN = "Given"
    WHEN = "When"
    THEN = "Then"


@dataclass(frozen=True)
class DataTable:
    """A table argument attached to a step."""

    rows: tuple[tuple[str, ...], ...]
    line_number: int = field(default=0, compare=False)

    @property
    def width(self) -> int:
        return len(self.rows[0]) if self.rows else 0


@dataclass(frozen=True)
class DocString:
    """A multi-line string argument attached to a step."""

    content: str
    content_type: str = ""
    line_number: int = field(default=0, compare=False)


StepArgument = Union[DataTable, DocString]


@dataclass(frozen=True)
class Step:
    """A single step line.

    Equality is structural: two steps with the same keyword class, text and
    argument are interchangeable no matter where they were written.
    """

    keyword: StepKeyword
    text: str
    argument: StepArgument | None = None
    literal_keyword: str = field(default="", compare=False)
    line_number: int = field(default=0, compare=False)


@dataclass(frozen=True)
class Examples:
    """One `Examples:` block of a scenario outline."""

    columns: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    name: str = ""
    tags: tuple[str, ...] = ()
    keyword: str = field(default="", compare=False)
    line_number: int = field(default=0, compare=False)

    def mappings(self) -> list[dict[str, str]]:
        """Return each row as a column -> value mapping."""
        return [dict(zip(self.columns, row)) for row in self.rows]


@dataclass(frozen=True)
class Background:
    steps: tuple[Step, ...] = ()
    name: str = ""
    keyword: str = field(default="", compare=False)
    line_number: int = field(default=0, compare=False)


@dataclass(frozen=True)
class Scenario:
    """A scenario or scenario outline.

    ``tags`` is the union of the feature tags, the enclosing rule's tags and
    the scenario's own tags, in that order.
    """

    name: str
    tags: tuple[str, ...] = ()
    steps: tuple[Step, ...] = ()
    examples: tuple[Examples, ...] = ()
    is_outline: bool = False
    keyword: str = field(default="", compare=False)
    line_number: int = field(default=0, compare=False)


@dataclass(frozen=True)
class FeatureDocument:
    """A parsed feature file."""

    name: str
    tags: tuple[str, ...] = ()
    background: Background | None = None
    scenarios: tuple[Scenario, ...] = ()
    description: str = ""
    language: str = "en"
    keyword: str = field(default="", compare=False)
    source_file: str | None = field(default=None, compare=False)
    line_number: int = field(default=0, compare=False)


class PatternKind(Enum):
    """How a step definition's pattern text is matched."""

    LITERAL = "literal"
    PARSE = "parse"
    REGEX = "regex"


@dataclass(frozen=True)
class StepDefinitionRef:
    """A step-definition method on a discovered type."""

    owner: str  # fully qualified type name, e.g. "steps.LoginSteps"
    method: str
    pattern: str
    kind: PatternKind = PatternKind.LITERAL
    param_types: tuple[str, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.owner}.{self.method}"

    def describe(self) -> str:
        params = ", ".join(self.param_types)
        return f"{self.qualified_name}({params}) <- {self.pattern!r}"


class HookTiming(Enum):
    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class HookRef:
    """A setup or teardown method, optionally restricted by a tag expression."""

    owner: str
    method: str
    timing: HookTiming
    tag_expression: str | None = None
    order: int = 0
    position: int = 0

    @property
    def qualified_name(self) -> str:
        return f"{self.owner}.{self.method}"

    @property
    def rank(self) -> tuple[int, int]:
        return (self.order, self.position)


ArgumentValue = Union[str, int, float, bool, DataTable, DocString]


@dataclass(frozen=True)
class ResolvedStep:
    """A step bound to exactly one step definition and its argument values."""

    step: Step
    definition: StepDefinitionRef
    arguments: tuple[ArgumentValue, ...] = ()


@dataclass(frozen=True)
class ResolvedScenario:
    """A concrete scenario ready for code generation.

    ``steps`` already includes the background prefix. ``example`` holds the
    row values for scenarios expanded from an outline.
    """

    name: str
    tags: tuple[str, ...]
    steps: tuple[ResolvedStep, ...]
    before_hooks: tuple[HookRef, ...] = ()
    after_hooks: tuple[HookRef, ...] = ()
    example: tuple[tuple[str, str], ...] | None = None
    line_number: int = 0


@dataclass(frozen=True)
class ResolvedFeature:
    document: FeatureDocument
    scenarios: tuple[ResolvedScenario, ...]

    @property
    def name(self) -> str:
        return self.document.name


@dataclass
class ProjectConfig:
    """Project configuration for pickle-compiler."""

    version: str = "0.1.0"
    package_name: str = ""
    features_dir: str = "features"
    steps_file: str = "steps.yaml"
    output_dir: str = "build/generated/source/pickle"
    runner: str = DEFAULT_RUNNER
    language: str = "en"
    strict_mode: bool = True

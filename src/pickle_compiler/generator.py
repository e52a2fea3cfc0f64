"""JUnit test-class generation from resolved features."""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from pickle_compiler.models import (
    DEFAULT_RUNNER,
    ArgumentValue,
    DataTable,
    DocString,
    HookRef,
    ResolvedFeature,
    ResolvedScenario,
    ResolvedStep,
)

logger = logging.getLogger(__name__)

INDENT = "    "
WORD_RE = re.compile(r"[^\W_]+")

JAVA_KEYWORDS = frozenset("""
    abstract assert boolean break byte case catch char class const continue
    default do double else enum extends false final finally float for goto if
    implements import instanceof int interface long native new null package
    private protected public return short static strictfp super switch
    synchronized this throw throws transient true try void volatile while
    var yield record
""".split())

# Method names taken by the generated fixture methods.
RESERVED_METHODS = frozenset({"setUp", "tearDown"})

JUNIT_TEST = "org.junit.Test"
JUNIT_BEFORE = "org.junit.Before"
JUNIT_AFTER = "org.junit.After"
JUNIT_RUN_WITH = "org.junit.runner.RunWith"
JAVA_THROWABLE = "java.lang.Throwable"
JAVA_ARRAYS = "java.util.Arrays"


@dataclass(frozen=True)
class GeneratedClass:
    """Source text of one generated test class."""

    package_name: str
    class_name: str
    source: str
    feature_name: str = ""

    @property
    def qualified_name(self) -> str:
        if self.package_name:
            return f"{self.package_name}.{self.class_name}"
        return self.class_name

    @property
    def relative_path(self) -> PurePosixPath:
        parts = self.package_name.split(".") if self.package_name else []
        return PurePosixPath(*parts, f"{self.class_name}.java")


def _words(text: str) -> list[str]:
    return WORD_RE.findall(text)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def class_name_for(feature_name: str) -> str:
    """Turn a feature name into a test class name: "A feature" -> AFeatureTest."""
    name = "".join(_capitalize(w) for w in _words(feature_name))
    if not name or not name[0].isalpha():
        name = "Feature" + name
    return f"{name}Test"


def method_base_name(scenario_name: str) -> str:
    """Turn a scenario name into a camelCase Java method name."""
    words = _words(scenario_name)
    if not words:
        return "scenario"
    name = words[0][:1].lower() + words[0][1:] + "".join(_capitalize(w) for w in words[1:])
    if not name[0].isalpha() or name in JAVA_KEYWORDS or name in RESERVED_METHODS:
        name = "scenario" + _capitalize(name)
    return name


def method_names(scenarios: list[ResolvedScenario] | tuple[ResolvedScenario, ...]) -> list[str]:
    """Assign collision-free method names.

    A base name used by more than one scenario gets a positional suffix on
    every occurrence (`name_1`, `name_2`, ...). Base names never contain an
    underscore, so suffixed names cannot collide with unsuffixed ones.
    """
    bases = [method_base_name(s.name) for s in scenarios]
    counts = Counter(bases)
    seen: Counter[str] = Counter()
    names: list[str] = []
    for base in bases:
        if counts[base] == 1:
            names.append(base)
            continue
        seen[base] += 1
        names.append(f"{base}_{seen[base]}")
    return names


def field_name_for(owner: str) -> str:
    return re.sub(r"[^\w]", "_", owner)


def field_names(owners: list[str]) -> dict[str, str]:
    """Map each owner type to a distinct field name.

    Owners whose sanitized names clash (`a.b_c` and `a_b.c`) get a numeric
    suffix in declaration order, skipping any name another owner already has.
    """
    bases = {owner: field_name_for(owner) for owner in owners}
    counts = Counter(bases.values())
    taken = {base for base in bases.values() if counts[base] == 1}
    names: dict[str, str] = {}
    for owner in owners:
        base = bases[owner]
        if counts[base] == 1:
            names[owner] = base
            continue
        index = 1
        while f"{base}_{index}" in taken:
            index += 1
        names[owner] = f"{base}_{index}"
        taken.add(names[owner])
    return names


def java_string(value: str) -> str:
    """Render a Java string literal."""
    out = ['"']
    for ch in value:
        if ch == "\\":
            out.append("\\\\")
        elif ch == '"':
            out.append('\\"')
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\{ord(ch):03o}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def _java_floating(value: float, suffix: str, boxed: str) -> str:
    if math.isnan(value):
        return f"{boxed}.NaN"
    if math.isinf(value):
        return f"{boxed}.{'POSITIVE' if value > 0 else 'NEGATIVE'}_INFINITY"
    return f"{value!r}{suffix}"


class _TypeNames:
    """Decides how each referenced type is spelled and which ones are imported."""

    def __init__(self, package_name: str, class_name: str, qualified: list[str]) -> None:
        self.package_name = package_name
        self._spelling: dict[str, str] = {}
        self.imports: list[str] = []

        taken = {class_name}
        for name in sorted(set(qualified)):
            source_name = name.replace("$", ".")
            package, _, simple = source_name.rpartition(".")
            if not package:
                self._spelling[name] = source_name
            elif simple in taken:
                self._spelling[name] = source_name
            else:
                taken.add(simple)
                self._spelling[name] = simple
                if package != package_name:
                    self.imports.append(source_name)

    def __getitem__(self, qualified: str) -> str:
        return self._spelling[qualified]


class JUnitGenerator:
    """Generates a JUnit 4 test class per resolved feature."""

    def __init__(self, package_name: str, runner: str = DEFAULT_RUNNER) -> None:
        self.package_name = package_name
        self.runner = runner

    def generate_test_class(self, feature: ResolvedFeature) -> GeneratedClass:
        """Render the complete, deterministic source of one test class."""
        class_name = class_name_for(feature.name)
        scenarios = list(feature.scenarios)
        names = method_names(scenarios)
        owners = self._owners(scenarios)
        shared = self._shared_hooks(scenarios)
        uses_tables = any(
            isinstance(value, DataTable)
            for scenario in scenarios
            for step in scenario.steps
            for value in step.arguments
        )

        referenced = [self.runner, JUNIT_RUN_WITH, JUNIT_TEST, JAVA_THROWABLE, *owners]
        if shared is not None and shared[0]:
            referenced.append(JUNIT_BEFORE)
        if shared is not None and shared[1]:
            referenced.append(JUNIT_AFTER)
        if uses_tables:
            referenced.append(JAVA_ARRAYS)
        types = _TypeNames(self.package_name, class_name, referenced)
        fields = field_names(owners)

        lines: list[str] = []
        source_name = Path(feature.document.source_file).name if feature.document.source_file else ""
        origin = f" from {source_name}" if source_name else ""
        lines.append(f"// Generated by pickle-compiler{origin}. DO NOT EDIT.")
        if self.package_name:
            lines.append(f"package {self.package_name};")
        lines.append("")
        for name in sorted(types.imports):
            lines.append(f"import {name};")
        lines.append("")
        lines.append(f"@{types[JUNIT_RUN_WITH]}({types[self.runner]}.class)")
        lines.append(f"public class {class_name} {{")

        if owners:
            lines.append("")
        for owner in owners:
            type_name = types[owner]
            lines.append(f"{INDENT}private final {type_name} {fields[owner]} = new {type_name}();")

        if shared is not None:
            before, after = shared
            if before:
                lines.append("")
                lines.append(f"{INDENT}@{types[JUNIT_BEFORE]}")
                lines.append(f"{INDENT}public void setUp() throws {types[JAVA_THROWABLE]} {{")
                lines.extend(self._hook_calls(before, fields, 2))
                lines.append(f"{INDENT}}}")
            if after:
                lines.append("")
                lines.append(f"{INDENT}@{types[JUNIT_AFTER]}")
                lines.append(f"{INDENT}public void tearDown() throws {types[JAVA_THROWABLE]} {{")
                lines.extend(self._after_calls(after, fields, 2))
                lines.append(f"{INDENT}}}")

        for scenario, method in zip(scenarios, names):
            lines.append("")
            lines.extend(self._test_method(scenario, method, fields, types, wrap_hooks=shared is None))

        lines.append("}")
        logger.debug("Generated %s with %d test method(s)", class_name, len(scenarios))
        return GeneratedClass(
            package_name=self.package_name,
            class_name=class_name,
            source="\n".join(lines) + "\n",
            feature_name=feature.name,
        )

    def _owners(self, scenarios: list[ResolvedScenario]) -> list[str]:
        """Step-bearing types in order of first reference, steps before hooks."""
        owners: dict[str, None] = {}
        for scenario in scenarios:
            for step in scenario.steps:
                owners.setdefault(step.definition.owner)
        for scenario in scenarios:
            for hook in scenario.before_hooks + scenario.after_hooks:
                owners.setdefault(hook.owner)
        return list(owners)

    def _shared_hooks(
        self, scenarios: list[ResolvedScenario]
    ) -> tuple[tuple[HookRef, ...], tuple[HookRef, ...]] | None:
        """Hook lists shared by every scenario, or None if they differ."""
        if not scenarios:
            return (), ()
        first = (scenarios[0].before_hooks, scenarios[0].after_hooks)
        for scenario in scenarios[1:]:
            if (scenario.before_hooks, scenario.after_hooks) != first:
                return None
        return first

    def _test_method(
        self,
        scenario: ResolvedScenario,
        method: str,
        fields: dict[str, str],
        types: _TypeNames,
        wrap_hooks: bool,
    ) -> list[str]:
        lines = [f"{INDENT}// Scenario: {_one_line(scenario.name)}"]
        if scenario.example is not None:
            row = ", ".join(f"{k}={v}" for k, v in scenario.example)
            lines.append(f"{INDENT}// Example: {_one_line(row)}")
        lines.append(f"{INDENT}@{types[JUNIT_TEST]}")
        lines.append(f"{INDENT}public void {method}() throws {types[JAVA_THROWABLE]} {{")

        step_calls = [self._step_call(step, fields, types) for step in scenario.steps]
        if wrap_hooks and scenario.after_hooks:
            lines.append(f"{INDENT * 2}try {{")
            lines.extend(self._hook_calls(scenario.before_hooks, fields, 3))
            lines.extend(f"{INDENT * 3}{call}" for call in step_calls)
            lines.append(f"{INDENT * 2}}} finally {{")
            lines.extend(self._after_calls(scenario.after_hooks, fields, 3))
            lines.append(f"{INDENT * 2}}}")
        else:
            if wrap_hooks:
                lines.extend(self._hook_calls(scenario.before_hooks, fields, 2))
            lines.extend(f"{INDENT * 2}{call}" for call in step_calls)

        lines.append(f"{INDENT}}}")
        return lines

    def _step_call(self, step: ResolvedStep, fields: dict[str, str], types: _TypeNames) -> str:
        definition = step.definition
        args = ", ".join(
            self._render_argument(value, type_name, types)
            for value, type_name in zip(step.arguments, definition.param_types)
        )
        return f"{fields[definition.owner]}.{definition.method}({args});"

    def _hook_calls(self, hooks: tuple[HookRef, ...], fields: dict[str, str], depth: int) -> list[str]:
        return [f"{INDENT * depth}{fields[hook.owner]}.{hook.method}();" for hook in hooks]

    def _after_calls(self, hooks: tuple[HookRef, ...], fields: dict[str, str], depth: int) -> list[str]:
        """After hooks chained with try/finally so each one runs even if an earlier one throws."""
        pad = INDENT * depth
        call = f"{pad}{fields[hooks[0].owner]}.{hooks[0].method}();"
        if len(hooks) == 1:
            return [call]
        return [
            f"{pad}try {{",
            f"{INDENT}{call}",
            f"{pad}}} finally {{",
            *self._after_calls(hooks[1:], fields, depth + 1),
            f"{pad}}}",
        ]

    def _render_argument(self, value: ArgumentValue, type_name: str, types: _TypeNames) -> str:
        if isinstance(value, DataTable):
            arrays = types[JAVA_ARRAYS]
            rows = ", ".join(
                f"{arrays}.asList({', '.join(java_string(cell) for cell in row)})"
                for row in value.rows
            )
            return f"{arrays}.asList({rows})"
        if isinstance(value, DocString):
            return java_string(value.content)
        if value is None:
            return "null"
        if type_name == "boolean":
            return "true" if value else "false"
        if type_name == "int":
            return str(value)
        if type_name == "long":
            return f"{value}L"
        if type_name == "double":
            return _java_floating(float(value), "", "Double")
        if type_name == "float":
            return _java_floating(float(value), "f", "Float")
        return java_string(str(value))


def _one_line(text: str) -> str:
    return text.replace("\r", " ").replace("\n", " ")

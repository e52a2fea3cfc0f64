"""Step catalog: pattern -> step definition registry.

The catalog is built once per compilation run from descriptors supplied by
an external discovery step (usually a ``steps.yaml`` file). Building it is
the only place where pattern syntax is checked; afterwards it is read-only
and can be shared between threads compiling different features.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import parse
import yaml

from pickle_compiler.errors import CatalogError, InvalidPatternError
from pickle_compiler.hooks import HookRegistry
from pickle_compiler.models import (
    ArgumentValue,
    DataTable,
    DocString,
    HookRef,
    HookTiming,
    PatternKind,
    StepArgument,
    StepDefinitionRef,
)

logger = logging.getLogger(__name__)

INT_RANGE = (-(2**31), 2**31 - 1)
LONG_RANGE = (-(2**63), 2**63 - 1)
# Largest and smallest positive Java float magnitudes.
FLOAT_MAX = 3.4028234663852886e38
FLOAT_MIN = 1.401298464324817e-45

# Accepted spellings of each parameter type.
TYPE_ALIASES: dict[str, str] = {
    "String": "String",
    "java.lang.String": "String",
    "int": "int",
    "Integer": "int",
    "long": "long",
    "Long": "long",
    "double": "double",
    "Double": "double",
    "float": "float",
    "Float": "float",
    "boolean": "boolean",
    "Boolean": "boolean",
    "DataTable": "DataTable",
    "DocString": "DocString",
}
TRAILING_TYPES = ("DataTable", "DocString")


@dataclass(frozen=True)
class StepDescriptor:
    """A discovered step-definition method, before validation."""

    owner: str
    method: str
    pattern: str
    params: tuple[str, ...] = ()
    kind: str | None = None


@dataclass(frozen=True)
class HookDescriptor:
    """A discovered hook method, before validation."""

    owner: str
    method: str
    timing: str
    tags: str | None = None
    order: int = 0


def infer_kind(pattern: str) -> PatternKind:
    """Guess the pattern kind when a descriptor does not name one."""
    if pattern.startswith("^") or pattern.endswith("$"):
        return PatternKind.REGEX
    if "{" in pattern:
        return PatternKind.PARSE
    return PatternKind.LITERAL


class StepMatcher:
    """A compiled pattern bound to one step definition."""

    def __init__(self, definition: StepDefinitionRef) -> None:
        self.definition = definition
        self._parser: parse.Parser | None = None
        self._regex: re.Pattern[str] | None = None
        self._named: list[str] = []

        params = definition.param_types
        self.trailing = params[-1] if params and params[-1] in TRAILING_TYPES else None
        self.value_types = params[:-1] if self.trailing else params

        captured = self._compile()
        if captured != len(self.value_types):
            raise InvalidPatternError(
                definition.pattern,
                f"captures {captured} argument(s) but {definition.qualified_name} "
                f"declares {len(self.value_types)}",
            )

    def _compile(self) -> int:
        pattern = self.definition.pattern
        kind = self.definition.kind
        if kind == PatternKind.LITERAL:
            return 0

        if kind == PatternKind.REGEX:
            try:
                self._regex = re.compile(pattern)
            except re.error as exc:
                raise InvalidPatternError(pattern, str(exc)) from exc
            return self._regex.groups

        try:
            self._parser = parse.compile(pattern, case_sensitive=True)
            # Forces the underlying regex to compile so errors surface now.
            self._parser.parse("")
        except (ValueError, NotImplementedError, re.error) as exc:
            raise InvalidPatternError(pattern, str(exc)) from exc
        self._named = list(self._parser.named_fields)
        return len(self._parser.fixed_fields) + len(self._named)

    def match(
        self, text: str, argument: StepArgument | None = None
    ) -> tuple[ArgumentValue, ...] | None:
        """Return typed argument values if the full text matches, else None."""
        if not self._accepts(argument):
            return None

        raw = self._capture(text)
        if raw is None:
            return None

        values: list[ArgumentValue] = []
        for value, type_name in zip(raw, self.value_types):
            converted = convert_value(value, type_name)
            if converted is _NO_VALUE:
                return None
            values.append(converted)
        if argument is not None:
            values.append(argument)
        return tuple(values)

    def _accepts(self, argument: StepArgument | None) -> bool:
        if argument is None:
            return self.trailing is None
        if isinstance(argument, DataTable):
            return self.trailing == "DataTable"
        return self.trailing == "DocString"

    def _capture(self, text: str) -> list[Any] | None:
        kind = self.definition.kind
        if kind == PatternKind.LITERAL:
            return [] if text == self.definition.pattern else None
        if kind == PatternKind.REGEX:
            assert self._regex is not None
            match = self._regex.fullmatch(text)
            return list(match.groups()) if match else None
        assert self._parser is not None
        result = self._parser.parse(text)
        if result is None:
            return None
        return list(result.fixed) + [result.named[name] for name in self._named]


_NO_VALUE = object()


def convert_value(value: Any, type_name: str) -> Any:
    """Convert a captured value to a parameter type, or return _NO_VALUE."""
    if value is None:
        return None if type_name == "String" else _NO_VALUE
    if type_name == "String":
        return str(value)
    if type_name == "boolean":
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        return _NO_VALUE
    if type_name in ("int", "long"):
        if isinstance(value, bool) or isinstance(value, float):
            return _NO_VALUE
        try:
            number = int(value)
        except (TypeError, ValueError):
            return _NO_VALUE
        low, high = INT_RANGE if type_name == "int" else LONG_RANGE
        return number if low <= number <= high else _NO_VALUE
    if type_name in ("double", "float"):
        if isinstance(value, bool):
            return _NO_VALUE
        try:
            number = float(value)
        except (TypeError, ValueError):
            return _NO_VALUE
        if type_name == "float" and math.isfinite(number) and number != 0.0:
            if not FLOAT_MIN <= abs(number) <= FLOAT_MAX:
                return _NO_VALUE
        return number
    return _NO_VALUE


class StepCatalog:
    """Read-only lookup from step text to matching step definitions."""

    def __init__(self, matchers: Iterable[StepMatcher], hooks: HookRegistry | None = None) -> None:
        self._matchers = tuple(matchers)
        self.hooks = hooks if hooks is not None else HookRegistry()

    @property
    def definitions(self) -> tuple[StepDefinitionRef, ...]:
        return tuple(m.definition for m in self._matchers)

    def __len__(self) -> int:
        return len(self._matchers)

    def find(
        self, text: str, argument: StepArgument | None = None
    ) -> list[tuple[StepDefinitionRef, tuple[ArgumentValue, ...]]]:
        """Return every definition whose pattern matches ``text`` end-to-end."""
        matches = []
        for matcher in self._matchers:
            values = matcher.match(text, argument)
            if values is not None:
                matches.append((matcher.definition, values))
        return matches


def make_definition(descriptor: StepDescriptor) -> StepDefinitionRef:
    """Validate a step descriptor and turn it into a StepDefinitionRef."""
    if not descriptor.pattern:
        raise InvalidPatternError(descriptor.pattern, "pattern is empty")
    if not descriptor.owner or not descriptor.method:
        raise InvalidPatternError(descriptor.pattern, "owner type and method are required")

    if descriptor.kind is None:
        kind = infer_kind(descriptor.pattern)
    else:
        try:
            kind = PatternKind(descriptor.kind)
        except ValueError:
            raise InvalidPatternError(
                descriptor.pattern, f"unknown pattern kind '{descriptor.kind}'"
            ) from None

    params: list[str] = []
    for raw in descriptor.params:
        canonical = TYPE_ALIASES.get(raw)
        if canonical is None:
            raise InvalidPatternError(descriptor.pattern, f"unsupported parameter type '{raw}'")
        params.append(canonical)
    if any(p in TRAILING_TYPES for p in params[:-1]):
        raise InvalidPatternError(
            descriptor.pattern, "DataTable/DocString must be the last parameter"
        )

    return StepDefinitionRef(
        owner=descriptor.owner,
        method=descriptor.method,
        pattern=descriptor.pattern,
        kind=kind,
        param_types=tuple(params),
    )


def make_hook(descriptor: HookDescriptor, position: int) -> HookRef:
    try:
        timing = HookTiming(descriptor.timing.lower())
    except ValueError:
        raise CatalogError(
            f"unknown hook timing '{descriptor.timing}' for {descriptor.owner}.{descriptor.method}"
        ) from None
    return HookRef(
        owner=descriptor.owner,
        method=descriptor.method,
        timing=timing,
        tag_expression=descriptor.tags or None,
        order=descriptor.order,
        position=position,
    )


def build_catalog(
    steps: Iterable[StepDescriptor], hooks: Iterable[HookDescriptor] = ()
) -> StepCatalog:
    """Build a StepCatalog, validating every pattern and hook."""
    matchers: list[StepMatcher] = []
    seen: set[tuple[str, str, str]] = set()
    for descriptor in steps:
        key = (descriptor.owner, descriptor.method, descriptor.pattern)
        if key in seen:
            raise InvalidPatternError(
                descriptor.pattern,
                f"duplicate step definition {descriptor.owner}.{descriptor.method}",
            )
        seen.add(key)
        matchers.append(StepMatcher(make_definition(descriptor)))

    registry = HookRegistry(make_hook(h, i) for i, h in enumerate(hooks))
    logger.debug("Built step catalog: %d step(s), %d hook(s)", len(matchers), len(registry))
    return StepCatalog(matchers, registry)


def load_descriptors(path: Path) -> tuple[list[StepDescriptor], list[HookDescriptor]]:
    """Load step and hook descriptors from a YAML file.

    Expected layout::

        steps:
          - type: steps.LoginSteps
            method: iLogInAs
            pattern: 'I log in as "{}"'
            params: [String]
        hooks:
          - type: steps.Hooks
            method: launchApp
            timing: before
            tags: "@ui"
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CatalogError(f"Cannot read step descriptors: {exc}", source_file=str(path)) from exc
    except yaml.YAMLError as exc:
        raise CatalogError(f"Invalid YAML: {exc}", source_file=str(path)) from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise CatalogError("expected a mapping with 'steps' and 'hooks'", source_file=str(path))

    steps = [_step_descriptor(entry, path) for entry in _entries(raw, "steps", path)]
    hooks = [_hook_descriptor(entry, path) for entry in _entries(raw, "hooks", path)]
    return steps, hooks


def load_catalog(path: Path) -> StepCatalog:
    """Load descriptors from YAML and build the catalog."""
    steps, hooks = load_descriptors(path)
    try:
        return build_catalog(steps, hooks)
    except CatalogError as exc:
        raise exc.with_context(source_file=str(path))


def _entries(raw: dict[str, Any], key: str, path: Path) -> list[dict[str, Any]]:
    entries = raw.get(key) or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise CatalogError(f"'{key}' must be a list of mappings", source_file=str(path))
    return entries


def _require(entry: dict[str, Any], key: str, path: Path) -> str:
    value = entry.get(key)
    if value is None or value == "":
        raise CatalogError(f"Missing required key '{key}' in {entry!r}", source_file=str(path))
    return str(value)


def _step_descriptor(entry: dict[str, Any], path: Path) -> StepDescriptor:
    params = entry.get("params") or []
    if not isinstance(params, list):
        raise CatalogError(f"'params' must be a list in {entry!r}", source_file=str(path))
    kind = entry.get("kind")
    return StepDescriptor(
        owner=_require(entry, "type", path),
        method=_require(entry, "method", path),
        pattern=_require(entry, "pattern", path),
        params=tuple(str(p) for p in params),
        kind=str(kind) if kind is not None else None,
    )


def _hook_descriptor(entry: dict[str, Any], path: Path) -> HookDescriptor:
    order = entry.get("order", 0)
    if not isinstance(order, int) or isinstance(order, bool):
        raise CatalogError(f"'order' must be an integer in {entry!r}", source_file=str(path))
    tags = entry.get("tags")
    return HookDescriptor(
        owner=_require(entry, "type", path),
        method=_require(entry, "method", path),
        timing=_require(entry, "timing", path),
        tags=str(tags) if tags else None,
        order=order,
    )

"""Hook resolution: which setup/teardown methods wrap a scenario."""

from __future__ import annotations

from collections.abc import Iterable

from pickle_compiler.errors import InvalidPatternError
from pickle_compiler.models import HookRef, HookTiming
from pickle_compiler.tags import TagExpression, TagExpressionError, parse_tag_expression


class HookRegistry:
    """Read-only, ordered collection of hooks.

    Hooks are ordered by their explicit ``order`` and then by discovery
    position, so two hooks of the same timing always run in the same order.
    """

    def __init__(self, hooks: Iterable[HookRef] = ()) -> None:
        entries: list[tuple[HookRef, TagExpression | None]] = []
        for hook in hooks:
            expression = None
            if hook.tag_expression:
                try:
                    expression = parse_tag_expression(hook.tag_expression)
                except TagExpressionError as exc:
                    raise InvalidPatternError(
                        hook.tag_expression, f"{exc} (hook {hook.qualified_name})"
                    ) from exc
            entries.append((hook, expression))
        self._entries = tuple(sorted(entries, key=lambda entry: entry[0].rank))

    @property
    def hooks(self) -> tuple[HookRef, ...]:
        return tuple(hook for hook, _ in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def applicable(
        self, tags: Iterable[str]
    ) -> tuple[tuple[HookRef, ...], tuple[HookRef, ...]]:
        """Return (before hooks, after hooks) that apply to a scenario's tags."""
        tag_set = frozenset(tags)
        before: list[HookRef] = []
        after: list[HookRef] = []
        for hook, expression in self._entries:
            if expression is not None and not expression.evaluate(tag_set):
                continue
            if hook.timing == HookTiming.BEFORE:
                before.append(hook)
            else:
                after.append(hook)
        return tuple(before), tuple(after)

"""Exceptions raised while compiling feature files."""

from __future__ import annotations

from collections.abc import Sequence


class PickleError(Exception):
    """Base class for every compilation failure.

    Carries enough context (source file, feature, scenario, line) for the
    caller to print a precise diagnostic. Context that is only known further
    up the call stack is attached with :meth:`with_context`.
    """

    def __init__(
        self,
        message: str,
        *,
        source_file: str | None = None,
        feature: str | None = None,
        scenario: str | None = None,
        line_number: int = 0,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_file = source_file
        self.feature = feature
        self.scenario = scenario
        self.line_number = line_number

    def with_context(
        self,
        *,
        source_file: str | None = None,
        feature: str | None = None,
        scenario: str | None = None,
    ) -> PickleError:
        """Fill in context fields that are still unset. Returns self."""
        if self.source_file is None:
            self.source_file = source_file
        if self.feature is None:
            self.feature = feature
        if self.scenario is None:
            self.scenario = scenario
        return self

    @property
    def location(self) -> str:
        where = self.source_file or (f"<{self.feature}>" if self.feature else "<string>")
        if self.line_number:
            where = f"{where}:{self.line_number}"
        return where

    def __str__(self) -> str:
        text = f"{self.location}: {self.message}"
        if self.scenario:
            text += f" (scenario: '{self.scenario}')"
        return text


class ParseError(PickleError):
    """Malformed feature text."""

    def __init__(self, line_number: int, expected: str, found: str = "", **context) -> None:
        self.expected = expected
        self.found = found
        message = f"expected {expected}"
        if found:
            message += f", got '{found}'"
        super().__init__(message, line_number=line_number, **context)


class CatalogError(PickleError):
    """The step/hook descriptor list could not be loaded."""


class InvalidPatternError(CatalogError):
    """A step-definition pattern or hook tag expression is malformed."""

    def __init__(self, pattern: str, reason: str, **context) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"invalid pattern {pattern!r}: {reason}", **context)


class ResolutionError(PickleError):
    """A step could not be bound to exactly one step definition."""

    def __init__(self, step_text: str, message: str, **context) -> None:
        self.step_text = step_text
        super().__init__(message, **context)


class NoMatchError(ResolutionError):
    def __init__(self, step_text: str, **context) -> None:
        super().__init__(step_text, f"no step definition matches '{step_text}'", **context)


class AmbiguousMatchError(ResolutionError):
    def __init__(self, step_text: str, candidates: Sequence[str], **context) -> None:
        self.candidates = sorted(candidates)
        listing = "; ".join(self.candidates)
        super().__init__(
            step_text,
            f"{len(self.candidates)} step definitions match '{step_text}': {listing}",
            **context,
        )


class EmptyScenarioError(ResolutionError):
    """A scenario has no steps and no background to run."""

    def __init__(self, **context) -> None:
        super().__init__("", "scenario has no steps", **context)

"""Localized Gherkin keywords.

Keyword sets come from the dialect registry shipped with gherkin-official,
so every spoken language Cucumber supports is available by its code.
"""

from __future__ import annotations

from functools import lru_cache

from gherkin.dialect import Dialect

from pickle_compiler.models import StepKeyword

DEFAULT_LANGUAGE = "en"

# gherkin's keywordType for a step line. "Conjunction" (And/But) and
# "Unknown" ("*", listed under every kind) continue the previous class.
KEYWORD_TYPES = {
    "Context": StepKeyword.GIVEN,
    "Action": StepKeyword.WHEN,
    "Outcome": StepKeyword.THEN,
}


class UnknownLanguageError(LookupError):
    pass


@lru_cache(maxsize=None)
def dialect_for(language: str = DEFAULT_LANGUAGE) -> Dialect:
    """Return the keyword dialect for a language code such as "en" or "fr"."""
    dialect = Dialect.for_name(language)
    if dialect is None:
        raise UnknownLanguageError(language)
    return dialect


def step_keyword(keyword_type: str, previous: StepKeyword) -> StepKeyword:
    """Classify a step by its keyword type, inheriting ``previous`` for And/But/*."""
    return KEYWORD_TYPES.get(keyword_type, previous)

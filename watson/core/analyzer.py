"""Analyzer engine — line-oriented pattern scanning for stored documents.

The engine is stateless.  :func:`compile_patterns` turns the current set of
analyzer pattern strings into a :class:`Matcher`, and :func:`scan` runs that
matcher over a document body and returns one :class:`Finding` per matching
line.

**Matching rules**

* Content is split on ``"\\n"`` only.  Content that ends with a line break
  therefore yields one extra, empty, final line; it is scanned like any other
  line (an empty line only matches patterns that match the empty string).
* A line matches when *any* pattern is found anywhere in it
  (:meth:`re.Pattern.search`, not a full-line match).
* A line matched by several patterns still produces exactly one finding.
* Patterns are compiled case-sensitively with no flags.
* An empty pattern set never matches anything.

Usage::

    from watson.core.analyzer import analyze

    findings = analyze("INFO: up\\nERROR: down", {"ERROR"})
    # [Finding(line_number=2, line='ERROR: down')]
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

logger = logging.getLogger(__name__)

_LINE_SEPARATOR = "\n"


class InvalidPatternError(ValueError):
    """Raised when an analyzer pattern is not a valid regular expression.

    Attributes:
        pattern: The offending pattern string.
        reason: The message reported by the :mod:`re` compiler.
    """

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"invalid analyzer pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


@dataclass(frozen=True)
class Finding:
    """A document line that matched at least one analyzer pattern.

    Attributes:
        line_number: 1-based position of the line in the original content.
        line: The exact text of the line, without its line break.
    """

    line_number: int
    line: str


@dataclass(frozen=True)
class Matcher:
    """A compiled, immutable analyzer pattern set."""

    patterns: tuple[re.Pattern, ...]  # type: ignore[type-arg]

    def is_match(self, text: str) -> bool:
        return any(p.search(text) is not None for p in self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)


def validate_pattern(pattern: str) -> re.Pattern:  # type: ignore[type-arg]
    """Compile a single *pattern*, raising :class:`InvalidPatternError` on failure."""
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise InvalidPatternError(pattern, str(exc)) from exc


def compile_patterns(patterns: Iterable[str]) -> Matcher:
    """Compile *patterns* into a single :class:`Matcher`.

    The set is accepted or rejected as a whole: if any pattern fails to
    compile, :class:`InvalidPatternError` is raised for the first failure and
    no matcher is produced.

    Patterns are compiled in sorted order so that the first failure reported
    for a given set is deterministic.
    """
    compiled = tuple(validate_pattern(p) for p in sorted(set(patterns)))
    logger.debug("Compiled analyzer matcher with %d pattern(s)", len(compiled))
    return Matcher(patterns=compiled)


def scan(content: str, matcher: Matcher) -> list[Finding]:
    """Return one :class:`Finding` per line of *content* matched by *matcher*.

    Findings are returned in line order, so ``line_number`` is strictly
    increasing.
    """
    if not matcher.patterns:
        return []

    return [
        Finding(line_number=number, line=line)
        for number, line in enumerate(content.split(_LINE_SEPARATOR), start=1)
        if matcher.is_match(line)
    ]


def analyze(content: str, patterns: Iterable[str]) -> list[Finding]:
    """Compile *patterns* and scan *content* in one step."""
    return scan(content, compile_patterns(patterns))

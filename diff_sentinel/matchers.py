"""Signal and exemption matchers for rule gating."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from functools import lru_cache

logger = logging.getLogger(__name__)

Matcher = Callable[[str], bool]

REGEX_PREFIX = "regex:"
LITERAL_PREFIXES = ("added-line:", "pattern:")


@lru_cache(maxsize=1024)
def compile_matcher(signal: str) -> Matcher:
    """Compile a declarative signal into a line predicate.

    ``regex:<pattern>`` is searched in multiline mode, ``added-line:<text>``
    and ``pattern:<text>`` are substring checks, anything else is a
    substring check on the raw signal. A regex that does not compile gives a
    matcher that never matches.
    """
    if signal.startswith(REGEX_PREFIX):
        source = signal[len(REGEX_PREFIX) :]
        try:
            compiled = re.compile(source, re.MULTILINE)
        except re.error as exc:
            logger.warning("Ignoring signal with invalid regex %r: %s", source, exc)
            return _never
        return lambda line: compiled.search(line) is not None

    for prefix in LITERAL_PREFIXES:
        if signal.startswith(prefix):
            literal = signal[len(prefix) :]
            return lambda line: literal in line

    return lambda line: signal in line


def line_matches(line: str, patterns: Iterable[str]) -> bool:
    """Return True when any pattern matches the single line."""
    return any(compile_matcher(pattern)(line) for pattern in patterns)


def any_match(lines: Iterable[str], signals: list[str]) -> bool:
    """Return True when some signal matches some line."""
    if not signals:
        return False
    matchers = [compile_matcher(signal) for signal in signals]
    return any(matcher(line) for line in lines for matcher in matchers)


def any_exempt(lines: Iterable[str], exempt: list[str]) -> bool:
    """Return True when some exemption pattern matches some line.

    Broken exemption patterns never match, so they cannot turn into a
    blanket allow.
    """
    if not exempt:
        return False
    matchers = [compile_matcher(pattern) for pattern in exempt]
    return any(matcher(line) for line in lines for matcher in matchers)


def _never(_line: str) -> bool:
    return False

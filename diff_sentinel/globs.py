"""POSIX path globs with ``**`` support."""

from __future__ import annotations

import re
from functools import lru_cache


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a path glob into an anchored regular expression.

    ``*`` matches within one path segment, ``**`` spans any number of
    segments (including none), ``?`` matches one non-separator character.
    ``[abc]``, ``[a-z]`` and the negated ``[!abc]`` / ``[^abc]`` match one
    character of a class; a negated class never matches ``/``. A ``[`` with no
    closing ``]`` or an invalid range is taken literally. Matching is
    case-sensitive.
    """
    parts: list[str] = []
    index = 0
    length = len(pattern)
    while index < length:
        char = pattern[index]
        if char == "*":
            if pattern.startswith("**", index):
                starts_segment = index == 0 or pattern[index - 1] == "/"
                after = index + 2
                if starts_segment and after < length and pattern[after] == "/":
                    parts.append("(?:.*/)?")
                    index = after + 1
                    continue
                if starts_segment and after == length and index > 0:
                    # "dir/**" also matches "dir" itself.
                    parts.pop()
                    parts.append("(?:/.*)?")
                    index = after
                    continue
                parts.append(".*")
                index = after
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            translated = _translate_class(pattern, index)
            if translated is None:
                parts.append(re.escape(char))
            else:
                parts.append(translated[0])
                index = translated[1]
                continue
        else:
            parts.append(re.escape(char))
        index += 1
    return re.compile("^" + "".join(parts) + "$")


def _translate_class(pattern: str, index: int) -> tuple[str, int] | None:
    """Translate the bracket class opening at ``index``.

    Returns the regex class and the index just past ``]``, or None when the
    class is unterminated or invalid.
    """
    start = index + 1
    cursor = start
    if cursor < len(pattern) and pattern[cursor] in "!^":
        cursor += 1
    # A leading "]" is a member, not the terminator.
    if cursor < len(pattern) and pattern[cursor] == "]":
        cursor += 1
    end = pattern.find("]", cursor)
    if end == -1:
        return None

    body = pattern[start:end]
    negate = body[:1] in ("!", "^")
    if negate:
        body = body[1:]
    members = "".join("\\" + char if char in "\\[]^&~|" else char for char in body)
    translated = "[" + ("^/" if negate else "") + members + "]"
    try:
        re.compile(translated)
    except re.error:
        return None
    return translated, end + 1


def glob_match(pattern: str, path: str) -> bool:
    """Return True when ``path`` matches ``pattern``."""
    return compile_glob(pattern).match(path) is not None


def matches_any(path: str, patterns: list[str]) -> bool:
    return any(glob_match(pattern, path) for pattern in patterns)

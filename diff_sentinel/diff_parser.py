"""Unified diff parser primitives."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from re import Match

LINE_SPLIT_RE = re.compile(r"\r?\n")
FILE_HEADER_RE = re.compile(r"^\+\+\+ b/(?P<path>.+)$")
HUNK_HEADER_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)


class ParserState(Enum):
    """Where the parser is relative to file and hunk headers."""

    SEEKING = "seeking"
    IN_FILE = "in_file"
    IN_HUNK = "in_hunk"


@dataclass(frozen=True, slots=True)
class AddedLine:
    """An added line and its number in the new file."""

    line: int
    text: str

    def to_dict(self) -> dict[str, int | str]:
        return {"line": self.line, "text": self.text}


@dataclass(slots=True)
class Hunk:
    """A diff hunk with its added lines."""

    header: str
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    added: list[AddedLine] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "header": self.header,
            "old_start": self.old_start,
            "old_lines": self.old_lines,
            "new_start": self.new_start,
            "new_lines": self.new_lines,
            "added": [item.to_dict() for item in self.added],
        }


@dataclass(slots=True)
class FileDiff:
    """A parsed file-level diff."""

    file_path: str
    hunks: list[Hunk] = field(default_factory=list)

    def added_lines(self) -> list[AddedLine]:
        """All added lines of the file in hunk order."""
        return [item for hunk in self.hunks for item in hunk.added]

    def to_dict(self) -> dict[str, object]:
        return {"file_path": self.file_path, "hunks": [hunk.to_dict() for hunk in self.hunks]}


@dataclass(frozen=True, slots=True)
class Step:
    """Result of feeding one line to the parser."""

    state: ParserState
    cursor: int
    added: AddedLine | None = None
    new_file: str | None = None
    new_hunk: Hunk | None = None


def advance(state: ParserState, cursor: int, raw_line: str, previous: str = "") -> Step:
    """Apply one diff line to the parser state.

    ``cursor`` is the number of the last new-file line seen, so an added line
    directly after ``@@ -a +c @@`` is numbered ``c``. ``previous`` is the
    preceding raw line: inside a hunk, a ``+++ `` line without a ``b/`` target
    only closes the file when it follows a ``--- `` header, otherwise it is an
    added line whose text starts with ``++ ``.
    """
    file_match = FILE_HEADER_RE.match(raw_line)
    if file_match is not None:
        path = file_match.group("path").split("\t", 1)[0].strip()
        if not path:
            return Step(state=ParserState.SEEKING, cursor=0)
        return Step(state=ParserState.IN_FILE, cursor=0, new_file=path)

    header_context = state is not ParserState.IN_HUNK or previous.startswith("--- ")
    if raw_line.startswith("+++ ") and header_context:
        # +++ /dev/null and other targets without a new-file side.
        return Step(state=ParserState.SEEKING, cursor=0)

    if state is ParserState.SEEKING:
        return Step(state=state, cursor=cursor)

    hunk = _parse_hunk_header(raw_line)
    if hunk is not None:
        return Step(state=ParserState.IN_HUNK, cursor=hunk.new_start - 1, new_hunk=hunk)

    if state is ParserState.IN_FILE:
        return Step(state=state, cursor=cursor)

    if raw_line.startswith("+"):
        cursor += 1
        return Step(state=state, cursor=cursor, added=AddedLine(line=cursor, text=raw_line[1:]))
    if raw_line == "" or raw_line.startswith(" "):
        return Step(state=state, cursor=cursor + 1)
    return Step(state=state, cursor=cursor)


def parse_unified_diff(diff_text: str) -> list[FileDiff]:
    """Parse unified diff text into files, hunks and numbered added lines.

    Malformed or headerless input yields an empty or partial list; this
    function does not raise on diff content.
    """
    files: list[FileDiff] = []
    current_file: FileDiff | None = None
    current_hunk: Hunk | None = None
    state = ParserState.SEEKING
    cursor = 0

    previous = ""
    for raw_line in LINE_SPLIT_RE.split(diff_text):
        step = advance(state, cursor, raw_line, previous)
        state, cursor, previous = step.state, step.cursor, raw_line

        if step.new_file is not None:
            current_file = FileDiff(file_path=step.new_file)
            current_hunk = None
            files.append(current_file)
        elif state is ParserState.SEEKING:
            current_file = None
            current_hunk = None
        elif step.new_hunk is not None and current_file is not None:
            current_hunk = step.new_hunk
            current_file.hunks.append(current_hunk)
        elif step.added is not None and current_hunk is not None:
            current_hunk.added.append(step.added)

    return files


def changed_paths(files: list[FileDiff]) -> list[str]:
    """Return file paths in diff order without duplicates."""
    seen: set[str] = set()
    paths: list[str] = []
    for file_diff in files:
        if file_diff.file_path in seen:
            continue
        seen.add(file_diff.file_path)
        paths.append(file_diff.file_path)
    return paths


def added_lines_by_file(files: list[FileDiff]) -> dict[str, list[AddedLine]]:
    """Group added lines per path, merging repeated file sections."""
    grouped: dict[str, list[AddedLine]] = {}
    for file_diff in files:
        grouped.setdefault(file_diff.file_path, []).extend(file_diff.added_lines())
    return grouped


def _parse_hunk_header(header: str) -> Hunk | None:
    match: Match[str] | None = HUNK_HEADER_RE.match(header)
    if match is None:
        return None

    old_count = match.group("old_count")
    new_count = match.group("new_count")
    return Hunk(
        header=header,
        old_start=int(match.group("old_start")),
        old_lines=int(old_count) if old_count else 0,
        new_start=int(match.group("new_start")),
        new_lines=int(new_count) if new_count else 0,
    )

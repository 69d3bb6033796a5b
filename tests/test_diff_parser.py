"""Tests for unified diff parsing."""

from helpers_diff import load_diff

from diff_sentinel.diff_parser import (
    AddedLine,
    ParserState,
    added_lines_by_file,
    advance,
    changed_paths,
    parse_unified_diff,
)


def test_parse_simple_diff() -> None:
    parsed = parse_unified_diff(load_diff("simple.diff"))
    assert len(parsed) == 1

    file_diff = parsed[0]
    assert file_diff.file_path == "src/app.ts"
    assert len(file_diff.hunks) == 1

    hunk = file_diff.hunks[0]
    assert (hunk.old_start, hunk.old_lines, hunk.new_start, hunk.new_lines) == (1, 3, 1, 4)
    assert hunk.header == "@@ -1,3 +1,4 @@"
    assert hunk.added == [
        AddedLine(line=2, text="console.log('new')"),
        AddedLine(line=3, text="// TODO: remove debug"),
    ]


def test_parse_multiple_hunks_and_files() -> None:
    parsed = parse_unified_diff(load_diff("multi_file.diff"))
    assert [item.file_path for item in parsed] == ["src/a.ts", "src/b.ts"]

    first, second = parsed[0].hunks
    assert first.added == [AddedLine(line=11, text="const two = 2")]
    assert second.added == [AddedLine(line=42, text="replaced")]

    new_file = parsed[1]
    assert [item.line for item in new_file.added_lines()] == [1, 2]
    assert new_file.hunks[0].old_start == 0


def test_deleted_file_does_not_leak_hunks_into_previous_file() -> None:
    parsed = parse_unified_diff(load_diff("multi_file.diff"))
    assert len(parsed[0].hunks) == 2
    assert "docs/old.md" not in changed_paths(parsed)


def test_hunk_header_without_lengths_defaults_to_zero() -> None:
    diff_text = "\n".join(["--- a/foo.txt", "+++ b/foo.txt", "@@ -5 +6 @@", "+new"])
    hunk = parse_unified_diff(diff_text)[0].hunks[0]
    assert (hunk.old_start, hunk.old_lines, hunk.new_start, hunk.new_lines) == (5, 0, 6, 0)
    assert hunk.added == [AddedLine(line=6, text="new")]


def test_removed_lines_do_not_advance_and_blank_context_does() -> None:
    diff_text = "\n".join(
        [
            "+++ b/foo.py",
            "@@ -1,5 +1,5 @@",
            "-gone",
            "-gone too",
            "",
            " kept",
            "+added",
            "\\ No newline at end of file",
            "+after marker",
        ]
    )
    added = parse_unified_diff(diff_text)[0].added_lines()
    assert added == [AddedLine(line=3, text="added"), AddedLine(line=4, text="after marker")]


def test_crlf_and_lf_inputs_parse_identically() -> None:
    lf_text = load_diff("multi_file.diff")
    crlf_text = lf_text.replace("\n", "\r\n")
    lf_parsed = [item.to_dict() for item in parse_unified_diff(lf_text)]
    crlf_parsed = [item.to_dict() for item in parse_unified_diff(crlf_text)]
    assert crlf_parsed == lf_parsed


def test_lines_before_first_file_header_are_ignored() -> None:
    diff_text = "\n".join(
        [
            "From 1234 Mon Sep 17 00:00:00 2001",
            "@@ -1 +1 @@",
            "+orphan",
            "+++ b/real.ts",
            "@@ -1,0 +1,1 @@",
            "+kept",
        ]
    )
    parsed = parse_unified_diff(diff_text)
    assert [item.file_path for item in parsed] == ["real.ts"]
    assert parsed[0].added_lines() == [AddedLine(line=1, text="kept")]


def test_malformed_input_never_raises() -> None:
    assert parse_unified_diff("") == []
    assert parse_unified_diff("not a diff at all\n+++ nope") == []
    parsed = parse_unified_diff("+++ b/x.ts\n@@ -x +1 @@\n+ignored")
    assert len(parsed) == 1
    assert parsed[0].hunks == []


def test_file_header_strips_trailing_timestamp() -> None:
    parsed = parse_unified_diff("+++ b/src/x.ts\t2024-01-01 00:00:00\n@@ -0,0 +1 @@\n+a")
    assert parsed[0].file_path == "src/x.ts"


def test_repeated_file_sections_merge_by_path() -> None:
    diff_text = "\n".join(
        ["+++ b/x.ts", "@@ -0,0 +1 @@", "+one", "+++ b/x.ts", "@@ -9,0 +10 @@", "+ten"]
    )
    parsed = parse_unified_diff(diff_text)
    assert len(parsed) == 2
    assert changed_paths(parsed) == ["x.ts"]
    assert added_lines_by_file(parsed) == {
        "x.ts": [AddedLine(line=1, text="one"), AddedLine(line=10, text="ten")]
    }


def test_advance_tracks_cursor_through_states() -> None:
    step = advance(ParserState.SEEKING, 0, "@@ -1 +1 @@")
    assert step.state is ParserState.SEEKING

    step = advance(ParserState.SEEKING, 0, "+++ b/a.ts")
    assert (step.state, step.new_file) == (ParserState.IN_FILE, "a.ts")

    step = advance(step.state, step.cursor, "@@ -3,2 +7,3 @@ def f():")
    assert step.state is ParserState.IN_HUNK
    assert step.cursor == 6

    step = advance(step.state, step.cursor, " context")
    assert step.cursor == 7
    step = advance(step.state, step.cursor, "-removed")
    assert step.cursor == 7
    step = advance(step.state, step.cursor, "+added")
    assert step.added == AddedLine(line=8, text="added")

    in_hunk = step
    step = advance(in_hunk.state, in_hunk.cursor, "+++ /dev/null")
    assert step.added == AddedLine(line=9, text="++ /dev/null")

    step = advance(in_hunk.state, in_hunk.cursor, "+++ /dev/null", previous="--- a/a.ts")
    assert step.state is ParserState.SEEKING


def test_added_line_starting_with_plus_plus_stays_in_hunk() -> None:
    diff_text = "\n".join(
        [
            "+++ b/notes.md",
            "@@ -0,0 +1,3 @@",
            "+++ not a header",
            "+// TODO: keep me",
            "+last",
        ]
    )
    parsed = parse_unified_diff(diff_text)
    assert [item.file_path for item in parsed] == ["notes.md"]
    assert parsed[0].added_lines() == [
        AddedLine(line=1, text="++ not a header"),
        AddedLine(line=2, text="// TODO: keep me"),
        AddedLine(line=3, text="last"),
    ]

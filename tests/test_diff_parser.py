"""
Tests for the unified diff parser.
"""

import pytest

from review_bot.analysis.diff_parser import (
    UNKNOWN_PATH,
    ChangeKind,
    DiffParser,
    LineMarker,
    detect_language,
)


@pytest.fixture
def parser():
    return DiffParser()


MODIFIED_DIFF = """diff --git a/src/app.js b/src/app.js
index 1234567..89abcde 100644
--- a/src/app.js
+++ b/src/app.js
@@ -1,3 +1,4 @@ function main() {
 const a = 1;
-const b = 2;
+const b = 3;
+const c = 4;
 module.exports = a;
"""

NEW_FILE_DIFF = """diff --git a/new.py b/new.py
new file mode 100644
index 0000000..e69de29
--- /dev/null
+++ b/new.py
@@ -0,0 +1,2 @@
+print("hi")
+x = 1
"""

DELETED_FILE_DIFF = """diff --git a/old.txt b/old.txt
deleted file mode 100644
index e69de29..0000000
--- a/old.txt
+++ /dev/null
@@ -1 +0,0 @@
-bye
"""

RENAME_DIFF = """diff --git a/a.py b/b.py
similarity index 100%
rename from a.py
rename to b.py
"""


class TestParse:
    """File-level parsing."""

    def test_empty_input(self, parser):
        assert parser.parse("") == []
        assert parser.parse("   \n") == []

    def test_modified_file(self, parser):
        changes = parser.parse(MODIFIED_DIFF)

        assert len(changes) == 1
        change = changes[0]
        assert change.path == "src/app.js"
        assert change.change_kind == ChangeKind.MODIFIED
        assert change.additions == 2
        assert change.deletions == 1
        assert change.language == "javascript"

        hunk = change.hunks[0]
        assert (hunk.old_start, hunk.old_lines, hunk.new_start, hunk.new_lines) == (1, 3, 1, 4)
        assert hunk.header == "function main() {"
        assert hunk.reconciles()

    def test_new_file(self, parser):
        change = parser.parse(NEW_FILE_DIFF)[0]
        assert change.path == "new.py"
        assert change.change_kind == ChangeKind.ADDED
        assert change.hunks[0].reconciles()

    def test_deleted_file_uses_old_path(self, parser):
        change = parser.parse(DELETED_FILE_DIFF)[0]
        assert change.path == "old.txt"
        assert change.change_kind == ChangeKind.DELETED
        assert change.hunks[0].old_lines == 1

    def test_rename_without_hunks(self, parser):
        change = parser.parse(RENAME_DIFF)[0]
        assert change.path == "b.py"
        assert change.old_path == "a.py"
        assert change.change_kind == ChangeKind.RENAMED
        assert change.hunks == []

    def test_multiple_git_files(self, parser):
        changes = parser.parse(MODIFIED_DIFF + NEW_FILE_DIFF + DELETED_FILE_DIFF)
        assert [c.path for c in changes] == ["src/app.js", "new.py", "old.txt"]

    def test_plain_unified_pairs(self, parser):
        diff = (
            "--- a/one.py\n"
            "+++ b/one.py\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b\n"
            "--- a/two.py\n"
            "+++ b/two.py\n"
            "@@ -1 +1 @@\n"
            "-c\n"
            "+d\n"
        )
        changes = parser.parse(diff)
        assert [c.path for c in changes] == ["one.py", "two.py"]
        assert all(c.change_kind == ChangeKind.MODIFIED for c in changes)

    def test_content_lines_that_look_like_headers(self, parser):
        diff = (
            "--- a/x.js\n"
            "+++ b/x.js\n"
            "@@ -1,2 +1,2 @@\n"
            "---y;\n"
            "+++counter;\n"
            " z;\n"
        )
        changes = parser.parse(diff)

        assert len(changes) == 1
        hunk = changes[0].hunks[0]
        assert [l.marker for l in hunk.lines] == [
            LineMarker.REMOVED, LineMarker.ADDED, LineMarker.CONTEXT,
        ]
        assert hunk.lines[0].text == "--y;"
        assert hunk.lines[1].text == "++counter;"
        assert hunk.reconciles()

    def test_no_newline_marker_is_ignored(self, parser):
        diff = (
            "--- a/f.txt\n"
            "+++ b/f.txt\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "\\ No newline at end of file\n"
            "+b\n"
            "\\ No newline at end of file\n"
        )
        hunk = parser.parse(diff)[0].hunks[0]
        assert len(hunk.lines) == 2
        assert hunk.reconciles()

    def test_timestamps_are_stripped_from_paths(self, parser):
        diff = (
            "--- a/f.c\t2024-01-01 10:00:00\n"
            "+++ b/f.c\t2024-01-02 10:00:00\n"
            "@@ -1 +1 @@\n"
            "-x\n"
            "+y\n"
        )
        assert parser.parse(diff)[0].path == "f.c"

    @pytest.mark.parametrize("garbage", [
        "not a diff at all",
        "@@ bad header @@\n+++",
        "diff --git\n@@ -x +y @@\n",
        "--- \n+++ \n@@ -1,5 +1,5 @@\n+only one line\n",
    ])
    def test_malformed_input_never_raises(self, parser, garbage):
        changes = parser.parse(garbage)
        for change in changes:
            assert change.path
            if change.is_unknown:
                assert change.path == UNKNOWN_PATH
                assert change.change_kind == ChangeKind.UNKNOWN


class TestLineHelpers:
    """Added/removed line extraction."""

    def test_line_numbers(self, parser):
        change = parser.parse(MODIFIED_DIFF)[0]

        added = parser.get_added_lines(change)
        removed = parser.get_removed_lines(change)

        assert [l.text for l in added] == ["const b = 3;", "const c = 4;"]
        assert [l.text for l in removed] == ["const b = 2;"]
        assert removed[0].old_lineno == 2
        assert parser.get_changed_line_numbers(change) == {2, 3}


@pytest.mark.parametrize("path,language", [
    ("src/app.py", "python"),
    ("web/index.TSX", "typescript"),
    ("Makefile", None),
    ("notes.unknownext", None),
])
def test_detect_language(path, language):
    assert detect_language(path) == language

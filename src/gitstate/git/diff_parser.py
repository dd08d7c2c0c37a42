"""Unified diff splitter yielding one FilePatch per ``diff --git`` section.

Each patch keeps its section of the diff verbatim (headers, hunks, the
``\\ No newline at end of file`` markers, CRLF line endings) so it can be
re-applied or shown as-is. Only the extended header lines are interpreted,
to work out the path, the rename source and the kind of change.
"""

from __future__ import annotations

import logging
import re
from typing import Generator, List, Tuple

from gitstate.git.errors import MalformedOutputError
from gitstate.git.models import FilePatch, FileStatus
from gitstate.git.parsers import unquote_path

logger = logging.getLogger(__name__)

# --- Regex patterns for diff headers ---

_QUOTED = r'"(?:[^"\\]|\\.)*"'
_DIFF_HEADER_RE = re.compile(r"^diff --git (.+?)\r?$")
_HEADER_PATHS_RE = re.compile(rf"^({_QUOTED}|a/.*) ({_QUOTED}|b/.*)$")
_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_BINARY_RE = re.compile(r"^Binary files .* and .* differ\r?$")
_GIT_BINARY_PATCH_RE = re.compile(r"^GIT binary patch\r?$")
_RENAME_FROM_RE = re.compile(r"^rename from (.+?)\r?$")
_RENAME_TO_RE = re.compile(r"^rename to (.+?)\r?$")
_OLD_MODE_RE = re.compile(r"^old mode \d+")
_DELETED_FILE_RE = re.compile(r"^deleted file mode \d+")
_NEW_FILE_RE = re.compile(r"^new file mode \d+")


def _header_paths(line: str) -> Tuple[str, str]:
    """Old and new path from a ``diff --git`` line, quoted or not."""
    m = _HEADER_PATHS_RE.match(line.rstrip("\r\n")[len("diff --git "):])
    if m is None:
        raise MalformedOutputError("Unparseable diff header", line.rstrip("\r\n"))
    old, new = (unquote_path(p)[2:] for p in m.groups())
    return old, new


class DiffParser:
    """Split unified diff text into :class:`FilePatch` records.

    Usage::

        for patch in DiffParser(diff_text).parse():
            print(patch.path, patch.status)
    """

    def __init__(self, diff_text: str) -> None:
        self._lines = diff_text.splitlines(keepends=True)

    def parse(self) -> Generator[FilePatch, None, None]:
        """Yield one FilePatch per file section, in diff order."""
        block: List[str] = []
        preamble: List[str] = []

        for line in self._lines:
            if _DIFF_HEADER_RE.match(line):
                if block:
                    yield self._build(block)
                elif preamble:
                    logger.warning(
                        "Ignoring %d line(s) before the first diff header", len(preamble)
                    )
                block = [line]
                continue
            if block:
                block.append(line)
            elif line.strip():
                preamble.append(line)

        if block:
            yield self._build(block)
        elif preamble:
            raise MalformedOutputError("Unparseable diff output", preamble[0].rstrip("\r\n"))

    def _build(self, block: List[str]) -> FilePatch:
        old_path, path = _header_paths(block[0])
        is_rename = False
        is_deleted = False
        is_new = False
        is_mode_change = False
        is_binary = False
        has_hunks = False

        for line in block[1:]:
            if _HUNK_HEADER_RE.match(line):
                has_hunks = True
                break
            if _BINARY_RE.match(line) or _GIT_BINARY_PATCH_RE.match(line):
                is_binary = True
            elif rm := _RENAME_FROM_RE.match(line):
                old_path = unquote_path(rm.group(1))
                is_rename = True
            elif rt := _RENAME_TO_RE.match(line):
                path = unquote_path(rt.group(1))
            elif _DELETED_FILE_RE.match(line):
                is_deleted = True
            elif _NEW_FILE_RE.match(line):
                is_new = True
            elif _OLD_MODE_RE.match(line):
                is_mode_change = True

        if is_deleted:
            status = FileStatus.DELETED
        elif is_new:
            status = FileStatus.ADDED
        elif is_rename:
            status = FileStatus.RENAMED
        elif is_mode_change and not has_hunks and not is_binary:
            status = FileStatus.MODE_CHANGED
        else:
            status = FileStatus.MODIFIED

        return FilePatch(
            path=path,
            text="".join(block),
            old_path=old_path if is_rename else None,
            status=status,
            binary=is_binary,
        )


def split_patches(diff_text: str) -> List[FilePatch]:
    """Return every FilePatch in *diff_text*."""
    return list(DiffParser(diff_text).parse())

"""
SCL Quick Fixes

Text edits that resolve some lint diagnostics:
    SCL102: Add missing VERSION declaration
    SCL103: Add missing S7_Optimized_Access pragma
    SCL104: Add ELSE branch to CASE statement
    SCL201: Rename block with naming convention prefix

Usage:
    python -m sclscan.tools.fixes <file>             # Print fixed source
    python -m sclscan.tools.fixes <file> --inplace   # Rewrite the file
"""

import argparse
import bisect
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set, Tuple

from ..scanner import read_source
from ..scanner.preprocess import split_lines
from .lint import Diagnostic, SclLinter

logger = logging.getLogger(__name__)

FIXABLE_CODES = ("SCL102", "SCL103", "SCL104", "SCL201")

VERSION_LINE = "VERSION : 0.1"
PRAGMA_LINE = "{ S7_Optimized_Access := 'TRUE' }"

# Pragma lines looked at after a block opener when placing VERSION
_MAX_PRAGMA_LINES = 4

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
_QUOTED_NAME_RE = re.compile(r'"([^"]+)"')
_PREFIX_RE = re.compile(r"'([^']+?)\.\.\.'$")
_CASE_RE = re.compile(r"CASE\b")
_END_CASE_RE = re.compile(r"END_CASE\b")


@dataclass(frozen=True)
class TextEdit:
    """Replace the range (line, column)-(end_line, end_column) with new_text. 0-based."""
    line: int
    column: int
    end_line: int
    end_column: int
    new_text: str

    @classmethod
    def insert(cls, line: int, column: int, text: str) -> "TextEdit":
        return cls(line, column, line, column, text)


@dataclass
class QuickFix:
    """A titled set of edits resolving one diagnostic."""
    title: str
    code: str
    edits: List[TextEdit] = field(default_factory=list)
    is_preferred: bool = False


def _newline(text: str) -> str:
    match = _LINE_BREAK_RE.search(text)
    return match.group(0) if match else "\n"


def _line_starts(text: str) -> List[int]:
    return [0] + [m.end() for m in _LINE_BREAK_RE.finditer(text)]


def _indent_of(line: str) -> str:
    return line[:len(line) - len(line.lstrip())]


def apply_edits(text: str, edits: List[TextEdit]) -> str:
    """Apply non-overlapping edits to text. Positions refer to the unedited text."""
    starts = _line_starts(text)

    def offset(line: int, column: int) -> int:
        if line >= len(starts):
            return len(text)
        return min(starts[line] + column, len(text))

    spans = []
    for edit in edits:
        start = offset(edit.line, edit.column)
        end = offset(edit.end_line, edit.end_column)
        new_text = edit.new_text
        # Inserting past the last line of a file without a final newline
        if edit.line >= len(starts) and text and not _LINE_BREAK_RE.search(text[-1:]):
            new_text = _newline(text) + new_text
        spans.append((start, end, new_text))

    # Back to front so earlier offsets stay valid
    for start, end, new_text in sorted(spans, key=lambda s: (s[0], s[1]), reverse=True):
        text = text[:start] + new_text + text[end:]
    return text


# ============================================================================
# FIX BUILDERS
# ============================================================================

def _fix_missing_version(lines: List[str], diag: Diagnostic, newline: str) -> QuickFix:
    insert_line = diag.line + 1
    for index in range(diag.line + 1, min(diag.line + 1 + _MAX_PRAGMA_LINES, len(lines))):
        if lines[index].strip().startswith("{"):
            insert_line = index + 1
        else:
            break
    return QuickFix(
        title=f"Add {VERSION_LINE}",
        code=diag.code,
        edits=[TextEdit.insert(insert_line, 0, VERSION_LINE + newline)],
        is_preferred=True,
    )


def _fix_missing_pragma(lines: List[str], diag: Diagnostic, newline: str) -> QuickFix:
    return QuickFix(
        title=f"Add {PRAGMA_LINE}",
        code=diag.code,
        edits=[TextEdit.insert(diag.line + 1, 0, PRAGMA_LINE + newline)],
        is_preferred=True,
    )


def find_end_case(lines: List[str], case_line: int) -> Optional[int]:
    """Line of the END_CASE closing the CASE on case_line, counting nested CASEs."""
    depth = 0
    for index in range(case_line, len(lines)):
        upper = lines[index].strip().upper()
        if _CASE_RE.match(upper):
            depth += 1
        if _END_CASE_RE.match(upper):
            depth -= 1
            if depth == 0:
                return index
    return None


def _fix_case_without_else(lines: List[str], diag: Diagnostic, newline: str) -> Optional[QuickFix]:
    end_line = find_end_case(lines, diag.line)
    if end_line is None:
        return None
    indent = _indent_of(lines[diag.line])
    text = f"{indent}    ELSE{newline}{indent}        ;{newline}"
    return QuickFix(
        title="Add ELSE branch",
        code=diag.code,
        edits=[TextEdit.insert(end_line, 0, text)],
    )


def _fix_naming_convention(text: str, lines: List[str], diag: Diagnostic) -> Optional[QuickFix]:
    name_match = _QUOTED_NAME_RE.search(lines[diag.line])
    prefix_match = _PREFIX_RE.search(diag.message)
    if not name_match or not prefix_match:
        return None

    current = name_match.group(1)
    new_name = prefix_match.group(1) + current
    starts = _line_starts(text)
    edits = []
    for match in re.finditer(re.escape(f'"{current}"'), text):
        line = bisect.bisect_right(starts, match.start()) - 1
        column = match.start() - starts[line]
        edits.append(TextEdit(line, column, line, column + len(match.group(0)), f'"{new_name}"'))

    return QuickFix(title=f'Rename to "{new_name}"', code=diag.code, edits=edits)


def fixes_for(text: str, diagnostic: Diagnostic) -> Optional[QuickFix]:
    """The quick fix for one diagnostic, or None if there is none."""
    lines = split_lines(text)
    if not 0 <= diagnostic.line < len(lines):
        return None

    newline = _newline(text)
    if diagnostic.code == "SCL102":
        return _fix_missing_version(lines, diagnostic, newline)
    if diagnostic.code == "SCL103":
        return _fix_missing_pragma(lines, diagnostic, newline)
    if diagnostic.code == "SCL104":
        return _fix_case_without_else(lines, diagnostic, newline)
    if diagnostic.code == "SCL201":
        return _fix_naming_convention(text, lines, diagnostic)
    return None


def fix_source(text: str, linter: Optional[SclLinter] = None,
               codes: Optional[List[str]] = None,
               max_passes: int = 100) -> Tuple[str, List[QuickFix]]:
    """
    Apply quick fixes until no fixable diagnostic is left.

    One fix is applied per pass and the text is re-linted, so every fix
    sees positions from the current text. A fix that does not reduce the
    number of diagnostics with its code is discarded. Returns the fixed
    text and the fixes applied, in order.
    """
    linter = linter or SclLinter()
    wanted = set(codes) if codes else set(FIXABLE_CODES)
    applied: List[QuickFix] = []
    skipped: Set[Tuple[str, int, str]] = set()
    diagnostics = linter.lint_source(text)

    for _ in range(max_passes):
        fix = None
        for diag in diagnostics:
            key = (diag.code, diag.line, diag.message)
            if diag.code not in wanted or key in skipped:
                continue
            fix = fixes_for(text, diag)
            if fix:
                break
            skipped.add(key)
        if fix is None:
            break

        new_text = apply_edits(text, fix.edits)
        new_diagnostics = linter.lint_source(new_text)
        before = sum(1 for d in diagnostics if d.code == fix.code)
        after = sum(1 for d in new_diagnostics if d.code == fix.code)
        if after >= before:
            logger.warning("Discarding fix that did not resolve %s on line %d", diag.code, diag.line + 1)
            skipped.add(key)
            continue

        logger.debug("Applied fix: %s", fix.title)
        text, diagnostics = new_text, new_diagnostics
        applied.append(fix)
        skipped.clear()

    return text, applied


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Apply quick fixes to SCL source files")
    parser.add_argument("path", type=Path, help="File to fix")
    parser.add_argument("--inplace", "-i", action="store_true",
                        help="Modify the file in place")
    parser.add_argument("--only", action="append", choices=FIXABLE_CODES,
                        help="Only apply fixes for this code (repeatable)")

    args = parser.parse_args(argv)

    if not args.path.is_file():
        print(f"Error: {args.path} not found", file=sys.stderr)
        return 1

    fixed, applied = fix_source(read_source(args.path), codes=args.only)

    if args.inplace:
        with open(args.path, "w", encoding="utf-8", newline="") as f:
            f.write(fixed)
        for fix in applied:
            print(f"{fix.code}: {fix.title}")
        print(f"Applied {len(applied)} fixes to {args.path}")
    else:
        print(fixed)
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
SCL line preprocessing.

Removes comments and string-literal contents from one physical line at a
time. Removed characters are replaced with spaces of equal count so column
offsets into the cleaned text stay valid for the original line.

Handles:
- (* block comments *), including ones spanning several lines
- // line comments
- 'single' and "double" quoted strings (delimiters kept, contents blanked)
"""

import re
from dataclasses import dataclass

BLOCK_COMMENT_OPEN = "(*"
BLOCK_COMMENT_CLOSE = "*)"
LINE_COMMENT = "//"

_STRING_RE = re.compile(r"'[^']*'|\"[^\"]*\"")


@dataclass(frozen=True)
class CleanedLine:
    """
    Result of cleaning one physical line.

    ``original`` is the line with comments removed but strings intact (block
    names and type names are read from it). ``active`` additionally has the
    string interiors blanked and is what keywords are matched against.
    """
    active: str
    original: str
    in_block_comment: bool   # state carried into the next line
    skipped: bool = False    # whole line swallowed by a block comment


def blank(text: str, start: int, end: int) -> str:
    """Replace text[start:end] with spaces."""
    return text[:start] + " " * (end - start) + text[end:]


def strip_comments(line: str, in_block_comment: bool = False):
    """
    Remove comments from a line.

    Returns ``(text, in_block_comment, skipped)``. Comment markers are only
    recognised outside string literals.
    """
    if in_block_comment:
        end = line.find(BLOCK_COMMENT_CLOSE)
        if end < 0:
            return "", True, True
        line = blank(line, 0, end + len(BLOCK_COMMENT_CLOSE))

    quote = None
    i = 0
    while i < len(line):
        ch = line[i]
        if quote:
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in ("'", '"'):
            quote = ch
            i += 1
            continue
        if line.startswith(BLOCK_COMMENT_OPEN, i):
            end = line.find(BLOCK_COMMENT_CLOSE, i + len(BLOCK_COMMENT_OPEN))
            if end < 0:
                # Unterminated: swallow the rest, continue on following lines
                return blank(line, i, len(line)), True, False
            end += len(BLOCK_COMMENT_CLOSE)
            line = blank(line, i, end)
            i = end
            continue
        if line.startswith(LINE_COMMENT, i):
            return line[:i], False, False
        i += 1

    return line, False, False


def find_line_comment(line: str) -> int:
    """Index of the first // outside strings and block comments, or -1."""
    text, _, _ = strip_comments(line)
    if len(text) < len(line) and line.startswith(LINE_COMMENT, len(text)):
        return len(text)
    return -1


def blank_strings(line: str) -> str:
    """Blank string literal contents, keeping the quote characters."""
    return _STRING_RE.sub(lambda m: m.group(0)[0] + " " * (len(m.group(0)) - 2) + m.group(0)[-1], line)


def clean_line(line: str, in_block_comment: bool = False) -> CleanedLine:
    """Run every preprocessing stage over one physical line."""
    text, in_comment, skipped = strip_comments(line, in_block_comment)
    if skipped:
        return CleanedLine(active="", original="", in_block_comment=True, skipped=True)
    return CleanedLine(
        active=blank_strings(text),
        original=text,
        in_block_comment=in_comment,
    )


def split_lines(text: str):
    """Split text on CR, LF or CRLF line endings."""
    return re.split(r"\r\n|\r|\n", text)

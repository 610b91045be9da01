"""
SCL Code Formatter

Normalizes SCL source files to consistent formatting:
- Indentation from block, variable-section and control-flow nesting
- Uppercase keywords (optional)
- Single spaces around ':=' and ':' and after ','
- Comments, pragmas and string literals left untouched

Formatting is line based and idempotent: formatting formatted output
changes nothing.

Usage:
    python -m sclscan.tools.format <file>                    # Format and print to stdout
    python -m sclscan.tools.format <file> --inplace          # Format in place
    python -m sclscan.tools.format <file> --check            # Check if formatted (exit 1 if not)
    python -m sclscan.tools.format <directory> --recursive   # Format all .scl files
"""

import argparse
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..scanner import read_source
from ..scanner.keywords import (
    BLOCK_END_TO_OPEN,
    BLOCK_PAIRS,
    FORMAT_KEYWORDS,
    VAR_CLOSES,
    VAR_OPENS,
    match_keyword,
)
from ..scanner.preprocess import find_line_comment, split_lines, strip_comments

logger = logging.getLogger(__name__)

# Strings and inline (* *) comments are swapped for placeholders while a line is edited
_PROTECT_RE = re.compile(r"'[^']*'|\"[^\"]*\"|\(\*.*?\*\)")
_RESTORE_RE = re.compile(r"\x00(\d+)\x00")

_WORD_RE = re.compile(r"(?<![#.\w])[A-Za-z_]\w*")
_ASSIGN_RE = re.compile(r"\s*:=\s*")
_COLON_RE = re.compile(r"([A-Za-z_]\w*)\s*:(?!=)\s*")
_COMMA_RE = re.compile(r",\s*")
_SPACES_RE = re.compile(r"(?<=\S) {2,}")

_IF_RE = re.compile(r"IF\b.*\bTHEN$")
_LOOP_RE = re.compile(r"(FOR|WHILE)\b.*\bDO$")
_CASE_RE = re.compile(r"CASE\b.*\bOF$")
_INLINE_STRUCT_RE = re.compile(r"\bSTRUCT\s*;?$")
_DECL_HEAD_RE = re.compile(r"[A-Za-z_]\w*\s*:(?!=)")
_LABEL_ITEM = r"[\w#.\"\x00-]+"
_LABEL_RE = re.compile(rf"{_LABEL_ITEM}(?:\s*(?:\.\.|,)\s*{_LABEL_ITEM})*\s*:(?!=)")


@dataclass
class FormatOptions:
    """Configuration for the formatter."""
    indent_char: str = " "            # Tab or spaces
    indent_size: int = 4              # Number of indent chars per level
    uppercase_keywords: bool = True   # if/If -> IF


@dataclass
class _Frame:
    kind: str       # BLOCK, INTERFACE, VAR, IF, FOR, WHILE, REPEAT, CASE, LABEL, REGION
    indent: int


class SclFormatter:
    """
    Formats SCL source files to consistent style.

    The formatter works line by line:
    1. Protect strings and inline comments
    2. Normalize keyword case and operator spacing
    3. Pick the indent level from a stack of open constructs
    4. Restore the protected text and re-attach any trailing // comment
    """

    def __init__(self, options: FormatOptions = None):
        self.options = options or FormatOptions()
        self._stack: List[_Frame] = []

    def format_file(self, file_path: Union[str, Path]) -> str:
        """Format a file and return the formatted content."""
        logger.debug("Formatting %s", file_path)
        return self.format_string(read_source(file_path), str(file_path))

    def format_string(self, content: str, filename: str = "<string>") -> str:
        """Format a string of SCL content."""
        self._stack = []
        output = []
        in_comment = False

        for raw in split_lines(content):
            if in_comment:
                # Inside a multi-line (* *) comment: keep the text as written
                output.append(raw.rstrip())
                _, in_comment, _ = strip_comments(raw, True)
                continue

            stripped = raw.strip()
            if not stripped:
                output.append("")
                continue

            _, opens_comment, _ = strip_comments(stripped)
            if opens_comment:
                output.append(self._indent(self._level()) + stripped)
                in_comment = True
                continue

            if stripped.startswith("{"):
                output.append(self._indent(self._level()) + stripped)
                continue

            output.append(self._format_line(stripped))

        if self._stack:
            logger.debug("%s: %d construct(s) still open at end of file", filename, len(self._stack))
        return "\n".join(output)

    # ------------------------------------------------------------------
    # Single line
    # ------------------------------------------------------------------

    def _format_line(self, stripped: str) -> str:
        index = find_line_comment(stripped)
        if index < 0:
            code, comment = stripped, ""
        else:
            code, comment = stripped[:index].rstrip(), stripped[index:]

        protected, saved = self._protect(code)
        normalized = self._normalize(protected)
        level = self._place(normalized.upper())
        text = _RESTORE_RE.sub(lambda m: saved[int(m.group(1))], normalized)

        if comment:
            text = f"{text}  {comment}" if text else comment
        return self._indent(level) + text

    def _protect(self, code: str) -> Tuple[str, List[str]]:
        saved: List[str] = []

        def stash(match):
            saved.append(match.group(0))
            return f"\x00{len(saved) - 1}\x00"

        return _PROTECT_RE.sub(stash, code), saved

    def _normalize(self, text: str) -> str:
        if self.options.uppercase_keywords:
            text = _WORD_RE.sub(self._upper_keyword, text)
        text = _ASSIGN_RE.sub(" := ", text)
        text = _COLON_RE.sub(r"\1 : ", text)
        text = _COMMA_RE.sub(", ", text)
        text = _SPACES_RE.sub(" ", text)
        return text.strip()

    @staticmethod
    def _upper_keyword(match) -> str:
        word = match.group(0)
        upper = word.upper()
        return upper if upper in FORMAT_KEYWORDS else word

    def _indent(self, level: int) -> str:
        return self.options.indent_char * (self.options.indent_size * level)

    # ------------------------------------------------------------------
    # Nesting
    # ------------------------------------------------------------------

    def _level(self) -> int:
        return self._stack[-1].indent + 1 if self._stack else 0

    def _push(self, kind: str, indent: int) -> int:
        self._stack.append(_Frame(kind, indent))
        return indent

    def _find(self, *kinds: str) -> int:
        for position in range(len(self._stack) - 1, -1, -1):
            if self._stack[position].kind in kinds:
                return position
        return -1

    def _rewind(self, *kinds: str) -> Optional[_Frame]:
        """Drop frames above the nearest frame of ``kinds`` and return it."""
        position = self._find(*kinds)
        if position < 0:
            return None
        del self._stack[position + 1:]
        return self._stack[position]

    def _close(self, *kinds: str) -> int:
        """Pop through the nearest frame of ``kinds``; stray closers stay at the current level."""
        position = self._find(*kinds)
        if position < 0:
            return self._level()
        indent = self._stack[position].indent
        del self._stack[position:]
        return indent

    def _place(self, upper: str) -> int:
        """Indent level for a line, updating the frame stack."""
        level = self._level()
        top = self._stack[-1].kind if self._stack else None

        if top in ("CASE", "LABEL") and _LABEL_RE.match(upper):
            case = self._rewind("CASE")
            return self._push("LABEL", case.indent + 1)

        if _DECL_HEAD_RE.match(upper):
            if _INLINE_STRUCT_RE.search(upper):
                return self._push("VAR", level)
            return level

        if any(match_keyword(upper, k) for k in BLOCK_END_TO_OPEN):
            return self._close("BLOCK")
        if any(match_keyword(upper, k) for k in BLOCK_PAIRS):
            return self._push("BLOCK", level)
        if match_keyword(upper, "END_INTERFACE"):
            return self._close("INTERFACE")
        if match_keyword(upper, "INTERFACE"):
            return self._push("INTERFACE", level)

        if match_keyword(upper, "BEGIN"):
            block = self._rewind("BLOCK")
            return block.indent if block else level

        if any(match_keyword(upper, k) for k in VAR_CLOSES):
            return self._close("VAR")
        if any(match_keyword(upper, k) for k in VAR_OPENS):
            return self._push("VAR", level)

        return self._place_control(upper, level)

    def _place_control(self, upper: str, level: int) -> int:
        if _IF_RE.match(upper):
            return self._push("IF", level)
        if match_keyword(upper, "ELSIF"):
            frame = self._rewind("IF")
            return frame.indent if frame else level
        if match_keyword(upper, "ELSE"):
            position = self._find("IF", "CASE")
            if position < 0:
                return level
            if self._stack[position].kind == "IF":
                return self._rewind("IF").indent
            case = self._rewind("CASE")
            return self._push("LABEL", case.indent + 1)
        if match_keyword(upper, "END_IF"):
            return self._close("IF")

        loop = _LOOP_RE.match(upper)
        if loop:
            return self._push(loop.group(1), level)
        if match_keyword(upper, "END_FOR"):
            return self._close("FOR")
        if match_keyword(upper, "END_WHILE"):
            return self._close("WHILE")

        if match_keyword(upper, "REPEAT"):
            return self._push("REPEAT", level)
        if match_keyword(upper, "UNTIL"):
            frame = self._rewind("REPEAT")
            if frame is None:
                return level
            if re.search(r"\bEND_REPEAT\b", upper):
                return self._close("REPEAT")
            return frame.indent
        if match_keyword(upper, "END_REPEAT"):
            return self._close("REPEAT")

        if _CASE_RE.match(upper):
            return self._push("CASE", level)
        if match_keyword(upper, "END_CASE"):
            return self._close("CASE")

        if match_keyword(upper, "REGION"):
            return self._push("REGION", level)
        if match_keyword(upper, "END_REGION"):
            return self._close("REGION")

        return level


def format_source(content: str, options: FormatOptions = None) -> str:
    """Convenience function to format a string."""
    return SclFormatter(options).format_string(content)


def check_formatted(file_path: Path, options: FormatOptions = None) -> bool:
    """Check if a file is already formatted. Returns True if formatted."""
    formatter = SclFormatter(options)
    original = read_source(file_path)
    return formatter.format_string(original, str(file_path)) == original


def format_directory(dir_path: Path, pattern: str = "*.scl",
                     recursive: bool = True, inplace: bool = False,
                     options: FormatOptions = None) -> List[Path]:
    """Format all matching files in a directory."""
    formatter = SclFormatter(options)
    formatted_files = []

    glob_method = dir_path.rglob if recursive else dir_path.glob

    for file_path in sorted(glob_method(pattern)):
        if not file_path.is_file():
            continue

        try:
            result = formatter.format_file(file_path)
        except OSError as e:
            print(f"Error formatting {file_path}: {e}", file=sys.stderr)
            continue

        if inplace:
            with open(file_path, "w", encoding="utf-8", newline="") as f:
                f.write(result)

        formatted_files.append(file_path)

    return formatted_files


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Format SCL source files")
    parser.add_argument("path", type=Path, help="File or directory to format")
    parser.add_argument("--inplace", "-i", action="store_true",
                        help="Modify files in place")
    parser.add_argument("--check", "-c", action="store_true",
                        help="Check if files are formatted (exit 1 if not)")
    parser.add_argument("--recursive", "-r", action="store_true",
                        help="Recursively format directory")
    parser.add_argument("--indent-size", type=int, default=4,
                        help="Spaces per indent level")
    parser.add_argument("--keep-case", action="store_true",
                        help="Do not uppercase keywords")

    args = parser.parse_args(argv)

    options = FormatOptions(indent_size=args.indent_size,
                            uppercase_keywords=not args.keep_case)
    formatter = SclFormatter(options)

    if args.path.is_file():
        if args.check:
            if check_formatted(args.path, options):
                print(f"{args.path} is formatted")
                return 0
            print(f"{args.path} needs formatting")
            return 1

        try:
            result = formatter.format_file(args.path)
        except OSError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        if args.inplace:
            with open(args.path, "w", encoding="utf-8", newline="") as f:
                f.write(result)
            print(f"Formatted: {args.path}")
        else:
            print(result)
        return 0

    if args.path.is_dir():
        files = format_directory(args.path, recursive=args.recursive,
                                 inplace=args.inplace, options=options)
        print(f"Formatted {len(files)} files")
        return 0

    print(f"Error: {args.path} not found", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())

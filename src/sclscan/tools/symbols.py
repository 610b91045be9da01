"""
SCL Symbols

Outline and go-to-definition over the structural model:
- build_outline: Block -> variable section -> variable tree
- find_definition: resolve #name, "BlockName" or a bare word at a cursor

Usage:
    python -m sclscan.tools.symbols <file>                     # Print outline
    python -m sclscan.tools.symbols <file> --define LINE:COL   # Resolve definition (1-based)
"""

import argparse
import json
import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..scanner import BlockKind, StructuralModel, VarSection, read_source, scan_source
from ..scanner.preprocess import split_lines

_SIGIL_WORD_RE = re.compile(r"#[A-Za-z_]\w*")
_WORD_RE = re.compile(r"[A-Za-z_]\w*")


class SymbolKind(Enum):
    """Outline symbol kinds (editor symbol categories)."""
    CLASS = "class"
    FUNCTION = "function"
    EVENT = "event"
    STRUCT = "struct"
    NAMESPACE = "namespace"
    PROPERTY = "property"
    VARIABLE = "variable"


BLOCK_SYMBOL_KINDS = {
    BlockKind.FUNCTION_BLOCK: SymbolKind.CLASS,
    BlockKind.FUNCTION: SymbolKind.FUNCTION,
    BlockKind.ORGANIZATION_BLOCK: SymbolKind.EVENT,
    BlockKind.DATA_BLOCK: SymbolKind.STRUCT,
    BlockKind.TYPE: SymbolKind.STRUCT,
}

PARAMETER_SECTIONS = (VarSection.VAR_INPUT, VarSection.VAR_OUTPUT, VarSection.VAR_IN_OUT)


@dataclass(frozen=True)
class Range:
    """0-based line/column range."""
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "start_line": self.start_line,
            "start_column": self.start_column,
            "end_line": self.end_line,
            "end_column": self.end_column,
        }


@dataclass
class OutlineSymbol:
    name: str
    detail: str
    kind: SymbolKind
    range: Range
    selection_range: Range
    children: List["OutlineSymbol"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "detail": self.detail,
            "kind": self.kind.value,
            "range": self.range.to_dict(),
            "selection_range": self.selection_range.to_dict(),
            "children": [c.to_dict() for c in self.children],
        }


@dataclass(frozen=True)
class Location:
    """A definition site."""
    line: int
    column: int
    file: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "line": self.line, "column": self.column}

    def __str__(self):
        return f"{self.file or '<unknown>'}:{self.line + 1}:{self.column + 1}"


# ============================================================================
# OUTLINE
# ============================================================================

def build_outline(model: StructuralModel, text: str = "") -> List[OutlineSymbol]:
    """
    Build the block outline.

    ``text`` is only used for end-of-line columns; without it those are 0.
    """
    lines = split_lines(text) if text else []

    def line_length(index: int) -> int:
        return len(lines[index]) if 0 <= index < len(lines) else 0

    symbols = []
    for block in model.blocks:
        end_line = block.end_line if block.is_closed else block.start_line
        block_symbol = OutlineSymbol(
            name=block.display_name,
            detail=block.kind.value.replace("_", " "),
            kind=BLOCK_SYMBOL_KINDS[block.kind],
            range=Range(block.start_line, 0, end_line, line_length(end_line)),
            selection_range=Range(block.start_line, 0, block.start_line, line_length(block.start_line)),
        )

        # Group by section, in order of first appearance
        sections: Dict[VarSection, list] = {}
        for var in model.variables_in(block.name):
            sections.setdefault(var.section, []).append(var)

        for section, variables in sections.items():
            # Header is assumed one line above the first variable, END_VAR one below the last
            start = max(variables[0].line - 1, block.start_line)
            end = min(variables[-1].line + 1, end_line)
            section_symbol = OutlineSymbol(
                name=section.value,
                detail=f"{len(variables)} variable(s)",
                kind=SymbolKind.NAMESPACE,
                range=Range(start, 0, end, 0),
                selection_range=Range(start, 0, start, len(section.value)),
            )
            for var in variables:
                section_symbol.children.append(OutlineSymbol(
                    name=var.name,
                    detail=var.declared_type,
                    kind=SymbolKind.PROPERTY if var.section in PARAMETER_SECTIONS else SymbolKind.VARIABLE,
                    range=Range(var.line, 0, var.line, line_length(var.line)),
                    selection_range=Range(var.line, var.column, var.line, var.column + len(var.name)),
                ))
            block_symbol.children.append(section_symbol)

        symbols.append(block_symbol)

    return symbols


def render_outline(symbols: List[OutlineSymbol], depth: int = 0) -> str:
    """Indented text tree of an outline."""
    lines = []
    for symbol in symbols:
        lines.append(f"{'  ' * depth}{symbol.name} [{symbol.kind.value}] {symbol.detail} "
                     f"(line {symbol.range.start_line + 1})")
        if symbol.children:
            lines.append(render_outline(symbol.children, depth + 1))
    return "\n".join(lines)


# ============================================================================
# DEFINITION
# ============================================================================

def _word_at(line: str, column: int, pattern) -> Optional[str]:
    # A cursor just past the last character still counts as on the word
    for match in pattern.finditer(line):
        if match.start() <= column <= match.end():
            return match.group(0)
    return None


def _quoted_name_at(line: str, column: int) -> Optional[str]:
    """Text between the nearest " at or before column and the next one after it."""
    start = line.rfind('"', 0, column + 1)
    if start < 0:
        return None
    end = line.find('"', max(column, start + 1))
    if end <= start:
        return None
    return line[start + 1:end]


def _find_variable(model: StructuralModel, name: str, filename: str) -> Optional[Location]:
    lower = name.lower()
    for var in model.variables:
        if var.name.lower() == lower:
            return Location(var.line, var.column, filename)
    return None


def find_definition(text: str, line: int, column: int,
                    model: Optional[StructuralModel] = None,
                    filename: str = "") -> Optional[Location]:
    """
    Resolve the symbol at (line, column), both 0-based.

    #name resolves to the first variable of that name (case-insensitive),
    a position inside "..." to the block with exactly that name, and any
    other identifier, including one inside quotes that names no block, to
    a variable.
    """
    lines = split_lines(text)
    if not 0 <= line < len(lines):
        return None
    if model is None:
        model = scan_source(text, filename or "<unknown>")
    source_line = lines[line]

    sigil = _word_at(source_line, column, _SIGIL_WORD_RE)
    if sigil:
        return _find_variable(model, sigil[1:], filename)

    quoted = _quoted_name_at(source_line, column)
    if quoted:
        block = model.find_block(quoted)
        if block:
            return Location(block.start_line, 0, filename)

    word = _word_at(source_line, column, _WORD_RE)
    if word:
        return _find_variable(model, word, filename)
    return None


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Outline and definitions for SCL files")
    parser.add_argument("path", type=Path, help="File to inspect")
    parser.add_argument("--define", metavar="LINE:COL",
                        help="Resolve the definition at a 1-based position")
    parser.add_argument("--json", action="store_true", help="Output as JSON")

    args = parser.parse_args(argv)

    if not args.path.is_file():
        print(f"Error: {args.path} not found", file=sys.stderr)
        return 1

    text = read_source(args.path)
    model = scan_source(text, str(args.path))

    if args.define:
        try:
            line, column = (int(part) - 1 for part in args.define.split(":", 1))
        except ValueError:
            print(f"Error: expected LINE:COL, got {args.define!r}", file=sys.stderr)
            return 1
        location = find_definition(text, line, column, model, str(args.path))
        if location is None:
            print("No definition found", file=sys.stderr)
            return 1
        print(json.dumps(location.to_dict()) if args.json else str(location))
        return 0

    symbols = build_outline(model, text)
    if args.json:
        print(json.dumps([s.to_dict() for s in symbols], indent=2))
    else:
        print(render_outline(symbols))
    return 0


if __name__ == "__main__":
    sys.exit(main())

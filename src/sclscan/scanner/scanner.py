"""
SCL Structural Scanner

Stack-based structure tracker for SCL source files. Not a full parser: it
classifies each logical line and tracks three independent nesting stacks
(blocks, variable sections, control flow) to produce a flat
StructuralModel.

Scanning is total. Unbalanced or garbage input never raises; it shows up
as unmatched opens/closes in the model instead.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from sclscan.scanner.keywords import (
    BLOCK_END_TO_OPEN,
    BLOCK_PAIRS,
    CONTROL_END_TO_OPEN,
    LOOP_KEYWORDS,
    VAR_CLOSES,
    VAR_OPENS,
    BlockKind,
    Family,
    VarSection,
    is_reserved,
    match_keyword,
)
from sclscan.scanner.model import BlockDecl, StackEntry, StructuralModel, VariableDecl
from sclscan.scanner.preprocess import CleanedLine, clean_line, split_lines

logger = logging.getLogger(__name__)

SCANNER_VERSION = "1.1"

_SIGIL_RE = re.compile(r"#([A-Za-z_]\w*)")
_BLOCK_NAME_RE = re.compile(r'"([^"]+)"')
_VERSION_RE = re.compile(r"VERSION\b")
_CONSTANT_RE = re.compile(r"\bCONSTANT\b")

# name : type [:= default] ;
_DECL_RE = re.compile(r"^(\w+)\s*:\s*(.+?)(?:\s*:=\s*.+?)?\s*;")
# name : type   (no terminator on this line)
_DECL_LOOSE_RE = re.compile(r"^(\w+)\s*:\s*(\S+)")
# member typed STRUCT or ARRAY[..] OF STRUCT
_INLINE_STRUCT_RE = re.compile(r"\bSTRUCT\s*;?$")

_LOOP_OPENERS = ("FOR", "WHILE", "REPEAT", "REGION")


@dataclass
class ScanState:
    """Mutable scan state carried from one line to the next."""
    block_stack: List[Tuple[StackEntry, BlockDecl]] = field(default_factory=list)
    var_stack: List[StackEntry] = field(default_factory=list)
    control_stack: List[StackEntry] = field(default_factory=list)
    after_begin: bool = False
    in_block_comment: bool = False

    @property
    def current_block(self) -> Optional[BlockDecl]:
        """Block owning declarations: the top of the block stack."""
        return self.block_stack[-1][1] if self.block_stack else None

    @property
    def current_section(self) -> Optional[VarSection]:
        """Section owning declarations: the top of the variable-section stack."""
        if not self.var_stack:
            return None
        return VarSection(self.var_stack[-1].keyword)


class Scanner:
    """
    Line-by-line structural scanner.

    Usage:
        scanner = Scanner()
        for index, line in enumerate(lines):
            scanner.feed_line(index, line)
        model = scanner.finish()
    """

    def __init__(self):
        self.state = ScanState()
        self.model = StructuralModel()
        self._finished = False

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def feed_line(self, index: int, raw: str) -> None:
        """Preprocess and classify one physical line."""
        self.model.line_count = max(self.model.line_count, index + 1)

        cleaned = clean_line(raw, self.state.in_block_comment)
        self.state.in_block_comment = cleaned.in_block_comment
        if cleaned.skipped or not cleaned.active.strip():
            return

        self._classify(index, cleaned)

    def finish(self) -> StructuralModel:
        """Flush every frame still open into the unmatched-opens list."""
        if not self._finished:
            self.model.unmatched_opens.extend(entry for entry, _ in self.state.block_stack)
            self.model.unmatched_opens.extend(self.state.var_stack)
            self.model.unmatched_opens.extend(self.state.control_stack)
            self._finished = True
        return self.model

    # ------------------------------------------------------------------
    # Classification (first match wins)
    # ------------------------------------------------------------------

    def _classify(self, index: int, cleaned: CleanedLine) -> None:
        state = self.state
        active = cleaned.active
        trimmed = active.strip()
        upper = trimmed.upper()
        column = len(active) - len(active.lstrip())

        # #name references never preempt the rest of the classification
        for match in _SIGIL_RE.finditer(cleaned.original):
            self.model.used_variables.add(match.group(1).lower())

        block = state.current_block

        if trimmed.startswith("{"):
            if block:
                block.has_pragma = True
            return

        if _VERSION_RE.match(upper):
            if block:
                block.has_version_marker = True
            return

        if self._block_open(index, column, upper, cleaned.original):
            return
        if self._block_close(index, column, upper):
            return

        if match_keyword(upper, "BEGIN"):
            if block:
                block.has_begin_section = True
            state.after_begin = True
            return

        if self._var_section(index, column, upper):
            return

        if state.current_section is not None and not state.after_begin:
            self._declaration(index, cleaned.original)
            return

        if state.after_begin:
            self._statement(index, column, trimmed, upper)

    def _block_open(self, index: int, column: int, upper: str, original: str) -> bool:
        for keyword in BLOCK_PAIRS:
            if match_keyword(upper, keyword):
                name_match = _BLOCK_NAME_RE.search(original)
                block = BlockDecl(
                    kind=BlockKind(keyword),
                    name=name_match.group(1) if name_match else "",
                    start_line=index,
                )
                entry = StackEntry(keyword, index, column, Family.BLOCK)
                self.model.blocks.append(block)
                self.state.block_stack.append((entry, block))
                self.state.after_begin = False
                return True
        return False

    def _block_close(self, index: int, column: int, upper: str) -> bool:
        state = self.state
        for keyword in BLOCK_END_TO_OPEN:
            if match_keyword(upper, keyword):
                if state.block_stack and BLOCK_PAIRS[state.block_stack[-1][0].keyword] == keyword:
                    _, block = state.block_stack.pop()
                    block.end_line = index
                    state.after_begin = False
                else:
                    self.model.unmatched_closes.append(StackEntry(keyword, index, column, Family.BLOCK))
                return True
        return False

    def _var_section(self, index: int, column: int, upper: str) -> bool:
        state = self.state

        for keyword in VAR_CLOSES:
            if match_keyword(upper, keyword):
                if state.var_stack:
                    state.var_stack.pop()
                else:
                    self.model.unmatched_closes.append(StackEntry(keyword, index, column, Family.VAR))
                return True

        # VAR CONSTANT / VAR RETAIN CONSTANT
        if match_keyword(upper, "VAR") and _CONSTANT_RE.search(upper):
            state.var_stack.append(StackEntry(VarSection.VAR_CONSTANT.value, index, column, Family.VAR))
            return True

        for keyword in VAR_OPENS:
            if match_keyword(upper, keyword):
                state.var_stack.append(StackEntry(keyword, index, column, Family.VAR))
                return True

        return False

    def _declaration(self, index: int, original: str) -> None:
        """Record ``name : type`` inside an open variable section."""
        state = self.state
        stripped = original.strip()
        match = _DECL_RE.match(stripped) or _DECL_LOOSE_RE.match(stripped)
        if not match or is_reserved(match.group(1)):
            return

        name = match.group(1)
        declared_type = match.group(2).strip().rstrip(";").strip()
        block = state.current_block
        column = len(original) - len(original.lstrip())
        self.model.variables.append(VariableDecl(
            name=name,
            declared_type=declared_type,
            section=state.current_section,
            owning_block=block.name if block else "",
            line=index,
            column=column,
        ))

        # Inline "member : STRUCT" opens a nested member section
        if _INLINE_STRUCT_RE.search(stripped.upper()):
            state.var_stack.append(StackEntry(VarSection.STRUCT.value, index, column, Family.VAR))

    def _statement(self, index: int, column: int, trimmed: str, upper: str) -> None:
        """Executable code after BEGIN."""
        state = self.state
        model = self.model
        block = state.current_block
        stack = state.control_stack

        if block and trimmed != ";" and not upper.startswith("END_"):
            block.has_executable_code = True

        if match_keyword(upper, "CASE"):
            stack.append(StackEntry("CASE", index, column, Family.CONTROL))
            if block:
                block.case_else[index] = False
            return

        if match_keyword(upper, "ELSE") and stack:
            top = stack[-1]
            if top.keyword == "CASE" and block and top.line in block.case_else:
                block.case_else[top.line] = True
            return

        # ELSIF never matches IF: the keyword must be followed by a separator
        if match_keyword(upper, "IF"):
            stack.append(StackEntry("IF", index, column, Family.CONTROL))

        for keyword in _LOOP_OPENERS:
            if match_keyword(upper, keyword):
                stack.append(StackEntry(keyword, index, column, Family.CONTROL))
                break

        for keyword, opener in CONTROL_END_TO_OPEN.items():
            if match_keyword(upper, keyword):
                if stack and stack[-1].keyword == opener:
                    stack.pop()
                else:
                    model.unmatched_closes.append(StackEntry(keyword, index, column, Family.CONTROL))
                break

        for keyword in ("EXIT", "CONTINUE"):
            if match_keyword(upper, keyword):
                if not any(entry.keyword in LOOP_KEYWORDS for entry in stack):
                    model.exit_outside_loop.append(StackEntry(keyword, index, column, Family.CONTROL))
                break


def scan_source(source: str, filename: str = "<unknown>") -> StructuralModel:
    """Scan source text into a StructuralModel. Never raises."""
    scanner = Scanner()
    for index, line in enumerate(split_lines(source)):
        scanner.feed_line(index, line)
    model = scanner.finish()

    logger.debug(
        "Scanned %s: %d lines, %d blocks, %d variables, %d unmatched opens, %d unmatched closes",
        filename, model.line_count, len(model.blocks), len(model.variables),
        len(model.unmatched_opens), len(model.unmatched_closes),
    )
    return model


def read_source(filepath: Union[str, Path]) -> str:
    """Read a source file. Handles encoding fallback."""
    # UTF-8 with BOM first, then UTF-8, then latin-1 (which always succeeds)
    for encoding in ("utf-8-sig", "utf-8"):
        try:
            with open(filepath, "r", encoding=encoding, newline="") as f:
                return f.read()
        except UnicodeDecodeError:
            continue
    with open(filepath, "r", encoding="latin-1", newline="") as f:
        return f.read()


def scan_file(filepath: Union[str, Path]) -> StructuralModel:
    """Scan a file into a StructuralModel."""
    return scan_source(read_source(filepath), filename=str(filepath))

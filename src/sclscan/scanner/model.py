"""
Structural model produced by the scanner.

Flat, serialisable records: blocks, variable declarations, referenced
variable names and the unbalanced-delimiter feeder lists consumed by the
lint rules.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from sclscan.scanner.keywords import BlockKind, Family, VarSection


@dataclass
class StackEntry:
    """An open delimiter awaiting its closer (or a stray closer)."""
    keyword: str
    line: int
    column: int = 0
    family: Optional[Family] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "line": self.line,
            "column": self.column,
            "family": self.family.value if self.family else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StackEntry":
        family = data.get("family")
        return cls(
            keyword=data["keyword"],
            line=data["line"],
            column=data.get("column", 0),
            family=Family(family) if family else None,
        )


@dataclass
class BlockDecl:
    """
    A named top-level block.

    Created when the opener is scanned and updated in place until its closer
    is seen; ``end_line`` stays -1 for a block that is never closed.
    """
    kind: BlockKind
    name: str
    start_line: int
    end_line: int = -1
    has_version_marker: bool = False
    has_pragma: bool = False
    has_begin_section: bool = False
    has_executable_code: bool = False
    # CASE line -> ELSE branch seen before END_CASE
    case_else: Dict[int, bool] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.kind.value

    @property
    def is_closed(self) -> bool:
        return self.end_line >= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "has_version_marker": self.has_version_marker,
            "has_pragma": self.has_pragma,
            "has_begin_section": self.has_begin_section,
            "has_executable_code": self.has_executable_code,
            # JSON object keys must be strings
            "case_else": [[line, seen] for line, seen in self.case_else.items()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockDecl":
        return cls(
            kind=BlockKind(data["kind"]),
            name=data["name"],
            start_line=data["start_line"],
            end_line=data.get("end_line", -1),
            has_version_marker=data.get("has_version_marker", False),
            has_pragma=data.get("has_pragma", False),
            has_begin_section=data.get("has_begin_section", False),
            has_executable_code=data.get("has_executable_code", False),
            case_else={line: seen for line, seen in data.get("case_else", [])},
        )


@dataclass(frozen=True)
class VariableDecl:
    """One declared variable."""
    name: str
    declared_type: str
    section: VarSection
    owning_block: str      # "" when declared outside any block
    line: int
    column: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "declared_type": self.declared_type,
            "section": self.section.value,
            "owning_block": self.owning_block,
            "line": self.line,
            "column": self.column,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VariableDecl":
        return cls(
            name=data["name"],
            declared_type=data["declared_type"],
            section=VarSection(data["section"]),
            owning_block=data.get("owning_block", ""),
            line=data["line"],
            column=data.get("column", 0),
        )


@dataclass
class StructuralModel:
    """Everything the scanner recovers from one document."""
    blocks: List[BlockDecl] = field(default_factory=list)
    variables: List[VariableDecl] = field(default_factory=list)
    used_variables: Set[str] = field(default_factory=set)   # lower-cased #names
    unmatched_opens: List[StackEntry] = field(default_factory=list)
    unmatched_closes: List[StackEntry] = field(default_factory=list)
    exit_outside_loop: List[StackEntry] = field(default_factory=list)
    line_count: int = 0

    @property
    def is_balanced(self) -> bool:
        return not self.unmatched_opens and not self.unmatched_closes

    def find_block(self, name: str) -> Optional[BlockDecl]:
        """First block with exactly this name."""
        for block in self.blocks:
            if block.name == name:
                return block
        return None

    def variables_in(self, block_name: str) -> List[VariableDecl]:
        return [v for v in self.variables if v.owning_block == block_name]

    def opens_of(self, family: Family) -> List[StackEntry]:
        return [e for e in self.unmatched_opens if e.family == family]

    def closes_of(self, family: Family) -> List[StackEntry]:
        return [e for e in self.unmatched_closes if e.family == family]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blocks": [b.to_dict() for b in self.blocks],
            "variables": [v.to_dict() for v in self.variables],
            "used_variables": sorted(self.used_variables),
            "unmatched_opens": [e.to_dict() for e in self.unmatched_opens],
            "unmatched_closes": [e.to_dict() for e in self.unmatched_closes],
            "exit_outside_loop": [e.to_dict() for e in self.exit_outside_loop],
            "line_count": self.line_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuralModel":
        return cls(
            blocks=[BlockDecl.from_dict(b) for b in data.get("blocks", [])],
            variables=[VariableDecl.from_dict(v) for v in data.get("variables", [])],
            used_variables=set(data.get("used_variables", [])),
            unmatched_opens=[StackEntry.from_dict(e) for e in data.get("unmatched_opens", [])],
            unmatched_closes=[StackEntry.from_dict(e) for e in data.get("unmatched_closes", [])],
            exit_outside_loop=[StackEntry.from_dict(e) for e in data.get("exit_outside_loop", [])],
            line_count=data.get("line_count", 0),
        )

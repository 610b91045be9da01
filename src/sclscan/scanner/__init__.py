"""
sclscan.scanner - SCL Structural Scanner

Comment/string stripping and stack-based nesting tracking for SCL source.
Converts source text into a flat StructuralModel.
"""

from sclscan.scanner.keywords import BlockKind, Family, VarSection, match_keyword
from sclscan.scanner.model import (
    BlockDecl,
    StackEntry,
    StructuralModel,
    VariableDecl,
)
from sclscan.scanner.preprocess import CleanedLine, clean_line, split_lines
from sclscan.scanner.scanner import (
    SCANNER_VERSION,
    Scanner,
    ScanState,
    read_source,
    scan_file,
    scan_source,
)

__all__ = [
    # Keywords
    "BlockKind",
    "Family",
    "VarSection",
    "match_keyword",
    # Preprocessing
    "CleanedLine",
    "clean_line",
    "split_lines",
    # Scanner
    "SCANNER_VERSION",
    "Scanner",
    "ScanState",
    "read_source",
    "scan_file",
    "scan_source",
    # Model
    "BlockDecl",
    "StackEntry",
    "StructuralModel",
    "VariableDecl",
]

"""
sclscan.tools - Analysis and Editing Utilities

Standalone tools built on the structural scanner:
- lint: Diagnostic rules (SCL001-SCL201)
- fixes: Quick fixes for some diagnostics
- format: SCL formatter/beautifier
- symbols: Outline and go-to-definition
"""

# Linter
from .lint import (
    Diagnostic,
    LintRule,
    SclLinter,
    Severity,
    default_rules,
    lint_directory,
    lint_file,
    lint_source,
    run_rules,
)

# Quick fixes
from .fixes import QuickFix, TextEdit, apply_edits, fix_source, fixes_for

# Formatter
from .format import FormatOptions, SclFormatter, format_source

# Symbols
from .symbols import Location, OutlineSymbol, SymbolKind, build_outline, find_definition

__all__ = [
    # Lint
    "Diagnostic",
    "LintRule",
    "SclLinter",
    "Severity",
    "default_rules",
    "lint_directory",
    "lint_file",
    "lint_source",
    "run_rules",
    # Fixes
    "QuickFix",
    "TextEdit",
    "apply_edits",
    "fix_source",
    "fixes_for",
    # Format
    "FormatOptions",
    "SclFormatter",
    "format_source",
    # Symbols
    "Location",
    "OutlineSymbol",
    "SymbolKind",
    "build_outline",
    "find_definition",
]

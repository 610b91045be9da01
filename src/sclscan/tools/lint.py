"""
SCL Linter

Runs a fixed set of diagnostic rules over the structural model of an SCL
file:
- Unbalanced blocks, variable sections and control flow (errors)
- Duplicate variables, EXIT/CONTINUE outside loops (errors)
- Unused variables, missing VERSION/pragma, CASE without ELSE,
  empty BEGIN sections (warnings)
- Block naming convention (hints)

Error codes:
    SCL001-SCL099: Errors
    SCL101-SCL199: Warnings
    SCL201-SCL299: Hints

Usage:
    python -m sclscan.tools.lint <file>                    # Lint single file
    python -m sclscan.tools.lint <directory> --recursive   # Lint all files
    python -m sclscan.tools.lint <file> --json             # JSON output
"""

import argparse
import json
import logging
import sys
from collections import defaultdict
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..config import LintConfig, get_config
from ..errors import ConfigError
from ..scanner import BlockKind, Family, StructuralModel, VarSection, read_source, scan_source
from ..scanner.keywords import BLOCK_PAIRS, NAMING_PREFIXES, USER_TYPE_PREFIX
from ..scanner.preprocess import split_lines

logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE = "SCL"


class Severity(Enum):
    """Lint issue severity levels."""
    ERROR = "error"         # Structural imbalance, will not compile
    WARNING = "warning"     # Likely a bug or missing hygiene
    INFO = "info"           # Informational
    HINT = "hint"           # Style suggestions

    @property
    def rank(self) -> int:
        return list(Severity).index(self)


@dataclass(frozen=True)
class Diagnostic:
    """
    A single lint finding.

    ``line`` and ``column`` are 0-based like the structural model; the
    string form prints them 1-based.
    """
    line: int
    column: int
    message: str
    severity: Severity
    code: str               # e.g. "SCL001", "SCL101"
    end_column: Optional[int] = None
    file: str = ""

    def __str__(self):
        prefix = {
            Severity.ERROR: "[ERROR]",
            Severity.WARNING: "[WARNING]",
            Severity.INFO: "[INFO]",
            Severity.HINT: "[HINT]"
        }[self.severity]

        loc = f"{self.file or '<unknown>'}:{self.line + 1}:{self.column + 1}"
        return f"{prefix} {self.code} {loc}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line,
            "column": self.column,
            "end_column": self.end_column,
            "message": self.message,
            "severity": self.severity.value,
            "code": self.code,
            "source": DIAGNOSTIC_SOURCE,
            "file": self.file,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Diagnostic":
        return cls(
            line=data["line"],
            column=data["column"],
            message=data["message"],
            severity=Severity(data["severity"]),
            code=data["code"],
            end_column=data.get("end_column"),
            file=data.get("file", ""),
        )


# ============================================================================
# LINTER RULES
# ============================================================================

class LintRule:
    """Base class for lint rules. Rules are pure and never mutate the model."""

    code: str = "SCL000"
    severity: Severity = Severity.WARNING

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        """Check the model and return any issues found."""
        raise NotImplementedError

    def _diag(self, line: int, column: int, message: str) -> Diagnostic:
        return Diagnostic(
            line=line,
            column=column,
            message=message,
            severity=self.severity,
            code=self.code,
        )


class UnmatchedControlFlowRule(LintRule):
    """IF/FOR/WHILE/REPEAT/CASE/REGION without END_x, and the reverse."""

    code = "SCL001"
    severity = Severity.ERROR

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        issues = []
        for entry in model.opens_of(Family.CONTROL):
            issues.append(self._diag(
                entry.line, entry.column,
                f"'{entry.keyword}' has no matching 'END_{entry.keyword}'",
            ))
        for entry in model.closes_of(Family.CONTROL):
            opener = entry.keyword[len("END_"):]
            issues.append(self._diag(
                entry.line, entry.column,
                f"'{entry.keyword}' without matching '{opener}'",
            ))
        return issues


class UnmatchedVarSectionRule(LintRule):
    """VAR*/STRUCT without END_VAR/END_STRUCT, and the reverse."""

    code = "SCL002"
    severity = Severity.ERROR

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        issues = []
        for entry in model.opens_of(Family.VAR):
            closer = "END_STRUCT" if entry.keyword == "STRUCT" else "END_VAR"
            issues.append(self._diag(
                entry.line, entry.column,
                f"'{entry.keyword}' has no matching '{closer}'",
            ))
        for entry in model.closes_of(Family.VAR):
            issues.append(self._diag(
                entry.line, entry.column,
                f"'{entry.keyword}' without matching opening declaration",
            ))
        return issues


class UnmatchedBlockRule(LintRule):
    """Block declarations without their END_ keyword, and the reverse."""

    code = "SCL003"
    severity = Severity.ERROR

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        issues = []
        for entry in model.opens_of(Family.BLOCK):
            issues.append(self._diag(
                entry.line, entry.column,
                f"'{entry.keyword}' has no matching '{BLOCK_PAIRS[entry.keyword]}'",
            ))
        for entry in model.closes_of(Family.BLOCK):
            issues.append(self._diag(
                entry.line, entry.column,
                f"'{entry.keyword}' without matching block declaration",
            ))
        return issues


class DuplicateVariableRule(LintRule):
    """Same variable name declared twice in one block (case-insensitive)."""

    code = "SCL004"
    severity = Severity.ERROR

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        issues = []
        by_block: Dict[str, Dict[str, list]] = defaultdict(lambda: defaultdict(list))
        for var in model.variables:
            by_block[var.owning_block][var.name.lower()].append(var)

        for block_vars in by_block.values():
            for decls in block_vars.values():
                first = decls[0]
                for dup in decls[1:]:
                    issues.append(self._diag(
                        dup.line, dup.column,
                        f"Duplicate variable '{dup.name}' (first declared on line {first.line + 1})",
                    ))
        return issues


class ExitOutsideLoopRule(LintRule):
    """EXIT/CONTINUE with no enclosing FOR/WHILE/REPEAT."""

    code = "SCL005"
    severity = Severity.ERROR

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        return [
            self._diag(entry.line, entry.column,
                       f"'{entry.keyword}' used outside of a FOR/WHILE/REPEAT loop")
            for entry in model.exit_outside_loop
        ]


class UnusedVariableRule(LintRule):
    """Declared variables never referenced as #name."""

    code = "SCL101"
    severity = Severity.WARNING

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        issues = []
        for var in model.variables:
            # DATA_BLOCK and TYPE members are data, not code
            block = model.find_block(var.owning_block)
            if block and block.kind.is_data:
                continue
            # Outputs are conventionally write-only
            if var.section is VarSection.VAR_OUTPUT:
                continue
            if var.name.lower() not in model.used_variables:
                issues.append(self._diag(
                    var.line, var.column,
                    f"Variable '{var.name}' is declared but never used",
                ))
        return issues


class MissingVersionRule(LintRule):
    """Blocks without a VERSION line."""

    code = "SCL102"
    severity = Severity.WARNING

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        return [
            self._diag(block.start_line, 0,
                       f"Block '{block.display_name}' has no VERSION declaration")
            for block in model.blocks
            if not block.has_version_marker
        ]


class MissingPragmaRule(LintRule):
    """Code and data blocks without a { S7_Optimized_Access } pragma."""

    code = "SCL103"
    severity = Severity.WARNING

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        return [
            self._diag(block.start_line, 0,
                       f"Block '{block.display_name}' has no {{ S7_Optimized_Access }} pragma")
            for block in model.blocks
            if block.kind is not BlockKind.TYPE and not block.has_pragma
        ]


class CaseWithoutElseRule(LintRule):
    """CASE statements with no ELSE branch."""

    code = "SCL104"
    severity = Severity.WARNING

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        issues = []
        for block in model.blocks:
            for case_line, has_else in block.case_else.items():
                if not has_else:
                    issues.append(self._diag(case_line, 0, "CASE statement has no ELSE branch"))
        return issues


class EmptyBeginSectionRule(LintRule):
    """Code blocks whose BEGIN section holds no statements."""

    code = "SCL105"
    severity = Severity.WARNING

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        return [
            self._diag(block.start_line, 0,
                       f"Block '{block.display_name}' has an empty BEGIN section")
            for block in model.blocks
            if not block.kind.is_data and block.has_begin_section and not block.has_executable_code
        ]


class NamingConventionRule(LintRule):
    """FB_/FC_/DB_ prefixes on block names (case-sensitive)."""

    code = "SCL201"
    severity = Severity.HINT

    def __init__(self, prefixes: Optional[Dict[str, str]] = None,
                 allowed_prefixes: Optional[List[str]] = None):
        self.prefixes = dict(NAMING_PREFIXES) if prefixes is None else prefixes
        self.allowed_prefixes = [USER_TYPE_PREFIX] if allowed_prefixes is None else allowed_prefixes

    def check(self, model: StructuralModel) -> List[Diagnostic]:
        issues = []
        for block in model.blocks:
            expected = self.prefixes.get(block.kind.value)
            if not expected or not block.name:
                continue
            if block.name.startswith(expected):
                continue
            if any(block.name.startswith(p) for p in self.allowed_prefixes):
                continue
            issues.append(self._diag(
                block.start_line, 0,
                f"Block '{block.name}' does not follow naming convention '{expected}...'",
            ))
        return issues


def default_rules(config: Optional[LintConfig] = None) -> List[LintRule]:
    """The eleven built-in rules, in reporting order."""
    naming = (
        NamingConventionRule(config.naming_prefixes, config.allowed_name_prefixes)
        if config else NamingConventionRule()
    )
    return [
        UnmatchedControlFlowRule(),
        UnmatchedVarSectionRule(),
        UnmatchedBlockRule(),
        DuplicateVariableRule(),
        ExitOutsideLoopRule(),
        UnusedVariableRule(),
        MissingVersionRule(),
        MissingPragmaRule(),
        CaseWithoutElseRule(),
        EmptyBeginSectionRule(),
        naming,
    ]


def run_rules(model: StructuralModel, rules: Optional[List[LintRule]] = None) -> List[Diagnostic]:
    """Run every rule over the model and concatenate their findings."""
    diagnostics: List[Diagnostic] = []
    for rule in rules if rules is not None else default_rules():
        diagnostics.extend(rule.check(model))
    return diagnostics


# ============================================================================
# LINTER ENGINE
# ============================================================================

class SclLinter:
    """
    Main linter class: scans SCL text and runs rules against the model.
    """

    def __init__(self, rules: List[LintRule] = None, config: Optional[LintConfig] = None):
        self.config = config
        rules = rules if rules is not None else default_rules(config)
        if config:
            rules = [r for r in rules if config.is_rule_enabled(r.code)]
        self.rules = rules

    def lint_model(self, model: StructuralModel, filename: str = "") -> List[Diagnostic]:
        """Run the configured rules over an already scanned model."""
        overrides = self.config.severity_overrides if self.config else {}
        diagnostics = []
        for diag in run_rules(model, self.rules):
            if diag.code in overrides:
                diag = replace(diag, severity=Severity(overrides[diag.code]))
            diagnostics.append(replace(diag, file=filename))
        return diagnostics

    def lint_source(self, source: str, filename: str = "<unknown>") -> List[Diagnostic]:
        """Lint source text and return all issues, sorted by position."""
        return self.lint_scanned(scan_source(source, filename), source, filename)

    def lint_scanned(self, model: StructuralModel, source: str,
                     filename: str = "<unknown>") -> List[Diagnostic]:
        """Lint the model already scanned from ``source``, sorted by position."""
        diagnostics = resolve_end_columns(self.lint_model(model, filename), source)
        return sorted(diagnostics, key=lambda d: (d.line, d.column, d.code))

    def settings_key(self) -> str:
        """Stable description of what this linter reports, for result caching."""
        config = self.config
        parts = [
            ",".join(rule.code for rule in self.rules),
            repr(sorted(config.severity_overrides.items())) if config else "",
            repr(sorted(config.naming_prefixes.items())) if config else "",
            repr(config.allowed_name_prefixes) if config else "",
        ]
        return "|".join(parts)

    def lint_file(self, file_path: Union[str, Path]) -> List[Diagnostic]:
        """Lint a file and return all issues."""
        try:
            source = read_source(file_path)
        except OSError as e:
            logger.warning("Could not read %s: %s", file_path, e)
            return [Diagnostic(
                line=0,
                column=0,
                message=f"Could not read file: {e}",
                severity=Severity.ERROR,
                code="SCL000",
                file=str(file_path),
            )]
        return self.lint_source(source, str(file_path))


def resolve_end_columns(diagnostics: List[Diagnostic], source: str) -> List[Diagnostic]:
    """Fill in missing end columns: the right-trimmed line length, at least column + 1."""
    lines = split_lines(source)
    resolved = []
    for diag in diagnostics:
        if diag.end_column is None:
            text = lines[diag.line] if 0 <= diag.line < len(lines) else ""
            diag = replace(diag, end_column=max(len(text.rstrip()), diag.column + 1))
        resolved.append(diag)
    return resolved


def lint_source(source: str, filename: str = "<unknown>") -> List[Diagnostic]:
    """Convenience function to lint a string with the default rules."""
    return SclLinter().lint_source(source, filename)


def lint_file(file_path: Union[str, Path]) -> List[Diagnostic]:
    """Convenience function to lint a file."""
    return SclLinter().lint_file(file_path)


def iter_source_files(dir_path: Path, patterns: List[str], recursive: bool = True):
    """Yield files under dir_path matching any of the glob patterns."""
    glob_method = dir_path.rglob if recursive else dir_path.glob
    seen = set()
    for pattern in patterns:
        for file_path in sorted(glob_method(pattern)):
            if file_path.is_file() and file_path not in seen:
                seen.add(file_path)
                yield file_path


def lint_directory(dir_path: Path, pattern: str = "*.scl",
                   recursive: bool = True,
                   linter: Optional[SclLinter] = None) -> Dict[str, List[Diagnostic]]:
    """Lint all matching files in a directory."""
    linter = linter or SclLinter()
    patterns = linter.config.file_patterns if linter.config else [pattern]
    results = {}

    for file_path in iter_source_files(dir_path, patterns, recursive):
        issues = linter.lint_file(file_path)
        if issues:
            results[str(file_path)] = issues

    return results


def render_report(issues: List[Diagnostic], as_json: bool = False) -> str:
    """Human-readable or JSON rendering of a list of issues."""
    if as_json:
        return json.dumps([i.to_dict() for i in issues], indent=2)

    lines = [str(issue) for issue in issues]
    counts = defaultdict(int)
    for issue in issues:
        counts[issue.severity] += 1

    lines.append("")
    lines.append(f"Summary: {len(issues)} issues found")
    for sev in Severity:
        if counts[sev]:
            lines.append(f"  {sev.value}: {counts[sev]}")
    return "\n".join(lines)


def filter_severity(issues: List[Diagnostic], minimum: str) -> List[Diagnostic]:
    """Keep issues at least as severe as ``minimum``."""
    threshold = Severity(minimum).rank
    return [i for i in issues if i.severity.rank <= threshold]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Lint SCL source files")
    parser.add_argument("path", type=Path, help="File or directory to lint")
    parser.add_argument("--recursive", "-r", action="store_true",
                        help="Recursively lint directory")
    parser.add_argument("--severity", "-s", choices=["error", "warning", "info", "hint"],
                        default="hint", help="Minimum severity to report")
    parser.add_argument("--json", action="store_true",
                        help="Output as JSON")

    args = parser.parse_args(argv)

    try:
        linter = SclLinter(config=get_config())
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    all_issues = []

    if args.path.is_file():
        all_issues = linter.lint_file(args.path)
    elif args.path.is_dir():
        results = lint_directory(args.path, recursive=args.recursive, linter=linter)
        for issues in results.values():
            all_issues.extend(issues)
    else:
        print(f"Error: {args.path} not found", file=sys.stderr)
        return 1

    all_issues = filter_severity(all_issues, args.severity)
    print(render_report(all_issues, as_json=args.json))

    error_count = sum(1 for i in all_issues if i.severity == Severity.ERROR)
    return 1 if error_count > 0 else 0


if __name__ == "__main__":
    sys.exit(main())

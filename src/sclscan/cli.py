"""
CLI entry point for sclscan.

Usage:
    sclscan scan <file>                 Scan a file and show the structural model
    sclscan lint <path>                 Lint a file or directory
    sclscan format <path>               Format SCL source
    sclscan fix <file>                  Apply quick fixes
    sclscan outline <file>              Show the block / section / variable outline
    sclscan define <file> <line> <col>  Resolve the definition at a position
    sclscan watch <directory>           Re-lint files as they change
    sclscan config                      Show or create the configuration file
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .config import get_config, write_default_config
from .errors import SclScanError


def _load_config(args):
    return get_config(Path(args.config) if args.config else None)


def cmd_scan(args):
    """Scan a file and show the structural model."""
    from .scanner import scan_file

    model = scan_file(args.file)

    if args.json:
        print(json.dumps(model.to_dict(), indent=2))
        return 0

    print(f"Scanned: {args.file}")
    print(f"Lines: {model.line_count}")
    print(f"Blocks: {len(model.blocks)}")
    for block in model.blocks:
        end = block.end_line + 1 if block.is_closed else "?"
        print(f"  - {block.kind.value} {block.display_name} (lines {block.start_line + 1}-{end})")
    print(f"Variables: {len(model.variables)}")
    print(f"Unmatched opens: {len(model.unmatched_opens)}")
    print(f"Unmatched closes: {len(model.unmatched_closes)}")
    return 0


def cmd_lint(args):
    """Lint a file or directory."""
    from .cache import ScanCache, lint_file_cached
    from .tools.lint import SclLinter, Severity, filter_severity, iter_source_files, render_report

    config = _load_config(args)
    linter = SclLinter(config=config)
    path = Path(args.path)

    if path.is_file():
        files = [path]
    elif path.is_dir():
        files = list(iter_source_files(path, config.file_patterns, args.recursive))
    else:
        print(f"Error: {path} not found", file=sys.stderr)
        return 1

    issues = []
    if args.cache:
        with ScanCache(config.cache_path) as cache:
            for file_path in files:
                issues.extend(lint_file_cached(cache, file_path, linter))
    else:
        for file_path in files:
            issues.extend(linter.lint_file(file_path))

    issues = filter_severity(issues, args.severity)
    if issues or args.json:
        print(render_report(issues, as_json=args.json))
    else:
        print("No issues found")

    return 1 if any(i.severity == Severity.ERROR for i in issues) else 0


def cmd_format(args):
    """Format SCL source."""
    from .tools.format import FormatOptions, SclFormatter, check_formatted, format_directory

    config = _load_config(args)
    options = FormatOptions(indent_size=config.indent_size,
                            uppercase_keywords=config.uppercase_keywords)
    path = Path(args.path)

    if path.is_dir():
        files = format_directory(path, recursive=args.recursive,
                                 inplace=args.inplace, options=options)
        print(f"Formatted {len(files)} files")
        return 0

    if not path.is_file():
        print(f"Error: {path} not found", file=sys.stderr)
        return 1

    if args.check:
        if check_formatted(path, options):
            print(f"{path} is formatted")
            return 0
        print(f"{path} needs formatting")
        return 1

    result = SclFormatter(options).format_file(path)
    if args.inplace:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(result)
        print(f"Formatted: {path}")
    else:
        print(result)
    return 0


def cmd_fix(args):
    """Apply quick fixes."""
    from .scanner import read_source
    from .tools.fixes import fix_source
    from .tools.lint import SclLinter

    config = _load_config(args)
    fixed, applied = fix_source(read_source(args.file), SclLinter(config=config), codes=args.only)

    if args.inplace:
        with open(args.file, "w", encoding="utf-8", newline="") as f:
            f.write(fixed)
        for fix in applied:
            print(f"{fix.code}: {fix.title}")
        print(f"Applied {len(applied)} fixes to {args.file}")
    else:
        print(fixed)
    return 0


def cmd_outline(args):
    """Show the outline of a file."""
    from .scanner import read_source, scan_source
    from .tools.symbols import build_outline, render_outline

    text = read_source(args.file)
    symbols = build_outline(scan_source(text, args.file), text)

    if args.json:
        print(json.dumps([s.to_dict() for s in symbols], indent=2))
    elif symbols:
        print(render_outline(symbols))
    else:
        print("No blocks found")
    return 0


def cmd_define(args):
    """Resolve the definition at a 1-based line and column."""
    from .scanner import read_source
    from .tools.symbols import find_definition

    text = read_source(args.file)
    location = find_definition(text, args.line - 1, args.column - 1, filename=args.file)
    if location is None:
        print("No definition found", file=sys.stderr)
        return 1

    print(json.dumps(location.to_dict()) if args.json else str(location))
    return 0


def cmd_watch(args):
    """Re-lint files as they change."""
    from .watch import run_watch

    path = Path(args.path)
    if not path.is_dir():
        print(f"Error: {path} is not a directory", file=sys.stderr)
        return 1
    return run_watch(path, _load_config(args), interval=args.interval, use_cache=args.cache)


def cmd_config(args):
    """Show or create the configuration file."""
    if args.init:
        path = write_default_config(Path(args.init) if args.init != "-" else None)
        print(f"Wrote default config to {path}")
        return 0

    config = _load_config(args)
    print(json.dumps(config.to_dict(), indent=2, default=str))
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="SCL structural scanner and linter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    sclscan lint src/ --recursive
    sclscan lint FB_Motor.scl --json
    sclscan format FB_Motor.scl --inplace
    sclscan fix FB_Motor.scl --only SCL102 --inplace
    sclscan define FB_Motor.scl 42 17
"""
    )
    parser.add_argument('--version', action='version', version=f'sclscan {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    parser.add_argument('--config', help='Path to a YAML config file')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # scan
    scan_p = subparsers.add_parser('scan', help='Scan a file and show the structural model')
    scan_p.add_argument('file', help='File to scan')
    scan_p.add_argument('--json', action='store_true', help='Output the model as JSON')
    scan_p.set_defaults(func=cmd_scan)

    # lint
    lint_p = subparsers.add_parser('lint', help='Lint a file or directory')
    lint_p.add_argument('path', help='File or directory to lint')
    lint_p.add_argument('-r', '--recursive', action='store_true', help='Recurse into subdirectories')
    lint_p.add_argument('-s', '--severity', choices=['error', 'warning', 'info', 'hint'],
                        default='hint', help='Minimum severity to report')
    lint_p.add_argument('--json', action='store_true', help='Output as JSON')
    lint_p.add_argument('--cache', action='store_true', help='Reuse cached results for unchanged files')
    lint_p.set_defaults(func=cmd_lint)

    # format
    format_p = subparsers.add_parser('format', help='Format SCL source')
    format_p.add_argument('path', help='File or directory to format')
    format_p.add_argument('-i', '--inplace', action='store_true', help='Modify in place')
    format_p.add_argument('-c', '--check', action='store_true', help='Exit 1 if not formatted')
    format_p.add_argument('-r', '--recursive', action='store_true', help='Recurse into subdirectories')
    format_p.set_defaults(func=cmd_format)

    # fix
    fix_p = subparsers.add_parser('fix', help='Apply quick fixes')
    fix_p.add_argument('file', help='File to fix')
    fix_p.add_argument('-i', '--inplace', action='store_true', help='Modify in place')
    fix_p.add_argument('--only', action='append', choices=['SCL102', 'SCL103', 'SCL104', 'SCL201'],
                       help='Only apply fixes for this code (repeatable)')
    fix_p.set_defaults(func=cmd_fix)

    # outline
    outline_p = subparsers.add_parser('outline', help='Show the outline of a file')
    outline_p.add_argument('file', help='File to outline')
    outline_p.add_argument('--json', action='store_true', help='Output as JSON')
    outline_p.set_defaults(func=cmd_outline)

    # define
    define_p = subparsers.add_parser('define', help='Resolve a definition')
    define_p.add_argument('file', help='File containing the reference')
    define_p.add_argument('line', type=int, help='1-based line')
    define_p.add_argument('column', type=int, help='1-based column')
    define_p.add_argument('--json', action='store_true', help='Output as JSON')
    define_p.set_defaults(func=cmd_define)

    # watch
    watch_p = subparsers.add_parser('watch', help='Re-lint files as they change')
    watch_p.add_argument('path', help='Directory to watch')
    watch_p.add_argument('--interval', type=float, default=0.1, help='Poll interval in seconds')
    watch_p.add_argument('--cache', action='store_true', help='Use the result cache')
    watch_p.set_defaults(func=cmd_watch)

    # config
    config_p = subparsers.add_parser('config', help='Show or create the configuration')
    config_p.add_argument('--init', nargs='?', const='-', metavar='PATH',
                          help='Write a default config file (default ~/.sclscan/config.yaml)')
    config_p.set_defaults(func=cmd_config)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except (SclScanError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

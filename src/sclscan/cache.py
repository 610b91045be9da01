"""
Scan Result Cache

Stores structural models and lint diagnostics keyed by
(content_hash, scanner_version, settings_hash). Unchanged files are not
re-scanned across runs, and a scanner upgrade or a different rule
configuration never serves stale results.
"""

import hashlib
import json
import logging
import sqlite3
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from sclscan.scanner import SCANNER_VERSION, StructuralModel, read_source, scan_source
from sclscan.tools.lint import Diagnostic, SclLinter

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS scan_results (
    content_hash TEXT NOT NULL,
    scanner_version TEXT NOT NULL,
    settings_hash TEXT NOT NULL,
    model_json TEXT NOT NULL,
    diagnostics_json TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (content_hash, scanner_version, settings_hash)
)
"""


def compute_content_hash(text: str) -> str:
    """SHA256 of source text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_settings_hash(linter: SclLinter) -> str:
    return hashlib.sha256(linter.settings_key().encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    """One cached scan + lint result."""
    content_hash: str
    scanner_version: str
    settings_hash: str
    model: StructuralModel
    diagnostics: List[Diagnostic]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CacheEntry":
        return cls(
            content_hash=row["content_hash"],
            scanner_version=row["scanner_version"],
            settings_hash=row["settings_hash"],
            model=StructuralModel.from_dict(json.loads(row["model_json"])),
            diagnostics=[Diagnostic.from_dict(d) for d in json.loads(row["diagnostics_json"])],
        )


class ScanCache:
    """
    sqlite-backed cache of scan results.

    Usage:
        with ScanCache(path) as cache:
            diagnostics = lint_cached(cache, source, "motor.scl")
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = db_path
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute(SCHEMA)
        self.conn.commit()

    def get(self, content_hash: str, settings_hash: str,
            scanner_version: str = SCANNER_VERSION) -> Optional[CacheEntry]:
        """Cached result for this content, or None."""
        row = self.conn.execute("""
            SELECT * FROM scan_results
            WHERE content_hash = ? AND scanner_version = ? AND settings_hash = ?
        """, (content_hash, scanner_version, settings_hash)).fetchone()

        if row:
            return CacheEntry.from_row(row)
        return None

    def put(self, content_hash: str, settings_hash: str, model: StructuralModel,
            diagnostics: List[Diagnostic], scanner_version: str = SCANNER_VERSION) -> None:
        """Store a result. Diagnostics are stored without their file name."""
        diagnostics_json = json.dumps([replace(d, file="").to_dict() for d in diagnostics])
        self.conn.execute("""
            INSERT OR REPLACE INTO scan_results
            (content_hash, scanner_version, settings_hash, model_json, diagnostics_json)
            VALUES (?, ?, ?, ?, ?)
        """, (content_hash, scanner_version, settings_hash,
              json.dumps(model.to_dict(), separators=(",", ":")), diagnostics_json))
        self.conn.commit()

    def stats(self) -> Dict[str, Any]:
        """Get statistics about the cache."""
        stats = {}

        row = self.conn.execute("SELECT COUNT(*) AS cnt FROM scan_results").fetchone()
        stats["total"] = row["cnt"]

        row = self.conn.execute("""
            SELECT COUNT(DISTINCT content_hash) AS unique_files FROM scan_results
        """).fetchone()
        stats["unique_files"] = row["unique_files"]

        row = self.conn.execute(
            "SELECT COUNT(*) AS cnt FROM scan_results WHERE scanner_version != ?",
            (SCANNER_VERSION,)
        ).fetchone()
        stats["stale"] = row["cnt"]

        return stats

    def clear(self, stale_only: bool = False) -> int:
        """
        Delete cached results.

        Returns:
            Number of records deleted
        """
        if stale_only:
            cursor = self.conn.execute(
                "DELETE FROM scan_results WHERE scanner_version != ?", (SCANNER_VERSION,)
            )
        else:
            cursor = self.conn.execute("DELETE FROM scan_results")
        self.conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "ScanCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def lint_cached(cache: ScanCache, source: str, filename: str = "<unknown>",
                linter: Optional[SclLinter] = None, force: bool = False) -> List[Diagnostic]:
    """
    Lint source text, reusing a cached result when the content is unchanged.

    Args:
        cache: Result cache
        source: Source text
        filename: Stamped on the returned diagnostics
        linter: Linter to run on a cache miss (default rules if None)
        force: Re-scan even if cached
    """
    linter = linter or SclLinter()
    content_hash = compute_content_hash(source)
    settings_hash = compute_settings_hash(linter)

    if not force:
        cached = cache.get(content_hash, settings_hash)
        if cached:
            logger.debug("Cache hit for %s (%s)", filename, content_hash[:12])
            return [replace(d, file=filename) for d in cached.diagnostics]

    model = scan_source(source, filename)
    diagnostics = linter.lint_scanned(model, source, filename)
    cache.put(content_hash, settings_hash, model, diagnostics)
    logger.debug("Cached %d diagnostics for %s", len(diagnostics), filename)
    return diagnostics


def lint_file_cached(cache: ScanCache, file_path: Union[str, Path],
                     linter: Optional[SclLinter] = None, force: bool = False) -> List[Diagnostic]:
    """Lint a file with caching. Unreadable files are not cached."""
    linter = linter or SclLinter()
    try:
        source = read_source(file_path)
    except OSError:
        return linter.lint_file(file_path)
    return lint_cached(cache, source, str(file_path), linter, force)

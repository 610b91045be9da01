"""
sclscan watch - File watch loop.

Lints every matching file once at start, then re-lints files after they
stop changing for the configured quiet window (debounce_ms, 500 ms by
default). Results for deleted files are dropped.

Usage:
    sclscan watch <directory>
    sclscan watch <directory> --interval 0.2
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from sclscan.cache import ScanCache, lint_file_cached
from sclscan.config import LintConfig
from sclscan.tools.lint import Diagnostic, SclLinter, iter_source_files

logger = logging.getLogger(__name__)

ResultCallback = Callable[[Path, Optional[List[Diagnostic]]], None]


class Debouncer:
    """
    Thread-safe per-path quiet-window tracker.

    A path becomes ready once ``quiet_seconds`` have passed since its last
    touch; touching it again restarts its window.
    """

    def __init__(self, quiet_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.quiet_seconds = quiet_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._items: Dict[Path, float] = {}  # path -> last touch

    def touch(self, path: Path, ts: Optional[float] = None) -> None:
        with self._lock:
            self._items[Path(path)] = self._clock() if ts is None else ts

    def discard(self, path: Path) -> None:
        with self._lock:
            self._items.pop(Path(path), None)

    def pop_ready(self, now: Optional[float] = None) -> List[Path]:
        """Remove and return every path whose quiet window has elapsed, oldest first."""
        now = self._clock() if now is None else now
        with self._lock:
            ready = sorted(
                (ts, path) for path, ts in self._items.items()
                if now - ts >= self.quiet_seconds
            )
            for _, path in ready:
                del self._items[path]
        return [path for _, path in ready]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ResultStore:
    """Latest diagnostics per file. Each update replaces a file's list whole."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: Dict[Path, List[Diagnostic]] = {}

    def replace(self, path: Path, diagnostics: List[Diagnostic]) -> None:
        with self._lock:
            self._results[Path(path)] = list(diagnostics)

    def remove(self, path: Path) -> bool:
        with self._lock:
            return self._results.pop(Path(path), None) is not None

    def get(self, path: Path) -> Optional[List[Diagnostic]]:
        with self._lock:
            result = self._results.get(Path(path))
            return list(result) if result is not None else None

    def snapshot(self) -> Dict[Path, List[Diagnostic]]:
        with self._lock:
            return {path: list(diags) for path, diags in self._results.items()}


class _SclChangeHandler(FileSystemEventHandler):
    """Feeds SCL file events into the debouncer."""

    SKIP_DIRS = {".git", "__pycache__", ".venv", "venv", "node_modules"}

    def __init__(self, watcher: "SclWatcher") -> None:
        super().__init__()
        self.watcher = watcher

    def _wanted(self, event) -> Optional[Path]:
        if event.is_directory:
            return None
        path = Path(event.src_path)
        if any(part in self.SKIP_DIRS for part in path.parts):
            return None
        return path if self.watcher.matches(path) else None

    def on_modified(self, event) -> None:
        path = self._wanted(event)
        if path:
            self.watcher.debouncer.touch(path)

    def on_created(self, event) -> None:
        self.on_modified(event)

    def on_deleted(self, event) -> None:
        path = self._wanted(event)
        if path:
            self.watcher.forget(path)

    def on_moved(self, event) -> None:
        self.on_deleted(event)
        dest = Path(event.dest_path)
        if not event.is_directory and self.watcher.matches(dest):
            self.watcher.debouncer.touch(dest)


class SclWatcher:
    """
    Watches a directory tree and keeps per-file lint results current.

    Usage:
        watcher = SclWatcher(root, config)
        watcher.run()          # blocks until Ctrl+C
    """

    def __init__(self, root: Path, config: Optional[LintConfig] = None,
                 cache: Optional[ScanCache] = None,
                 on_result: Optional[ResultCallback] = None) -> None:
        self.root = Path(root)
        self.config = config or LintConfig()
        self.linter = SclLinter(config=self.config)
        self.cache = cache
        self.on_result = on_result
        self.debouncer = Debouncer(self.config.debounce_seconds)
        self.results = ResultStore()
        # Bumped by forget(); a lint started under an older generation is stale
        self._generations: Dict[Path, int] = {}
        self._lock = threading.Lock()
        self._observer = None

    def matches(self, path: Path) -> bool:
        return any(path.match(pattern) for pattern in self.config.file_patterns)

    def lint_path(self, path: Path) -> List[Diagnostic]:
        """
        Lint one file now and store its results.

        Results are dropped if the file was forgotten while it was being linted.
        """
        path = Path(path)
        with self._lock:
            generation = self._generations.get(path, 0)

        if self.cache is not None:
            diagnostics = lint_file_cached(self.cache, path, self.linter)
        else:
            diagnostics = self.linter.lint_file(path)

        with self._lock:
            if self._generations.get(path, 0) != generation:
                logger.debug("Discarding results for %s (removed while linting)", path)
                return diagnostics
            self.results.replace(path, diagnostics)
        if self.on_result:
            self.on_result(path, diagnostics)
        return diagnostics

    def forget(self, path: Path) -> None:
        """Drop pending work and results for a file that no longer exists."""
        path = Path(path)
        with self._lock:
            self._generations[path] = self._generations.get(path, 0) + 1
            removed = self.results.remove(path)
        self.debouncer.discard(path)
        if removed:
            logger.info("Dropped results for %s", path)
            if self.on_result:
                self.on_result(path, None)

    def initial_scan(self) -> int:
        """Lint every matching file immediately. Returns the file count."""
        count = 0
        for path in iter_source_files(self.root, self.config.file_patterns, recursive=True):
            self.lint_path(path)
            count += 1
        logger.info("Initial scan of %s: %d files", self.root, count)
        return count

    def process_pending(self, now: Optional[float] = None) -> List[Path]:
        """Lint every file whose quiet window has elapsed. Returns the paths handled."""
        handled = []
        for path in self.debouncer.pop_ready(now):
            if path.is_file():
                self.lint_path(path)
            else:
                self.forget(path)
            handled.append(path)
        return handled

    def start(self) -> None:
        handler = _SclChangeHandler(self)
        self._observer = Observer()
        self._observer.schedule(handler, str(self.root), recursive=True)
        self._observer.start()
        logger.info("Watching %s (debounce %.3fs)", self.root, self.debouncer.quiet_seconds)

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def run(self, interval: float = 0.1) -> int:
        """Initial scan, then the watch loop until interrupted."""
        self.initial_scan()
        self.start()
        try:
            while True:
                self.process_pending()
                time.sleep(interval)
        except KeyboardInterrupt:
            logger.info("Stopping watcher")
        finally:
            self.stop()
        return 0


def print_result(path: Path, diagnostics: Optional[List[Diagnostic]]) -> None:
    """Default result callback: print each file's findings."""
    if diagnostics is None:
        print(f"[sclscan watch] {path} removed")
        return
    print(f"[sclscan watch] {path}: {len(diagnostics)} issue(s)")
    for diag in diagnostics:
        print(f"    {diag}")


def run_watch(root: Path, config: Optional[LintConfig] = None,
              interval: float = 0.1, use_cache: bool = False) -> int:
    """Watch a directory, printing results as they change."""
    config = config or LintConfig()
    cache = ScanCache(config.cache_path) if use_cache else None
    try:
        watcher = SclWatcher(root, config, cache=cache, on_result=print_result)
        return watcher.run(interval)
    finally:
        if cache is not None:
            cache.close()

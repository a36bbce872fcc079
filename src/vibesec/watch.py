"""Watch mode - re-scan the project when watched files change.

A ``PollingWatcher`` compares mtime snapshots of the watched files, a
``Debouncer`` collapses bursts of changes into one trailing-edge trigger and
the ``Watchdog`` ties both to a ``ScanEngine``. The configuration is reloaded
before every triggered scan.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from vibesec.config import (
    CONFIG_FILENAME,
    DEFAULT_SUMMARY_FILE,
    VibeSecurityConfig,
    load_config_or_default,
)
from vibesec.scanner.engine import ScanEngine
from vibesec.scanner.sources import matches_any, relative_path

logger = logging.getLogger(__name__)

DEFAULT_IGNORED = (DEFAULT_SUMMARY_FILE, "node_modules/*", ".next/*", ".git/*", "dist/*")


class DebounceState(Enum):
    """Debouncer state."""

    IDLE = "idle"
    PENDING = "pending"


class Debouncer:
    """Trailing-edge debouncer driven by an injectable clock.

    Every ``notify`` pushes the deadline to ``now + delay``; ``fire_if_due``
    returns True once the deadline has passed and resets to IDLE.
    """

    def __init__(
        self,
        delay_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.delay_seconds = delay_seconds
        self.clock = clock
        self._state = DebounceState.IDLE
        self._deadline: float | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> DebounceState:
        return self._state

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def notify(self, now: float | None = None) -> None:
        """Register an event, arming or re-arming the timer."""
        now = self.clock() if now is None else now
        with self._lock:
            self._deadline = now + self.delay_seconds
            self._state = DebounceState.PENDING

    def fire_if_due(self, now: float | None = None) -> bool:
        """Return True exactly once per quiet period after the last event."""
        now = self.clock() if now is None else now
        with self._lock:
            if self._state is not DebounceState.PENDING or self._deadline is None:
                return False
            if now < self._deadline:
                return False
            self._state = DebounceState.IDLE
            self._deadline = None
            return True

    def cancel(self) -> None:
        with self._lock:
            self._state = DebounceState.IDLE
            self._deadline = None


@dataclass(frozen=True)
class FileEvent:
    """A change to a watched file."""

    kind: str  # add | change | remove
    path: str


def build_watch_patterns(config: VibeSecurityConfig) -> list[str]:
    """Globs of every file that can affect the scan result."""
    patterns = list(config.secret_scanner.env_files)
    for scan_dir in config.rls_scanner.scan_dirs:
        base = PurePosixPath(scan_dir.replace("\\", "/")).as_posix().strip("/")
        for ext in config.rls_scanner.extensions:
            # "." watches the whole tree
            patterns.append(f"*{ext}" if base in ("", ".") else f"{base}/*{ext}")
    patterns.extend([CONFIG_FILENAME, "pyproject.toml", ".gitignore"])
    patterns.extend(config.watcher.additional_watch_patterns)
    return patterns


class PollingWatcher:
    """Detects added, changed and removed files by comparing mtimes."""

    def __init__(
        self,
        root: Path,
        patterns: list[str],
        ignored: list[str] | None = None,
        exclude_dirs: list[str] | None = None,
    ) -> None:
        """Initialize the watcher and take the baseline snapshot.

        Args:
            root: Project root.
            patterns: Globs (relative to root) of watched files.
            ignored: Globs of files never reported. The summary file
                should be listed here.
            exclude_dirs: Directory names pruned from the walk.
        """
        self.root = root
        self.patterns = list(patterns)
        self.ignored = list(ignored or []) + list(DEFAULT_IGNORED)
        self.exclude_dirs = set(exclude_dirs or [])
        self._snapshot = self.snapshot()

    def snapshot(self) -> dict[str, int]:
        """Map each watched relative path to its mtime in nanoseconds."""
        result: dict[str, int] = {}
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if d not in self.exclude_dirs]
            for filename in filenames:
                path = Path(dirpath) / filename
                rel_path = relative_path(path, self.root)
                if not matches_any(rel_path, self.patterns):
                    continue
                if matches_any(rel_path, self.ignored):
                    continue
                try:
                    result[rel_path] = path.stat().st_mtime_ns
                except OSError:
                    continue
        return result

    def poll(self) -> list[FileEvent]:
        """Return the changes since the previous poll."""
        current = self.snapshot()
        previous = self._snapshot
        self._snapshot = current

        events = [
            FileEvent("add", path) for path in sorted(current.keys() - previous.keys())
        ]
        events.extend(
            FileEvent("change", path)
            for path in sorted(current.keys() & previous.keys())
            if current[path] != previous[path]
        )
        events.extend(
            FileEvent("remove", path) for path in sorted(previous.keys() - current.keys())
        )
        return events


def _default_loader(project_root: Path, config_path: Path | None) -> VibeSecurityConfig:
    config, diagnostic = load_config_or_default(project_root, config_path)
    if diagnostic:
        logger.warning(diagnostic)
    return config


class Watchdog:
    """Runs an initial scan, then re-scans after debounced file changes."""

    def __init__(
        self,
        project_root: Path,
        engine: ScanEngine,
        config_loader: Callable[[], VibeSecurityConfig] | None = None,
        poll_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        config_path: Path | None = None,
    ) -> None:
        self.project_root = project_root
        self.engine = engine
        self.config_loader = config_loader or (
            lambda: _default_loader(project_root, config_path)
        )
        self.clock = clock
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._scan_thread: threading.Thread | None = None
        self.config: VibeSecurityConfig | None = None
        self.watcher: PollingWatcher | None = None
        self.debouncer: Debouncer | None = None

    @property
    def poll_interval(self) -> float:
        if self._poll_interval is not None:
            return self._poll_interval
        if self.config is not None:
            return self.config.watcher.poll_interval_ms / 1000
        return 0.25

    def _configure(self, config: VibeSecurityConfig) -> None:
        self.config = config
        patterns = build_watch_patterns(config)
        ignored = [config.reporter.summary_file]
        if self.watcher is None:
            self.watcher = PollingWatcher(
                self.project_root, patterns, ignored, config.rls_scanner.exclude_dirs
            )
        else:
            self.watcher.patterns = patterns
            self.watcher.ignored = ignored + list(DEFAULT_IGNORED)
            self.watcher.exclude_dirs = set(config.rls_scanner.exclude_dirs)

        delay = config.watcher.debounce_ms / 1000
        if self.debouncer is None:
            self.debouncer = Debouncer(delay, clock=self.clock)
        else:
            self.debouncer.delay_seconds = delay

    def start(self) -> None:
        """Load the configuration and run the initial scan synchronously."""
        config = self.config_loader()
        self._configure(config)
        logger.info("Watching %s", self.project_root)
        self.engine.run_full_scan(self.project_root, config)

    def tick(self, now: float | None = None) -> bool:
        """Poll once and trigger a scan when the debouncer fires.

        Returns:
            True if a scan was launched.
        """
        if self.watcher is None or self.debouncer is None:
            raise RuntimeError("Watchdog.start() must be called first")

        now = self.clock() if now is None else now
        events = self.watcher.poll()
        for event in events:
            logger.info("Change detected: %s %s", event.kind, event.path)
        if events:
            self.debouncer.notify(now)

        if not self.debouncer.fire_if_due(now):
            return False

        self._scan_thread = threading.Thread(target=self._rescan, daemon=True)
        self._scan_thread.start()
        return True

    def _rescan(self) -> None:
        try:
            config = self.config_loader()
            self._configure(config)
            self.engine.run_full_scan(self.project_root, config)
        except Exception:
            logger.exception("Triggered scan failed")

    def wait_for_scan(self, timeout: float | None = None) -> None:
        """Block until the last triggered scan has finished."""
        if self._scan_thread is not None:
            self._scan_thread.join(timeout)

    def run_forever(self) -> None:
        """Start and poll until ``stop`` is called."""
        self.start()
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.poll_interval)

    def stop(self) -> None:
        self._stop.set()
        if self.debouncer is not None:
            self.debouncer.cancel()

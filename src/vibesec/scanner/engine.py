"""Scan engine - orchestrates the security scanners.

The ScanEngine is responsible for:
- Running the enabled scanners in parallel
- Merging results in a fixed scanner order and dropping duplicate ids
- Handling scanner failures gracefully
- Publishing the latest issue list to the output sinks
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from vibesec.config import VibeSecurityConfig, load_config_or_default
from vibesec.scanner.api_keys import ApiKeyGuardian
from vibesec.scanner.base import Scanner, ScanResult, SecurityIssue
from vibesec.scanner.rls import RlsScanner
from vibesec.scanner.secrets import SecretScanner
from vibesec.scanner.sql_injection import SqlInjectionScanner

logger = logging.getLogger(__name__)

Sink = Callable[[list[SecurityIssue], VibeSecurityConfig, Path], None]


def default_scanners() -> list[Scanner]:
    """Built-in scanners in merge order."""
    return [SecretScanner(), RlsScanner(), SqlInjectionScanner(), ApiKeyGuardian()]


class ScanEngine:
    """Orchestrates the security scanners.

    Only one scan runs at a time per engine; a call made while a scan is in
    flight returns the previous issue list immediately.

    Example:
        engine = ScanEngine(sinks=[TerminalReporter(console)])
        issues = engine.run_full_scan(Path("."))
        print(f"Found {len(issues)} issues")
    """

    def __init__(
        self,
        scanners: list[Scanner] | None = None,
        sinks: list[Sink] | None = None,
        max_workers: int = 4,
    ) -> None:
        """Initialize the scan engine.

        Args:
            scanners: Scanners in merge order. Uses the built-in four if None.
            sinks: Called with the final issue list after every scan.
            max_workers: Thread pool size.
        """
        self.scanners = scanners if scanners is not None else default_scanners()
        self.sinks = list(sinks or [])
        self.max_workers = max_workers
        self._scan_lock = threading.Lock()
        self._latest_issues: list[SecurityIssue] = []
        self._last_results: list[ScanResult] = []

    @property
    def latest_issues(self) -> list[SecurityIssue]:
        """Issues of the last completed scan (a copy)."""
        return list(self._latest_issues)

    def get_latest_issues(self) -> list[SecurityIssue]:
        """Issues of the last completed scan (a copy)."""
        return self.latest_issues

    @property
    def last_results(self) -> list[ScanResult]:
        """Per-scanner results of the last completed scan."""
        return list(self._last_results)

    @property
    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    def run_full_scan(
        self,
        project_root: Path,
        config: VibeSecurityConfig | None = None,
    ) -> list[SecurityIssue]:
        """Run every enabled scanner and publish the merged issue list.

        Args:
            project_root: Root directory of the project.
            config: Policy snapshot. Loaded from disk (or defaulted) if None.

        Returns:
            The new issue list, or the previous one if a scan is in flight.
        """
        if not self._scan_lock.acquire(blocking=False):
            logger.debug("Scan already in progress, skipping")
            return self.latest_issues

        try:
            if config is None:
                config, diagnostic = load_config_or_default(project_root)
                if diagnostic:
                    logger.warning(diagnostic)

            if not config.enabled:
                logger.info("Security scanning is disabled in the configuration")
                self._last_results = []
                self._latest_issues = []
                return []

            start_time = time.time()
            results = self._run_scanners(project_root, config)
            issues = self._merge(results)

            self._last_results = results
            self._latest_issues = issues

            logger.debug(
                "Scan finished in %d ms with %d issues",
                int((time.time() - start_time) * 1000),
                len(issues),
            )
            self._publish(issues, config, project_root)
            return list(issues)
        finally:
            self._scan_lock.release()

    def _run_scanner(
        self, scanner: Scanner, project_root: Path, config: VibeSecurityConfig
    ) -> ScanResult:
        """Run a single scanner (for parallel execution)."""
        try:
            return scanner.scan(project_root, config)
        except Exception as e:
            logger.exception("Scanner %s failed", scanner.name)
            return ScanResult(scanner_name=scanner.name, error=str(e))

    def _run_scanners(
        self, project_root: Path, config: VibeSecurityConfig
    ) -> list[ScanResult]:
        enabled = [s for s in self.scanners if s.is_enabled(config)]
        if not enabled:
            return []

        max_workers = min(len(enabled), self.max_workers)
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                (scanner, executor.submit(self._run_scanner, scanner, project_root, config))
                for scanner in enabled
            ]

            # Collected in submission order so the merge order stays fixed
            results: list[ScanResult] = []
            for scanner, future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error("Scanner %s did not complete: %s", scanner.name, e)
                    results.append(
                        ScanResult(scanner_name=scanner.name, error=f"Scanner failed: {e!s}")
                    )

        return results

    @staticmethod
    def _merge(results: list[ScanResult]) -> list[SecurityIssue]:
        """Concatenate results, drop later duplicate ids, sort by severity.

        The sort is stable, so issues of equal severity keep scanner order.
        """
        seen: set[str] = set()
        merged: list[SecurityIssue] = []
        for result in results:
            for issue in result.issues:
                if issue.id in seen:
                    continue
                seen.add(issue.id)
                merged.append(issue)

        return sorted(merged, key=lambda issue: issue.severity.rank, reverse=True)

    def _publish(
        self,
        issues: list[SecurityIssue],
        config: VibeSecurityConfig,
        project_root: Path,
    ) -> None:
        for sink in self.sinks:
            try:
                sink(list(issues), config, project_root)
            except Exception:
                logger.exception("Output sink %r failed", sink)

    def get_scanner_info(self, config: VibeSecurityConfig | None = None) -> list[dict]:
        """Get information about configured scanners.

        Returns:
            List of scanner info dictionaries.
        """
        config = config or VibeSecurityConfig.default()
        return [
            {
                "name": s.name,
                "description": s.description,
                "enabled": s.is_enabled(config),
            }
            for s in self.scanners
        ]

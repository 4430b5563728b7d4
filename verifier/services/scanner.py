"""
Placeholder scanning capability.

Searches a source tree for markers of unfinished work (TODO, STUB, ...).
Test files and dependency directories are skipped. The in-process scanner
is the default; GrepScanner shells out to grep through a CommandExecutor for
deployments that prefer it.
"""

import asyncio
import fnmatch
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from verifier.models.verification import ScanResult
from verifier.services.executor import CommandExecutor

logger = logging.getLogger(__name__)


DEFAULT_MARKERS: Sequence[str] = (
    "TODO",
    "FIXME",
    "MOCK",
    "PLACEHOLDER",
    "NOT IMPLEMENTED",
    "STUB",
    "throw new Error",
    "NotImplementedError",
)

DEFAULT_EXCLUDE_GLOBS: Sequence[str] = (
    # dependency and build directories
    "node_modules",
    ".git",
    "vendor",
    ".venv",
    "__pycache__",
    "dist",
    # test files
    "__tests__",
    "tests",
    "*.test.*",
    "*.spec.*",
    "test_*.py",
    "*_test.py",
)

BINARY_SNIFF_BYTES = 8192


def _is_excluded(name: str, exclude_globs: Iterable[str]) -> bool:
    return any(fnmatch.fnmatch(name, pattern) for pattern in exclude_globs)


def _relative(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


class SourceScanner(ABC):
    """Finds placeholder markers under a directory."""

    @abstractmethod
    async def scan(
        self,
        root_path: str,
        markers: Sequence[str] = DEFAULT_MARKERS,
        exclude_globs: Sequence[str] = DEFAULT_EXCLUDE_GLOBS,
        base_path: Optional[str] = None,
    ) -> ScanResult:
        """
        Scan ``root_path`` for markers.

        Args:
            root_path: Directory to search
            markers: Case-insensitive substrings to look for
            exclude_globs: Directory and file name patterns to skip
            base_path: Directory reported file paths are relative to
                (defaults to root_path)

        Returns:
            ScanResult with the distinct files and the number of matching lines
        """


class InProcessScanner(SourceScanner):
    """Pure-Python scanner; counts matching lines like ``grep -n -i``."""

    async def scan(
        self,
        root_path: str,
        markers: Sequence[str] = DEFAULT_MARKERS,
        exclude_globs: Sequence[str] = DEFAULT_EXCLUDE_GLOBS,
        base_path: Optional[str] = None,
    ) -> ScanResult:
        return await asyncio.to_thread(
            self.scan_sync, root_path, markers, exclude_globs, base_path
        )

    def scan_sync(
        self,
        root_path: str,
        markers: Sequence[str] = DEFAULT_MARKERS,
        exclude_globs: Sequence[str] = DEFAULT_EXCLUDE_GLOBS,
        base_path: Optional[str] = None,
    ) -> ScanResult:
        root = Path(root_path)
        base = Path(base_path) if base_path else root

        if not root.is_dir():
            logger.info(f"Scan root {root} does not exist; nothing to scan")
            return ScanResult()

        lowered = [marker.lower() for marker in markers if marker]
        files: List[str] = []
        count = 0

        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if not _is_excluded(d, exclude_globs))

            for filename in sorted(filenames):
                if _is_excluded(filename, exclude_globs):
                    continue

                path = Path(dirpath) / filename
                matches = self._count_matches(path, lowered)
                if matches:
                    files.append(_relative(path, base))
                    count += matches

        return ScanResult(files=files, count=count)

    @staticmethod
    def _count_matches(path: Path, lowered_markers: Sequence[str]) -> int:
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            return 0

        if b"\0" in data[:BINARY_SNIFF_BYTES]:
            return 0

        text = data.decode("utf-8", errors="replace")
        return sum(
            1
            for line in text.splitlines()
            if any(marker in line.lower() for marker in lowered_markers)
        )


class GrepScanner(SourceScanner):
    """Scanner that runs ``grep -rnIiF`` through a CommandExecutor."""

    def __init__(self, executor: CommandExecutor, timeout: float = 60.0, grep_path: str = "grep"):
        self._executor = executor
        self._timeout = timeout
        self._grep_path = grep_path

    async def scan(
        self,
        root_path: str,
        markers: Sequence[str] = DEFAULT_MARKERS,
        exclude_globs: Sequence[str] = DEFAULT_EXCLUDE_GLOBS,
        base_path: Optional[str] = None,
    ) -> ScanResult:
        root = Path(root_path)
        base = Path(base_path) if base_path else root

        if not root.is_dir():
            return ScanResult()

        args: List[str] = ["-r", "-n", "-I", "-i", "-F"]
        for marker in markers:
            args.extend(["-e", marker])
        for pattern in exclude_globs:
            args.append(f"--exclude-dir={pattern}")
            args.append(f"--exclude={pattern}")
        args.append(".")

        result = await self._executor.run(self._grep_path, args, str(root), self._timeout)

        # grep exits 1 when nothing matched
        if result.exit_code == 1:
            return ScanResult()
        if not result.success:
            logger.warning(f"grep failed in {root}: {result.stderr.strip()}")
            return ScanResult()

        files: List[str] = []
        seen = set()
        count = 0
        for line in result.stdout.splitlines():
            file_part, sep, _ = line.partition(":")
            if not sep:
                continue
            count += 1
            relative = _relative((root / file_part).resolve(), base.resolve())
            if relative not in seen:
                seen.add(relative)
                files.append(relative)

        return ScanResult(files=files, count=count)

"""
Repository file collection.

The engine only ever sees already-fetched RepositoryFile objects. This module
defines the fetcher interface a transport must provide, the collection loop
that fans file requests out in parallel, and a fetcher over a local checkout.

Failure semantics:
- a single file that cannot be fetched is treated as absent
- a repository that cannot be reached at all raises TransportError
"""

import fnmatch
import logging
import os
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Protocol

from stackprobe.config import DEFAULT_KEY_FILES
from stackprobe.errors import TransportError, repository_unreachable
from stackprobe.schemas import RepositoryFile, RepositoryReference

logger = logging.getLogger(__name__)


class RepositoryFetcher(Protocol):
    """Protocol for repository transports."""

    def check_reachable(self, reference: RepositoryReference, branch: str) -> None:
        """Raise TransportError if the repository cannot be reached at all."""
        ...

    def list_directory(
        self, reference: RepositoryReference, directory: str, branch: str
    ) -> list[RepositoryFile]:
        """Fetch every file directly inside a directory; empty if it does not exist."""
        ...

    def fetch_file(self, reference: RepositoryReference, path: str, branch: str) -> RepositoryFile | None:
        """Fetch one file; None if it does not exist."""
        ...


def collect_repository_files(
    fetcher: RepositoryFetcher,
    reference: RepositoryReference,
    branch: str = "main",
    key_files: Sequence[str] | None = None,
    workflow_dir: str = ".github/workflows",
    max_workers: int = 8,
) -> list[RepositoryFile]:
    """
    Fetch the files an analysis needs.

    The workflow directory listing and every key file are requested in
    parallel. Results come back in a fixed order regardless of completion
    order: workflow files first, then key files in the order requested.

    Args:
        fetcher: Transport implementation
        reference: Validated repository reference
        branch: Branch to read from
        key_files: Root-level files to request (default: DEFAULT_KEY_FILES)
        workflow_dir: CI workflow directory to list
        max_workers: Thread pool size

    Returns:
        Fetched files; missing or failing files are simply absent

    Raises:
        TransportError: If the repository is unreachable, whatever the
            fetcher raised from check_reachable
    """
    if key_files is None:
        key_files = DEFAULT_KEY_FILES

    try:
        fetcher.check_reachable(reference, branch)
    except TransportError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise repository_unreachable(reference.slug, str(exc) or type(exc).__name__) from exc

    fetched: dict[int, RepositoryFile] = {}
    workflow_files: list[RepositoryFile] = []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        listing = executor.submit(fetcher.list_directory, reference, workflow_dir, branch)
        future_to_index = {
            executor.submit(fetcher.fetch_file, reference, path, branch): idx
            for idx, path in enumerate(key_files)
        }

        for future in as_completed(future_to_index):
            idx = future_to_index[future]
            try:
                result = future.result()
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Treating {key_files[idx]} in {reference.slug} as absent: {exc}")
                continue
            if result is not None:
                fetched[idx] = result

        try:
            workflow_files = list(listing.result())
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Treating {workflow_dir} in {reference.slug} as absent: {exc}")

    files = workflow_files + [fetched[idx] for idx in sorted(fetched)]
    logger.info(f"Fetched {len(files)} files from {reference.slug}@{branch}")
    return files


def is_binary_content(sample: bytes) -> bool:
    """
    Detect binary data by checking for null bytes.

    Args:
        sample: Leading bytes of a file

    Returns:
        True if the data appears to be binary
    """
    if b"\x00" in sample:
        return True
    non_printable = sum(1 for b in sample if b < 32 and b not in (9, 10, 13))
    return len(sample) > 0 and non_printable / len(sample) > 0.3


def should_exclude_path(rel_path: Path, excluded_dirs: Sequence[str]) -> bool:
    """Check if any component of a relative path matches an exclusion pattern."""
    for part in rel_path.parts:
        for pattern in excluded_dirs:
            if fnmatch.fnmatch(part, pattern):
                return True
    return False


class LocalCheckoutFetcher:
    """
    Fetcher over a repository already checked out on disk.

    The branch argument is ignored: whatever is checked out is analysed.
    """

    def __init__(
        self,
        root: Path,
        max_file_size_bytes: int = 1_000_000,
        excluded_dirs: Sequence[str] | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.max_file_size_bytes = max_file_size_bytes
        self.excluded_dirs = list(excluded_dirs or [])

    def check_reachable(self, reference: RepositoryReference, branch: str) -> None:
        if not self.root.is_dir():
            raise repository_unreachable(reference.slug, f"{self.root} is not a directory")

    def _read(self, file_path: Path) -> RepositoryFile | None:
        try:
            if file_path.stat().st_size > self.max_file_size_bytes:
                logger.debug(f"Skipping {file_path}, larger than {self.max_file_size_bytes} bytes")
                return None
            data = file_path.read_bytes()
        except OSError as e:
            logger.debug(f"Skipping unreadable file {file_path}: {e}")
            return None

        if is_binary_content(data[:8192]):
            return None

        return RepositoryFile(
            name=file_path.name,
            path=file_path.relative_to(self.root).as_posix(),
            content=data.decode("utf-8", errors="replace"),
            size=len(data),
        )

    def _resolve_inside(self, rel: str) -> Path | None:
        candidate = (self.root / rel).resolve()
        if not self._is_inside(candidate):
            logger.warning(f"Refusing path outside checkout: {rel!r}")
            return None
        return candidate

    def _is_inside(self, resolved: Path) -> bool:
        return resolved == self.root or self.root in resolved.parents

    def _read_linked(self, file_path: Path) -> RepositoryFile | None:
        # Symlinks may point anywhere; only read targets inside the checkout
        if not self._is_inside(file_path.resolve()):
            logger.warning(f"Refusing link outside checkout: {file_path}")
            return None
        return self._read(file_path)

    def list_directory(
        self, reference: RepositoryReference, directory: str, branch: str
    ) -> list[RepositoryFile]:
        dir_path = self._resolve_inside(directory)
        if dir_path is None or not dir_path.is_dir():
            return []

        files: list[RepositoryFile] = []
        for entry in sorted(dir_path.iterdir()):
            if entry.is_file():
                read = self._read_linked(entry)
                if read is not None:
                    files.append(read)
        return files

    def fetch_file(self, reference: RepositoryReference, path: str, branch: str) -> RepositoryFile | None:
        file_path = self._resolve_inside(path)
        if file_path is None or not file_path.is_file():
            return None
        return self._read(file_path)

    def walk(self) -> list[RepositoryFile]:
        """Read every text file in the checkout, skipping excluded directories."""
        files: list[RepositoryFile] = []
        for root, dirs, filenames in os.walk(self.root):
            root_path = Path(root)
            dirs[:] = sorted(
                d for d in dirs
                if not should_exclude_path((root_path / d).relative_to(self.root), self.excluded_dirs)
            )
            for filename in sorted(filenames):
                read = self._read_linked(root_path / filename)
                if read is not None:
                    files.append(read)
        return files

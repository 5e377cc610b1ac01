"""Shared fixtures and fakes for stackprobe tests."""

import threading
import time

import pytest

from stackprobe.errors import repository_unreachable
from stackprobe.schemas import RepositoryFile


def make_file(path: str, content: str = "") -> RepositoryFile:
    """Build a RepositoryFile the way a fetcher would."""
    return RepositoryFile(
        name=path.rsplit("/", 1)[-1],
        path=path,
        content=content,
        size=len(content.encode("utf-8")),
    )


class FakeFetcher:
    """In-memory fetcher; paths listed in ``failing`` raise on fetch."""

    def __init__(
        self,
        files: dict[str, str],
        failing: set[str] | None = None,
        reachable: bool = True,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.files = files
        self.failing = failing or set()
        self.reachable = reachable
        self.delays = delays or {}
        self.requested: list[str] = []
        self._lock = threading.Lock()

    def check_reachable(self, reference, branch):
        if not self.reachable:
            raise repository_unreachable(reference.slug, "404 Not Found")

    def list_directory(self, reference, directory, branch):
        prefix = directory.rstrip("/") + "/"
        if prefix in self.failing:
            raise RuntimeError("listing failed")
        return [make_file(p, c) for p, c in sorted(self.files.items()) if p.startswith(prefix)]

    def fetch_file(self, reference, path, branch):
        with self._lock:
            self.requested.append(path)
        time.sleep(self.delays.get(path, 0))
        if path in self.failing:
            raise ConnectionError(f"timeout fetching {path}")
        if path not in self.files:
            return None
        return make_file(path, self.files[path])


@pytest.fixture
def react_package_json() -> RepositoryFile:
    return make_file(
        "package.json",
        '{"name": "web", "dependencies": {"react": "^18.2.0", "express": "~4.18.2"}, '
        '"devDependencies": {"typescript": "5.3.3", "jest": "^29.7.0"}}',
    )

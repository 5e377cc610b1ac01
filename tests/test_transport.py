"""Tests for repository file collection."""

from pathlib import Path

import pytest
from conftest import FakeFetcher, make_file

from stackprobe.errors import ErrorCode, TransportError
from stackprobe.schemas import RepositoryFile, RepositoryReference
from stackprobe.transport import (
    LocalCheckoutFetcher,
    collect_repository_files,
    is_binary_content,
    should_exclude_path,
)

REFERENCE = RepositoryReference(owner="acme", repo="shop")


class TestCollectRepositoryFiles:
    """Tests for the parallel collection loop."""

    def test_collects_present_files(self):
        """Test that only present key files are returned."""
        fetcher = FakeFetcher({"package.json": "{}", "Dockerfile": "FROM python"})
        files = collect_repository_files(fetcher, REFERENCE, key_files=["package.json", "Gemfile", "Dockerfile"])
        assert [f.path for f in files] == ["package.json", "Dockerfile"]
        assert sorted(fetcher.requested) == ["Dockerfile", "Gemfile", "package.json"]

    def test_deterministic_order(self):
        """Test that completion order does not change result order."""
        fetcher = FakeFetcher(
            {
                "package.json": "{}",
                "Dockerfile": "FROM python",
                ".github/workflows/ci.yml": "runs-on: ubuntu-latest",
            },
            delays={"package.json": 0.05},
        )
        files = collect_repository_files(
            fetcher, REFERENCE, key_files=["package.json", "Dockerfile"], max_workers=4
        )
        assert [f.path for f in files] == [".github/workflows/ci.yml", "package.json", "Dockerfile"]

    def test_failing_file_treated_as_absent(self, caplog):
        """Test that one failing file does not fail the collection."""
        fetcher = FakeFetcher(
            {"package.json": "{}", "Dockerfile": "FROM python"},
            failing={"Dockerfile"},
        )
        files = collect_repository_files(fetcher, REFERENCE, key_files=["package.json", "Dockerfile"])
        assert [f.path for f in files] == ["package.json"]
        assert any("Dockerfile" in r.getMessage() for r in caplog.records)

    def test_failing_listing_treated_as_absent(self):
        """Test that a failing workflow listing is skipped."""
        fetcher = FakeFetcher(
            {"package.json": "{}", ".github/workflows/ci.yml": "steps:"},
            failing={".github/workflows/"},
        )
        files = collect_repository_files(fetcher, REFERENCE, key_files=["package.json"])
        assert [f.path for f in files] == ["package.json"]

    def test_unreachable_raises(self):
        """Test that an unreachable repository fails the whole collection."""
        fetcher = FakeFetcher({"package.json": "{}"}, reachable=False)
        with pytest.raises(TransportError) as exc_info:
            collect_repository_files(fetcher, REFERENCE)
        assert exc_info.value.code == ErrorCode.TRANSPORT_UNREACHABLE
        assert exc_info.value.recoverable is True
        assert fetcher.requested == []

    def test_plain_reachability_error_wrapped(self):
        """Test that a fetcher's own connection error becomes TransportError."""

        class DownFetcher(FakeFetcher):
            def check_reachable(self, reference, branch):
                raise ConnectionError("host unreachable")

        fetcher = DownFetcher({"package.json": "{}"})
        with pytest.raises(TransportError) as exc_info:
            collect_repository_files(fetcher, REFERENCE)
        assert exc_info.value.code == ErrorCode.TRANSPORT_UNREACHABLE
        assert "host unreachable" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert fetcher.requested == []

    def test_default_key_files(self):
        """Test that the default key file list is requested."""
        fetcher = FakeFetcher({"go.mod": "module x"})
        files = collect_repository_files(fetcher, REFERENCE)
        assert [f.path for f in files] == ["go.mod"]
        assert "package.json" in fetcher.requested
        assert "terraform.tf" in fetcher.requested


@pytest.fixture
def checkout(tmp_path: Path) -> Path:
    """Create a small repository checkout."""
    (tmp_path / ".github" / "workflows").mkdir(parents=True)
    (tmp_path / ".github" / "workflows" / "ci.yml").write_text("on: push\njobs: {}\n")
    (tmp_path / "node_modules" / "react").mkdir(parents=True)
    (tmp_path / "node_modules" / "react" / "package.json").write_text('{"name": "react"}')
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "index.js").write_text("console.log('hi')\n")
    (tmp_path / "package.json").write_text('{"dependencies": {"react": "^18.2.0"}}')
    (tmp_path / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00\x00")
    return tmp_path


class TestLocalCheckoutFetcher:
    """Tests for reading a local checkout."""

    def test_fetch_file(self, checkout):
        """Test reading a single file."""
        fetcher = LocalCheckoutFetcher(checkout)
        file = fetcher.fetch_file(REFERENCE, "package.json", "main")
        assert isinstance(file, RepositoryFile)
        assert file.name == "package.json"
        assert '"react"' in file.content
        assert file.size == len(file.content.encode("utf-8"))

    def test_missing_file(self, checkout):
        """Test that a missing file is None."""
        assert LocalCheckoutFetcher(checkout).fetch_file(REFERENCE, "Gemfile", "main") is None

    def test_binary_file_skipped(self, checkout):
        """Test that binary files are not returned."""
        assert LocalCheckoutFetcher(checkout).fetch_file(REFERENCE, "logo.png", "main") is None

    def test_oversized_file_skipped(self, checkout):
        """Test that files over the size limit are not returned."""
        fetcher = LocalCheckoutFetcher(checkout, max_file_size_bytes=10)
        assert fetcher.fetch_file(REFERENCE, "package.json", "main") is None

    def test_path_outside_root_refused(self, checkout):
        """Test that traversal outside the checkout is refused."""
        (checkout.parent / "secret.txt").write_text("nope")
        fetcher = LocalCheckoutFetcher(checkout)
        assert fetcher.fetch_file(REFERENCE, "../secret.txt", "main") is None

    def test_list_directory(self, checkout):
        """Test listing the workflow directory."""
        files = LocalCheckoutFetcher(checkout).list_directory(REFERENCE, ".github/workflows", "main")
        assert [f.path for f in files] == [".github/workflows/ci.yml"]

    def test_list_missing_directory(self, checkout):
        """Test that a missing directory lists as empty."""
        assert LocalCheckoutFetcher(checkout).list_directory(REFERENCE, "k8s", "main") == []

    def test_unreachable_root(self, tmp_path):
        """Test that a missing checkout is unreachable."""
        fetcher = LocalCheckoutFetcher(tmp_path / "missing")
        with pytest.raises(TransportError):
            fetcher.check_reachable(REFERENCE, "main")

    def test_walk_skips_excluded(self, checkout):
        """Test that a full walk honours excluded directories and skips binaries."""
        fetcher = LocalCheckoutFetcher(checkout, excluded_dirs=["node_modules", ".git"])
        paths = [f.path for f in fetcher.walk()]
        assert "package.json" in paths
        assert "src/index.js" in paths
        assert ".github/workflows/ci.yml" in paths
        assert "logo.png" not in paths
        assert not any(p.startswith("node_modules/") for p in paths)

    def test_walk_refuses_links_outside_root(self, checkout):
        """Test that symlinked files pointing outside the checkout are not read."""
        secret = checkout.parent / "outside.env"
        secret.write_text("STRIPE_SECRET=sk_live\n")
        (checkout / ".env").symlink_to(secret)
        (checkout / "src" / "alias.js").symlink_to(checkout / "src" / "index.js")

        paths = [f.path for f in LocalCheckoutFetcher(checkout).walk()]
        assert ".env" not in paths
        assert "src/alias.js" in paths

    def test_list_directory_refuses_links_outside_root(self, checkout):
        """Test that a workflow symlink to an outside file is skipped."""
        outside = checkout.parent / "outside.yml"
        outside.write_text("runs-on: ubuntu-latest\n")
        (checkout / ".github" / "workflows" / "linked.yml").symlink_to(outside)

        files = LocalCheckoutFetcher(checkout).list_directory(REFERENCE, ".github/workflows", "main")
        assert [f.path for f in files] == [".github/workflows/ci.yml"]

    def test_collect_from_checkout(self, checkout):
        """Test the collection loop over a local checkout."""
        files = collect_repository_files(LocalCheckoutFetcher(checkout), REFERENCE)
        assert [f.path for f in files] == [".github/workflows/ci.yml", "package.json"]


class TestHelpers:
    """Tests for file helpers."""

    def test_is_binary_content(self):
        """Test null-byte and control-character heuristics."""
        assert is_binary_content(b"abc\x00def")
        assert is_binary_content(bytes(range(1, 9)) * 10)
        assert not is_binary_content(b"plain text\nwith lines\n")
        assert not is_binary_content(b"")

    def test_should_exclude_path(self):
        """Test directory exclusion by component."""
        assert should_exclude_path(Path("node_modules/react"), ["node_modules"])
        assert should_exclude_path(Path("a/.venv/b"), [".venv"])
        assert not should_exclude_path(Path("src/app"), ["node_modules"])

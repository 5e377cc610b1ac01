"""Tests for repository reference validation."""

import logging

import pytest

from stackprobe.references import (
    contains_malicious_patterns,
    malicious_reason,
    parse_repository_reference,
    validate_repository_reference,
)


class TestParseRepositoryReference:
    """Tests for accepted URLs."""

    @pytest.mark.parametrize(
        "url,owner,repo",
        [
            ("https://github.com/vercel/next.js", "vercel", "next.js"),
            ("https://github.com/vercel/next.js/", "vercel", "next.js"),
            ("https://github.com/psf/requests.git", "psf", "requests"),
            ("https://github.com/psf/requests.git/", "psf", "requests"),
            ("https://github.com/some-org/my_repo", "some-org", "my_repo"),
        ],
    )
    def test_accepted(self, url, owner, repo):
        """Test that well-formed GitHub URLs parse into owner and repo."""
        reference = parse_repository_reference(url)
        assert reference is not None
        assert (reference.owner, reference.repo) == (owner, repo)
        assert reference.slug == f"{owner}/{repo}"

    @pytest.mark.parametrize(
        "url",
        [
            "http://github.com/psf/requests",
            "https://gitlab.com/psf/requests",
            "https://github.com/psf",
            "https://github.com/psf/requests/tree/main",
            "https://github.com/psf/requests\n",
            "github.com/psf/requests",
            "",
        ],
    )
    def test_wrong_shape_rejected(self, url):
        """Test that anything but a github.com owner/repo URL is rejected."""
        assert parse_repository_reference(url) is None

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/../evil",
            "https://github.com/owner/..",
            "https://github.com/owner/<script>",
            "https://github.com/owner/a&b",
            "https://github.com/-owner/repo",
            "https://github.com/LOCALHOST/repo",
            "https://github.com/owner/127.0.0.1",
            "https://github.com/192.168.1.1/repo",
            "https://github.com/owner/10.0.0.1",
            "https://github.com/172.16.0.1/repo",
        ],
    )
    def test_malicious_rejected(self, url):
        """Test that suspicious segments are rejected without raising."""
        assert parse_repository_reference(url) is None

    @pytest.mark.parametrize("value", [None, 42, ["https://github.com/a/b"], b"https://github.com/a/b"])
    def test_non_string_rejected(self, value):
        """Test that non-string input is rejected rather than raising."""
        assert parse_repository_reference(value) is None


class TestValidateRepositoryReference:
    """Tests for rejection reasons."""

    def test_accepted_has_no_reason(self):
        """Test that accepted URLs carry no reason."""
        reference, reason = validate_repository_reference("https://github.com/psf/requests")
        assert reference is not None
        assert reason is None

    def test_reason_names_segment(self):
        """Test that the reason says which segment was rejected and why."""
        reference, reason = validate_repository_reference("https://github.com/../evil")
        assert reference is None
        assert reason == "Repository owner contains a path traversal sequence"

    def test_format_reason(self):
        """Test the reason for a malformed URL."""
        _, reason = validate_repository_reference("ftp://github.com/a/b")
        assert "github.com" in reason

    def test_rejection_logged(self, caplog):
        """Test that malicious references are logged at warning level."""
        with caplog.at_level(logging.WARNING, logger="stackprobe.references"):
            validate_repository_reference("https://github.com/owner/localhost")
        assert any("localhost" in record.getMessage() for record in caplog.records)


class TestMaliciousPatterns:
    """Tests for segment screening."""

    def test_clean_segments(self):
        """Test that ordinary names pass."""
        for segment in ("react", "next.js", "my-repo", "repo_2", "v10"):
            assert not contains_malicious_patterns(segment)

    def test_ten_dot_substring(self):
        """Test that the 10. private prefix is caught anywhere in a segment."""
        assert contains_malicious_patterns("app10.x")

    def test_ipv6_loopback(self):
        """Test that literal loopback addresses are caught."""
        assert malicious_reason("::1") == "a loopback address"

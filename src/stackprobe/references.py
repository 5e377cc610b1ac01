"""
Repository reference validation.

Only https://github.com/<owner>/<repo> references are accepted. Owner and
repository segments are screened for path traversal, markup injection,
option-like leading hyphens and local or private network addresses before
anything is fetched. Validation never raises on untrusted input.
"""

import ipaddress
import logging
import re
from typing import Any

from stackprobe.schemas import RepositoryReference

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERN = re.compile(r"https://github\.com/([^/\s]+?)/([^/\s]+?)(?:\.git)?/?")

# (pattern, reason) pairs; any hit rejects the segment
MALICIOUS_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\.\."), "a path traversal sequence"),
    (re.compile(r"[<>'\"&]"), "markup or injection characters"),
    (re.compile(r"^-"), "a leading hyphen"),
    (re.compile(r"localhost", re.IGNORECASE), "a localhost reference"),
    (re.compile(r"127\.0\.0\.1"), "a loopback address"),
    (re.compile(r"192\.168\."), "a private network address"),
    (re.compile(r"10\."), "a private network address"),
    (re.compile(r"172\.16\."), "a private network address"),
]


def _address_reason(segment: str) -> str | None:
    try:
        address = ipaddress.ip_address(segment)
    except ValueError:
        return None
    if address.is_loopback:
        return "a loopback address"
    if address.is_private or address.is_link_local or address.is_unspecified:
        return "a private network address"
    return None


def malicious_reason(segment: str) -> str | None:
    """Return why a URL segment is unsafe, or None if it is acceptable."""
    for pattern, reason in MALICIOUS_PATTERNS:
        if pattern.search(segment):
            return reason
    return _address_reason(segment)


def contains_malicious_patterns(segment: str) -> bool:
    return malicious_reason(segment) is not None


def validate_repository_reference(url: Any) -> tuple[RepositoryReference | None, str | None]:
    """
    Validate a repository URL.

    Args:
        url: Untrusted repository reference

    Returns:
        (reference, None) when accepted, (None, reason) when rejected
    """
    if not isinstance(url, str):
        return None, "Repository reference must be a string"

    match = GITHUB_URL_PATTERN.fullmatch(url)
    if match is None:
        return None, "Only https://github.com/<owner>/<repo> URLs are supported"

    owner, repo = match.group(1), match.group(2)
    for label, segment in (("owner", owner), ("repository", repo)):
        reason = malicious_reason(segment)
        if reason is not None:
            logger.warning(f"Rejected potentially malicious repository URL {url!r}: {label} contains {reason}")
            return None, f"Repository {label} contains {reason}"

    return RepositoryReference(owner=owner, repo=repo), None


def parse_repository_reference(url: Any) -> RepositoryReference | None:
    """Parse a repository URL into owner/repo, or None if it is rejected."""
    reference, _ = validate_repository_reference(url)
    return reference

"""
Custom exception hierarchy for stackprobe.

Provides structured error handling with error codes, recoverability hints,
and rich context for debugging.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for categorizing failures."""

    # Reference validation errors
    REFERENCE_INVALID_FORMAT = "reference_invalid_format"

    # Transport errors
    TRANSPORT_UNREACHABLE = "transport_unreachable"

    # Pattern registry errors
    PATTERN_INVALID = "pattern_invalid"
    PATTERN_DUPLICATE = "pattern_duplicate"
    PATTERN_FILE_INVALID = "pattern_file_invalid"

    # Catalog errors
    CATALOG_INVALID = "catalog_invalid"
    CATALOG_FILE_NOT_FOUND = "catalog_file_not_found"

    # Configuration errors
    CONFIG_INVALID = "config_invalid"
    CONFIG_FILE_NOT_FOUND = "config_file_not_found"

    # General errors
    UNKNOWN = "unknown"


@dataclass
class StackProbeError(Exception):
    """
    Base exception for all stackprobe errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the operation can be retried
        context: Additional context for debugging
        suggestion: Suggested action to resolve the error
    """

    message: str
    code: ErrorCode = ErrorCode.UNKNOWN
    recoverable: bool = False
    context: dict[str, Any] = field(default_factory=dict)
    suggestion: str | None = None

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code.value!r}, "
            f"recoverable={self.recoverable}"
            f")"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "code": self.code.value,
            "recoverable": self.recoverable,
            "context": self.context,
            "suggestion": self.suggestion,
        }


@dataclass
class ReferenceValidationError(StackProbeError):
    """A repository reference was rejected."""

    reason: str | None = None

    def __post_init__(self) -> None:
        if self.reason:
            self.context["reason"] = self.reason


@dataclass
class TransportError(StackProbeError):
    """The repository could not be fetched."""

    repository: str | None = None
    file_path: str | None = None

    def __post_init__(self) -> None:
        if self.repository:
            self.context["repository"] = self.repository
        if self.file_path:
            self.context["file_path"] = self.file_path


@dataclass
class PatternError(StackProbeError):
    """A detection rule or rule file is malformed."""

    pattern_name: str | None = None
    source_path: str | None = None

    def __post_init__(self) -> None:
        if self.pattern_name:
            self.context["pattern_name"] = self.pattern_name
        if self.source_path:
            self.context["source_path"] = self.source_path


@dataclass
class CatalogError(StackProbeError):
    """A catalog snapshot could not be loaded."""

    catalog_path: str | None = None

    def __post_init__(self) -> None:
        if self.catalog_path:
            self.context["catalog_path"] = self.catalog_path


@dataclass
class ConfigError(StackProbeError):
    """Configuration error."""

    config_path: str | None = None
    key: str | None = None

    def __post_init__(self) -> None:
        if self.config_path:
            self.context["config_path"] = self.config_path
        if self.key:
            self.context["key"] = self.key


# Factory functions for common errors
def invalid_reference(reason: str) -> ReferenceValidationError:
    """Create error for a rejected repository reference."""
    return ReferenceValidationError(
        message=f"Invalid repository reference: {reason}",
        code=ErrorCode.REFERENCE_INVALID_FORMAT,
        recoverable=True,
        reason=reason,
        suggestion="Use a URL of the form https://github.com/<owner>/<repo>.",
    )


def repository_unreachable(repository: str, reason: str) -> TransportError:
    """Create error for a repository that cannot be reached at all."""
    return TransportError(
        message=f"Repository unreachable: {repository} ({reason})",
        code=ErrorCode.TRANSPORT_UNREACHABLE,
        recoverable=True,
        repository=repository,
        suggestion="Check that the repository exists and the branch name is correct.",
    )


def invalid_pattern(name: str, reason: str) -> PatternError:
    """Create error for a malformed detection rule."""
    return PatternError(
        message=f"Invalid detection pattern {name!r}: {reason}",
        code=ErrorCode.PATTERN_INVALID,
        pattern_name=name,
        suggestion="Each rule needs a category, file triggers, content patterns and a confidence in (0, 1].",
    )


def invalid_catalog(path: str, reason: str) -> CatalogError:
    """Create error for an unreadable catalog snapshot."""
    return CatalogError(
        message=f"Invalid catalog: {reason}",
        code=ErrorCode.CATALOG_INVALID,
        catalog_path=path,
        suggestion="The catalog must be a JSON list of objects with id, name and category.",
    )


def invalid_config(path: str, reason: str) -> ConfigError:
    """Create error for invalid configuration."""
    return ConfigError(
        message=f"Invalid configuration: {reason}",
        code=ErrorCode.CONFIG_INVALID,
        config_path=path,
        suggestion="Check the configuration file format and values.",
    )

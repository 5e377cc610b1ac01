"""
Pydantic schemas for stackprobe data models.

All data structures exchanged between the detection components are defined
here so the registry, matcher, aggregator and reconciler agree on a single
validated shape.

Schema Version History:
- 1.0.0: Initial release
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Schema version for persisted reports
SCHEMA_VERSION = "1.0.0"


class StackCategory(str, Enum):
    """Fixed set of categories a detection rule can belong to."""

    FRONTEND = "Frontend/Design"
    BACKEND = "Backend/Database"
    DEVOPS = "DevOps/Deployment"
    DEVELOPMENT = "IDE/Development"
    PAYMENTS = "Payment Platforms"
    AI_TOOLS = "AI Coding Tools"
    COMMUNICATION = "Communication/Collaboration"
    TESTING = "Testing/QA"
    SECURITY = "Security/Monitoring"
    ANALYTICS = "Analytics/Tracking"
    DATA = "Data/Storage"


class DetectionMethod(str, Enum):
    """How a detection was made, derived from the matched file paths."""

    PACKAGE_MANIFEST = "package-manifest"
    DEPENDENCY_FILE = "dependency-file"
    CONTAINER_FILE = "container-file"
    CONTAINER_COMPOSE = "container-compose"
    CI_WORKFLOW = "ci-workflow"
    INFRA_AS_CODE = "infra-as-code"
    GENERIC_CONFIG = "generic-config"


class MatchKind(str, Enum):
    """Which reconciliation pass linked a detection to the catalog."""

    EXACT = "exact"
    PARTIAL = "partial"
    CATEGORY = "category"
    SIMILARITY = "similarity"
    NONE = "none"


class AnalysisStatus(str, Enum):
    """Terminal state of an end-to-end analysis."""

    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


class DetectionPattern(BaseModel):
    """A single detection rule: which files and content signatures imply a tool."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Canonical tool name")
    category: StackCategory
    file_triggers: tuple[str, ...] = Field(
        ..., min_length=1, description="Filename/path fragments that make a file relevant"
    )
    content_patterns: tuple[str, ...] = Field(
        ..., min_length=1, description="Regular expressions, evaluated in declaration order"
    )
    dependency_keys: tuple[str, ...] = Field(
        default=(), description="Manifest keys consulted for version extraction only"
    )
    base_confidence: float = Field(..., gt=0, le=1)
    cost_estimate: float = Field(default=0, ge=0, description="Estimated monthly cost, 0 for free tools")

    @field_validator("file_triggers")
    @classmethod
    def validate_triggers(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject empty trigger strings, which would match every file."""
        if any(not trigger for trigger in v):
            raise ValueError("file triggers must be non-empty strings")
        return v

    @field_validator("content_patterns")
    @classmethod
    def validate_patterns(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Ensure every content pattern compiles."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid content pattern {pattern!r}: {e}") from e
        return v

    @property
    def compiled_patterns(self) -> list[re.Pattern[str]]:
        """Compiled content patterns, in declaration order."""
        return [re.compile(pattern) for pattern in self.content_patterns]


class RepositoryFile(BaseModel):
    """A file fetched from a repository. Immutable once fetched."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="File name without directories")
    path: str = Field(..., description="Path relative to the repository root")
    content: str = Field(default="", description="Raw text content")
    size: int = Field(default=0, ge=0, description="Size in bytes")


class DetectionDetails(BaseModel):
    """Evidence captured when a rule matched."""

    matched_pattern: str = Field(..., description="Literal substring the content pattern matched")
    file_name: str = Field(..., description="Name of the file that matched")
    pattern: str = Field(..., description="Name of the rule that matched")
    files: list[str] = Field(default_factory=list, description="All matched file paths")


class RawDetection(BaseModel):
    """A tool detected in one analysis run, before catalog reconciliation."""

    detected_name: str
    category: str
    confidence_score: float = Field(..., ge=0, le=1)
    detection_method: DetectionMethod
    matched_file_paths: list[str] = Field(..., min_length=1, description="First entry is the primary file")
    version: str | None = Field(default=None, description="Extracted version if available")
    estimated_monthly_cost: float = Field(default=0, ge=0)
    detection_details: DetectionDetails | None = None

    @property
    def file_path(self) -> str:
        """Primary file the tool was detected in."""
        return self.matched_file_paths[0]


class AnalysisSummary(BaseModel):
    """Roll-up statistics over all detections of a run."""

    total_tools: int = Field(default=0, ge=0)
    total_estimated_cost: float = Field(default=0, ge=0)
    average_confidence: float = Field(default=0, ge=0, le=1)
    distinct_categories: list[str] = Field(default_factory=list)


class CatalogTool(BaseModel):
    """A canonical tool from the external catalog store."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str
    frameworks: str | None = Field(default=None, description="Free-text list of associated frameworks")
    pricing: str | None = Field(default=None, description="Free-text pricing description")
    description: str | None = None

    @field_validator("frameworks", mode="before")
    @classmethod
    def join_frameworks(cls, v: Any) -> Any:
        """Accept a list of frameworks and store it as comma-separated text."""
        if isinstance(v, (list, tuple)):
            return ", ".join(str(item) for item in v)
        return v


class ReconciledDetection(RawDetection):
    """A detection linked to, or pointed towards, a catalog entry."""

    catalog_tool_id: str | None = Field(default=None, description="Set only on an accepted match")
    suggested_tool_id: str | None = Field(default=None, description="Best-effort nearest catalog entry")
    resolved_monthly_cost: float = Field(default=0, ge=0)
    match_kind: MatchKind = MatchKind.NONE
    similarity_score: float | None = Field(default=None, ge=0, le=1)


class RepositoryReference(BaseModel):
    """Owner and repository name parsed from a validated repository URL."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


class AnalysisReport(BaseModel):
    """End-to-end result of analysing one repository reference."""

    schema_version: str = Field(default=SCHEMA_VERSION)
    repository_url: str
    branch: str = "main"
    status: AnalysisStatus
    reference: RepositoryReference | None = None
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: datetime | None = None
    files_fetched: int = Field(default=0, ge=0)
    detections: list[RawDetection] = Field(default_factory=list)
    reconciled: list[ReconciledDetection] = Field(default_factory=list)
    summary: AnalysisSummary = Field(default_factory=AnalysisSummary)
    error: str | None = None

    @model_validator(mode="after")
    def check_error_state(self) -> "AnalysisReport":
        """Rejected and failed reports must say why."""
        if self.status != AnalysisStatus.COMPLETED and not self.error:
            raise ValueError(f"{self.status.value} report requires an error message")
        return self

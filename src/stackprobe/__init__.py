"""
stackprobe - detect the tools and services a repository uses.

A library and CLI that:
1. Validates repository references before anything is fetched
2. Matches fetched files against a table of detection rules
3. Summarizes detections (tool count, estimated cost, confidence)
4. Reconciles detections against a canonical tool catalog
"""

__version__ = "1.0.0"

from stackprobe.schemas import (
    SCHEMA_VERSION,
    AnalysisReport,
    AnalysisStatus,
    AnalysisSummary,
    CatalogTool,
    DetectionPattern,
    RawDetection,
    ReconciledDetection,
    RepositoryFile,
    RepositoryReference,
    StackCategory,
)

__all__ = [
    "__version__",
    "SCHEMA_VERSION",
    "AnalysisReport",
    "AnalysisStatus",
    "AnalysisSummary",
    "CatalogTool",
    "DetectionPattern",
    "RawDetection",
    "ReconciledDetection",
    "RepositoryFile",
    "RepositoryReference",
    "StackCategory",
]

"""
Signal matcher for detecting tools in fetched repository files.

For each detection rule the matcher:
- narrows the file set to the rule's relevant files
- evaluates content patterns, first file/pattern match wins
- extracts a version from structured dependency manifests
- scores the detection and derives how it was detected
"""

import json
import logging
import re
from collections.abc import Iterable, Sequence

from stackprobe.patterns import PatternRegistry
from stackprobe.relevance import filter_relevant_files
from stackprobe.schemas import (
    DetectionDetails,
    DetectionMethod,
    DetectionPattern,
    RawDetection,
    RepositoryFile,
)

logger = logging.getLogger(__name__)

VERSION_BONUS = 0.05
MULTI_FILE_BONUS = 0.02
MAX_CONFIDENCE = 1.0

# Structured manifests whose dependency maps are read for versions
MANIFEST_DEPENDENCY_SECTIONS: dict[str, tuple[str, ...]] = {
    "package.json": ("dependencies", "devDependencies"),
}

# Path fragment -> method, highest priority first
DETECTION_METHOD_RULES: list[tuple[str, DetectionMethod]] = [
    ("package.json", DetectionMethod.PACKAGE_MANIFEST),
    ("requirements.txt", DetectionMethod.DEPENDENCY_FILE),
    ("Dockerfile", DetectionMethod.CONTAINER_FILE),
    ("docker-compose", DetectionMethod.CONTAINER_COMPOSE),
    (".github/workflows", DetectionMethod.CI_WORKFLOW),
    (".tf", DetectionMethod.INFRA_AS_CODE),
]


def detection_method_for(file_paths: Sequence[str]) -> DetectionMethod:
    """Pick the single highest-priority detection method matching any path."""
    for fragment, method in DETECTION_METHOD_RULES:
        if any(fragment in path for path in file_paths):
            return method
    return DetectionMethod.GENERIC_CONFIG


def strip_range_markers(spec: str) -> str:
    """Drop leading ^/~ semver range markers from a dependency spec."""
    return spec.lstrip("^~")


def extract_manifest_version(file: RepositoryFile, dependency_keys: Sequence[str]) -> str | None:
    """
    Look up a tool's version in a structured dependency manifest.

    Runtime and development dependency maps are combined (development entries
    win on key clashes) and the keys are tried in order; the first hit wins.
    A manifest that fails to parse yields no version rather than an error.

    Args:
        file: The file the rule matched in
        dependency_keys: Manifest keys declared by the rule

    Returns:
        Version string without range markers, or None
    """
    sections = MANIFEST_DEPENDENCY_SECTIONS.get(file.name)
    if sections is None or not dependency_keys:
        return None

    try:
        manifest = json.loads(file.content)
    except (ValueError, RecursionError) as e:
        logger.debug(f"Skipping version extraction, {file.path} is not valid JSON: {e}")
        return None
    if not isinstance(manifest, dict):
        return None

    combined: dict[str, object] = {}
    for section in sections:
        deps = manifest.get(section)
        if isinstance(deps, dict):
            combined.update(deps)

    for key in dependency_keys:
        spec = combined.get(key)
        if isinstance(spec, str) and spec:
            return strip_range_markers(spec) or None
    return None


def compute_confidence(base_confidence: float, has_version: bool, relevant_file_count: int) -> float:
    """
    Score a detection.

    base, then the version bonus, then the multi-file bonus, then the clamp.
    """
    confidence = base_confidence
    if has_version:
        confidence += VERSION_BONUS
    if relevant_file_count > 1:
        confidence += MULTI_FILE_BONUS
    return min(confidence, MAX_CONFIDENCE)


def find_first_match(
    pattern: DetectionPattern,
    relevant_files: Sequence[RepositoryFile],
) -> tuple[RepositoryFile, re.Match[str]] | None:
    """
    Find the first file/content-pattern pair that matches.

    Files are visited in order and, within a file, content patterns in
    declaration order. The search stops at the first hit.
    """
    compiled = pattern.compiled_patterns
    for file in relevant_files:
        for regex in compiled:
            match = regex.search(file.content)
            if match:
                return file, match
    return None


def match_pattern(pattern: DetectionPattern, files: Sequence[RepositoryFile]) -> RawDetection | None:
    """
    Evaluate one rule against the fetched files.

    Args:
        pattern: Detection rule
        files: All fetched repository files

    Returns:
        A single RawDetection, or None when the rule does not apply or no
        content pattern matched
    """
    relevant = filter_relevant_files(files, pattern)
    if not relevant:
        return None

    hit = find_first_match(pattern, relevant)
    if hit is None:
        return None
    matched_file, match = hit

    version = extract_manifest_version(matched_file, pattern.dependency_keys)
    file_paths = [matched_file.path] + [f.path for f in relevant if f is not matched_file]

    return RawDetection(
        detected_name=pattern.name,
        category=pattern.category.value,
        confidence_score=compute_confidence(pattern.base_confidence, version is not None, len(relevant)),
        detection_method=detection_method_for(file_paths),
        matched_file_paths=file_paths,
        version=version,
        estimated_monthly_cost=pattern.cost_estimate,
        detection_details=DetectionDetails(
            matched_pattern=match.group(0),
            file_name=matched_file.name,
            pattern=pattern.name,
            files=file_paths,
        ),
    )


def detect_tools(files: Iterable[RepositoryFile], registry: PatternRegistry) -> list[RawDetection]:
    """
    Run every rule in the registry over the fetched files.

    Returns:
        At most one detection per rule, in registry order
    """
    files = list(files)
    detections: list[RawDetection] = []

    for pattern in registry:
        detection = match_pattern(pattern, files)
        if detection is None:
            continue
        logger.debug(
            f"Detected {detection.detected_name} in {detection.file_path} "
            f"(confidence {detection.confidence_score:.2f})"
        )
        detections.append(detection)

    return detections

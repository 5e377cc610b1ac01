"""File relevance filtering: which fetched files a detection rule should look at."""

from collections.abc import Iterable

from stackprobe.schemas import DetectionPattern, RepositoryFile


def matches_trigger(file: RepositoryFile, trigger: str) -> bool:
    """
    Check a single file against a single trigger.

    A file is relevant when its path contains the trigger, its name equals
    the trigger, or, for directory triggers ending in "/", its path starts
    with the trigger. Matching is case-sensitive.
    """
    if trigger in file.path or file.name == trigger:
        return True
    return trigger.endswith("/") and file.path.startswith(trigger)


def is_relevant(file: RepositoryFile, pattern: DetectionPattern) -> bool:
    """Check whether any of the pattern's triggers select this file."""
    return any(matches_trigger(file, trigger) for trigger in pattern.file_triggers)


def filter_relevant_files(
    files: Iterable[RepositoryFile],
    pattern: DetectionPattern,
) -> list[RepositoryFile]:
    """
    Narrow the fetched file set to files relevant to one pattern.

    Args:
        files: Fetched repository files
        pattern: Detection rule whose triggers select files

    Returns:
        Relevant files in input order; empty when the rule does not apply
    """
    return [f for f in files if is_relevant(f, pattern)]

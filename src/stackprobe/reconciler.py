"""
Catalog reconciliation for raw detections.

Links each detection to a canonical catalog tool using three passes in
descending priority:
1. exact name match (case-insensitive)
2. partial name match (substring either way, case-insensitive)
3. same category and the detected name appears in the tool's frameworks or name

When none succeeds, the most similar tool in the same category is offered as
a suggestion instead.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from typing import Any

from stackprobe.schemas import CatalogTool, MatchKind, RawDetection, ReconciledDetection
from stackprobe.similarity import similarity

logger = logging.getLogger(__name__)

MONTHLY_PRICE_PATTERN = re.compile(r"\$(\d+).*/month", re.IGNORECASE)


def extract_cost_from_pricing(pricing: str | None) -> float | None:
    """
    Extract a monthly cost from free-text catalog pricing.

    Returns:
        The dollar amount of a "$N ... /month" phrase, 0 if the text mentions
        "free", otherwise None (meaning: keep the detector's own estimate)
    """
    if not pricing:
        return None

    match = MONTHLY_PRICE_PATTERN.search(pricing)
    if match:
        return float(match.group(1))

    if "free" in pricing.lower():
        return 0.0

    return None


def _first(catalog: Sequence[CatalogTool], predicate: Any) -> CatalogTool | None:
    return next((tool for tool in catalog if predicate(tool)), None)


def find_catalog_match(
    detection: RawDetection,
    catalog: Sequence[CatalogTool],
) -> tuple[CatalogTool, MatchKind] | None:
    """
    Run the exact, partial and category passes; the first pass with a hit wins.

    Within a pass the first catalog tool in iteration order is taken.
    """
    detected = detection.detected_name.lower()

    tool = _first(catalog, lambda t: t.name.lower() == detected)
    if tool is not None:
        return tool, MatchKind.EXACT

    tool = _first(catalog, lambda t: t.name.lower() in detected or detected in t.name.lower())
    if tool is not None:
        return tool, MatchKind.PARTIAL

    tool = _first(
        catalog,
        lambda t: t.category == detection.category
        and (detected in (t.frameworks or "").lower() or detected in t.name.lower()),
    )
    if tool is not None:
        return tool, MatchKind.CATEGORY

    return None


def find_similar_tool(
    detection: RawDetection,
    catalog: Sequence[CatalogTool],
) -> tuple[CatalogTool, float] | None:
    """
    Find the most similar catalog tool sharing the detection's category.

    Ties keep the earliest candidate. Returns None when the category has no
    catalog tools at all.
    """
    candidates = [tool for tool in catalog if tool.category == detection.category]
    if not candidates:
        return None

    best = candidates[0]
    best_score = similarity(detection.detected_name, best.name)
    for tool in candidates[1:]:
        score = similarity(detection.detected_name, tool.name)
        if score > best_score:
            best, best_score = tool, score

    return best, best_score


def reconcile_detection(detection: RawDetection, catalog: Sequence[CatalogTool]) -> ReconciledDetection:
    """Reconcile a single detection against a catalog snapshot."""
    data = detection.model_dump()

    matched = find_catalog_match(detection, catalog)
    if matched is not None:
        tool, kind = matched
        catalog_cost = extract_cost_from_pricing(tool.pricing)
        logger.debug(f"Matched {detection.detected_name} to catalog tool {tool.id} ({kind.value})")
        return ReconciledDetection.model_validate(
            {
                **data,
                "catalog_tool_id": tool.id,
                "suggested_tool_id": tool.id,
                "resolved_monthly_cost": (
                    catalog_cost if catalog_cost is not None else detection.estimated_monthly_cost
                ),
                "match_kind": kind,
            }
        )

    similar = find_similar_tool(detection, catalog)
    if similar is not None:
        tool, score = similar
        logger.debug(f"Suggesting {tool.id} for {detection.detected_name} (similarity {score:.2f})")
        return ReconciledDetection.model_validate(
            {
                **data,
                "suggested_tool_id": tool.id,
                "resolved_monthly_cost": detection.estimated_monthly_cost,
                "match_kind": MatchKind.SIMILARITY,
                "similarity_score": score,
            }
        )

    return ReconciledDetection.model_validate(
        {**data, "resolved_monthly_cost": detection.estimated_monthly_cost}
    )


def reconcile_detections(
    detections: Iterable[RawDetection],
    catalog: Iterable[CatalogTool],
) -> list[ReconciledDetection]:
    """
    Reconcile every detection against a read-only catalog snapshot.

    Args:
        detections: Raw detections from one analysis
        catalog: Canonical tools, in the store's iteration order

    Returns:
        One ReconciledDetection per input detection, in input order
    """
    snapshot = tuple(catalog)
    reconciled = [reconcile_detection(d, snapshot) for d in detections]

    linked = sum(1 for r in reconciled if r.catalog_tool_id is not None)
    logger.info(f"Reconciled {len(reconciled)} detections, {linked} linked to the catalog")
    return reconciled

"""Roll-up statistics over a run's detections."""

import math
import re
from collections.abc import Sequence
from typing import Any

from stackprobe.schemas import AnalysisSummary, RawDetection

_CURRENCY_CLEANUP = re.compile(r"[\s$,]")


def parse_currency(value: Any) -> float:
    """
    Parse a monthly cost amount, defaulting to 0 for anything non-numeric.

    Accepts numbers and strings such as "15", "$1,200.50" or " 9.99 ".
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(_CURRENCY_CLEANUP.sub("", str(value)))
        except ValueError:
            return 0.0
    return number if math.isfinite(number) else 0.0


def summarize_detections(detections: Sequence[RawDetection]) -> AnalysisSummary:
    """
    Compute totals for a list of detections.

    averageConfidence is 0 for an empty list. Categories keep first-seen order.
    """
    categories = list(dict.fromkeys(d.category for d in detections))
    total_cost = sum(parse_currency(d.estimated_monthly_cost) for d in detections)
    average_confidence = (
        sum(d.confidence_score for d in detections) / len(detections) if detections else 0.0
    )

    return AnalysisSummary(
        total_tools=len(detections),
        total_estimated_cost=total_cost,
        average_confidence=min(average_confidence, 1.0),
        distinct_categories=categories,
    )

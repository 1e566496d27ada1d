"""
Aggregates per-document analysis results into frequency rankings.
"""

import logging
from collections import Counter
from typing import Dict, List

from kamaya_analysis.models import (
    CATEGORIES,
    AnalysisData,
    AnalysisResults,
    RankingItem,
)

logger = logging.getLogger(__name__)


def rank(counts: Counter) -> List[RankingItem]:
    """Sorts by count descending; equal counts keep first-seen order."""
    return [{"name": name, "count": count} for name, count in counts.most_common()]


class RankingAggregator:
    """Accumulates term counts across analyzed documents."""

    def __init__(self) -> None:
        self.counters: Dict[str, Counter] = {key: Counter() for key in CATEGORIES}
        self.documents = 0

    def add(self, data: AnalysisData) -> None:
        """Counts every trimmed, non-empty term of one document."""
        for category in CATEGORIES:
            items = data.get(category) or []  # type: ignore[misc]
            if isinstance(items, str):
                # A lone term returned without its list
                items = [items]
            for item in items:
                if not isinstance(item, str):
                    logger.debug("Ignoring non-string %s entry: %r", category, item)
                    continue
                key = item.strip()
                if key:
                    self.counters[category][key] += 1
        self.documents += 1

    def rankings(self) -> AnalysisResults:
        return {
            "ingredients": rank(self.counters["ingredients"]),
            "dishes": rank(self.counters["dishes"]),
            "cookingMethods": rank(self.counters["cookingMethods"]),
            "seasons": rank(self.counters["seasons"]),
        }

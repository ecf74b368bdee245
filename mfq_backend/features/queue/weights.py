"""
Folder weight computation.

The weight of a folder is `multiplier × max(observed_items, 1)`; its share of
admissions over a full pass is weight / Σweight. To get there, each discovered
item is admitted with probability `multiplier × base`, where
`base = min(sample_target / estimated_total, 1 / max_multiplier)`. Capping the
base keeps the most boosted folder at probability 1.0 at most, so the ratio
between folders survives even when the sample target exceeds the collection.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence

from .models import FolderNode, PriorityPattern, ScanBudget


class FolderWeightEngine:
    """Stateless; safe to share between schedulers without locking."""

    @staticmethod
    def path_multiplier(folder_id: str, patterns: Sequence[PriorityPattern]) -> float:
        """First pattern whose path is a substring of `folder_id` wins."""
        if not patterns or not folder_id:
            return 1.0
        for pattern in patterns:
            if pattern.path and pattern.path in folder_id:
                return float(pattern.weight_multiplier)
        return 1.0

    @staticmethod
    def max_multiplier(patterns: Sequence[PriorityPattern]) -> float:
        """Largest configured multiplier, never below 1.0."""
        return max([1.0, *(float(p.weight_multiplier) for p in patterns or ())])

    def weight_for(self, folder: FolderNode, budget: ScanBudget) -> float:
        multiplier = self.path_multiplier(folder.folder_id, budget.priority_patterns)
        return multiplier * max(int(folder.observed_item_count or 0), 1)

    def admission_probability(
        self,
        folder: FolderNode,
        budget: ScanBudget,
        estimated_total: int | None = None,
    ) -> float:
        """
        Probability that one discovered item of `folder` enters the queue.

        `estimated_total` is the value snapshotted at pass start; when omitted
        the budget's value is used. Unset or non-positive totals admit everything.
        """
        total = budget.estimated_total_items if estimated_total is None else estimated_total
        if not total or total <= 0:
            return 1.0
        base = min(budget.effective_sample_target / float(total), 1.0 / self.max_multiplier(budget.priority_patterns))
        probability = self.path_multiplier(folder.folder_id, budget.priority_patterns) * base
        if probability != probability:  # NaN
            return 1.0
        return max(0.0, min(1.0, probability))

    def expected_shares(self, folders: Iterable[FolderNode], budget: ScanBudget) -> dict[str, float]:
        """Long-run share of admissions per folder (weight / total weight)."""
        weights = {f.folder_id: self.weight_for(f, budget) for f in folders if f.observed_item_count > 0}
        total = sum(weights.values())
        if total <= 0:
            return {}
        return {folder_id: w / total for folder_id, w in weights.items()}

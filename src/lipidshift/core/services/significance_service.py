"""
Service for tagging differential results as up, down or not significant.
"""
import math
from typing import Dict, List, Optional
from ..models.statistics import ComparisonResult, GeneType


class SignificanceService:
    """
    Classification rule:
    - 'up'   if fold_change >= fc_up   and adjusted p <= padj_threshold
    - 'down' if fold_change <= fc_down and adjusted p <= padj_threshold
    - 'ns'   otherwise, including any result with a missing value
    """

    def classify(
        self,
        results: List[ComparisonResult],
        fc_up: float = 1.5,
        fc_down: float = 0.5,
        padj_threshold: float = 0.05
    ) -> List[ComparisonResult]:
        """
        Assign a gene_type to every result.

        Args:
            results: Differential results for one comparison
            fc_up: Linear fold change threshold for 'up'
            fc_down: Linear fold change threshold for 'down'
            padj_threshold: Adjusted p-value threshold

        Returns:
            New ComparisonResult objects with gene_type set, in input order

        Raises:
            ValueError: If fc_down is not smaller than fc_up
        """
        if fc_down >= fc_up:
            raise ValueError(f"fc_down ({fc_down}) must be smaller than fc_up ({fc_up})")

        return [
            result.model_copy(update={
                'gene_type': self.classify_one(
                    result.fold_change, result.adjusted_p_value, fc_up, fc_down, padj_threshold
                )
            })
            for result in results
        ]

    @staticmethod
    def classify_one(
        fold_change: Optional[float],
        adjusted_p_value: Optional[float],
        fc_up: float,
        fc_down: float,
        padj_threshold: float
    ) -> GeneType:
        if _is_missing(fold_change) or _is_missing(adjusted_p_value):
            return 'ns'
        if adjusted_p_value > padj_threshold:
            return 'ns'
        if fold_change >= fc_up:
            return 'up'
        if fold_change <= fc_down:
            return 'down'
        return 'ns'

    @staticmethod
    def summarize(results: List[ComparisonResult]) -> Dict[str, int]:
        """Count of each gene_type; unclassified results are not counted."""
        counts = {'up': 0, 'down': 0, 'ns': 0}
        for result in results:
            if result.gene_type is not None:
                counts[result.gene_type] += 1
        return counts


def _is_missing(value: Optional[float]) -> bool:
    return value is None or math.isnan(value)

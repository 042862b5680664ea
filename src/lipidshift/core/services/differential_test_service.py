"""
Differential abundance testing between two groups of samples.
Pure business logic - no UI dependencies.
"""
import logging
from typing import Dict, List, Optional
import numpy as np
from scipy import stats
from statsmodels.stats.multitest import multipletests
from ..exceptions import FeatureTestFailure, InputError
from ..models.experiment import GroupAssignment
from ..models.lipid_data import NormalizedMatrix
from ..models.statistics import (
    AnalysisConfig,
    AssumptionFlags,
    ComparisonResult,
    FailedTest,
    FeatureTestOutcome,
    RecommendedTest,
    SucceededTest,
)
from .diagnostics_service import is_constant

logger = logging.getLogger(__name__)

WELCH = "Welch's t-test"
MANN_WHITNEY = "Mann-Whitney U"
MIN_VALUES_PER_GROUP = 2
LOG2_OF_10 = np.log2(10)


class DifferentialTestService:
    """
    Per-feature fold change and two-sample test, followed by
    Benjamini-Hochberg correction within the comparison.

    Input values are already log10-transformed, so the difference of group
    means is the log10 fold change of group B over group A.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def compare(
        self,
        normalized: NormalizedMatrix,
        groups: GroupAssignment,
        diagnostics: Optional[Dict[str, AssumptionFlags]] = None
    ) -> List[ComparisonResult]:
        """
        Test every feature between group A and group B.

        Features with fewer than two non-missing values in either group are
        left out of the output. A test that cannot be computed for a feature
        is recorded on that feature's result and does not stop the others.

        Args:
            normalized: Log-transformed abundance matrix
            groups: Two-group partition of the samples
            diagnostics: Optional assumption flags per feature; only used to
                         pick the test when config.honor_diagnostics is set

        Returns:
            List of ComparisonResult, in matrix row order

        Raises:
            InputError: If a group sample is missing from the matrix
        """
        missing = [s for s in groups.all_samples if s not in normalized.data.columns]
        if missing:
            raise InputError(f"Group samples not in normalized matrix: {', '.join(missing)}")

        group_a = normalized.data[groups.group_a_samples]
        group_b = normalized.data[groups.group_b_samples]

        rows = []
        n_dropped = 0
        for feature_id in normalized.data.index:
            a_values = group_a.loc[feature_id].dropna().to_numpy(dtype=float)
            b_values = group_b.loc[feature_id].dropna().to_numpy(dtype=float)

            if len(a_values) < MIN_VALUES_PER_GROUP or len(b_values) < MIN_VALUES_PER_GROUP:
                logger.debug(
                    "Dropping %s from %s: %d/%d values in %s/%s",
                    feature_id, groups.name, len(a_values), len(b_values),
                    groups.group_a_label, groups.group_b_label
                )
                n_dropped += 1
                continue

            flags = diagnostics.get(feature_id) if diagnostics else None
            outcome = self.run_test(feature_id, a_values, b_values, flags)
            rows.append(self._fold_change_row(feature_id, a_values, b_values, outcome, flags))

        adjusted = self.adjust_p_values([row['p_value'] for row in rows])
        results = [
            ComparisonResult(**row, adjusted_p_value=adj_p)
            for row, adj_p in zip(rows, adjusted)
        ]

        n_failed = sum(1 for r in results if r.test_failed)
        if n_failed:
            logger.warning(
                "%s: statistical test failed for %d of %d features",
                groups.name, n_failed, len(results)
            )
        logger.info(
            "%s: tested %d features (%d dropped for too few values)",
            groups.name, len(results), n_dropped
        )
        return results

    def run_test(
        self,
        feature_id: str,
        a_values: np.ndarray,
        b_values: np.ndarray,
        flags: Optional[AssumptionFlags] = None
    ) -> FeatureTestOutcome:
        """
        Run the two-sample test for one feature and capture failures.

        Welch's t-test unless config.honor_diagnostics is set and the flags
        recommend the Mann-Whitney U test or no test at all.
        """
        method = WELCH
        if self.config.honor_diagnostics and flags is not None:
            if flags.recommended_test == RecommendedTest.SKIP:
                return FailedTest(method='none', reason="No test recommended by assumption diagnostics")
            if flags.recommended_test == RecommendedTest.WILCOXON:
                method = MANN_WHITNEY

        try:
            if method == MANN_WHITNEY:
                statistic, p_value = self._mann_whitney(a_values, b_values)
            else:
                statistic, p_value = self._welch_t_test(a_values, b_values)
        except FeatureTestFailure as e:
            logger.debug("%s: %s failed: %s", feature_id, method, e.reason)
            return FailedTest(method=method, reason=e.reason)

        return SucceededTest(method=method, statistic=statistic, p_value=p_value)

    def adjust_p_values(self, p_values: List[Optional[float]]) -> List[Optional[float]]:
        """
        Benjamini-Hochberg adjustment of the non-missing p-values.
        Missing entries stay missing.
        """
        p_array = np.array([np.nan if p is None else p for p in p_values], dtype=float)
        adjusted = np.full_like(p_array, np.nan)

        valid_mask = ~np.isnan(p_array)
        if valid_mask.any():
            _, adjusted[valid_mask], _, _ = multipletests(
                p_array[valid_mask],
                alpha=self.config.padj_threshold,
                method=self.config.correction_method
            )

        return [None if np.isnan(p) else float(p) for p in adjusted]

    @staticmethod
    def _welch_t_test(a_values: np.ndarray, b_values: np.ndarray):
        if is_constant(a_values) and is_constant(b_values):
            raise FeatureTestFailure("zero variance in both groups")

        with np.errstate(divide='ignore', invalid='ignore'):
            statistic, p_value = stats.ttest_ind(b_values, a_values, equal_var=False)

        if not (np.isfinite(statistic) and np.isfinite(p_value)):
            raise FeatureTestFailure("Welch's t-test returned a non-finite result")
        return float(statistic), float(p_value)

    @staticmethod
    def _mann_whitney(a_values: np.ndarray, b_values: np.ndarray):
        try:
            statistic, p_value = stats.mannwhitneyu(b_values, a_values, alternative='two-sided')
        except ValueError as e:
            raise FeatureTestFailure(f"Mann-Whitney U test failed: {e}")

        if not np.isfinite(p_value):
            raise FeatureTestFailure("Mann-Whitney U test returned a non-finite p-value")
        return float(statistic), float(p_value)

    @staticmethod
    def _fold_change_row(
        feature_id: str,
        a_values: np.ndarray,
        b_values: np.ndarray,
        outcome: FeatureTestOutcome,
        flags: Optional[AssumptionFlags]
    ) -> dict:
        mean_a = float(np.mean(a_values))
        mean_b = float(np.mean(b_values))
        log10_fc = mean_b - mean_a

        row = {
            'feature_id': feature_id,
            'mean_group_a': mean_a,
            'mean_group_b': mean_b,
            'log10_fold_change': log10_fc,
            'fold_change': float(10 ** log10_fc),
            'log2_fold_change': float(log10_fc * LOG2_OF_10),
            'test_method': outcome.method,
            'diagnostics': flags,
        }

        if isinstance(outcome, SucceededTest):
            row.update(statistic=outcome.statistic, p_value=outcome.p_value, failure_reason=None)
        else:
            row.update(statistic=None, p_value=None, failure_reason=outcome.reason)
        return row

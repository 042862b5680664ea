"""
Service for per-feature statistical assumption diagnostics.

The flags are advisory: they are reported next to the differential results
and only change which test runs when AnalysisConfig.honor_diagnostics is set.
"""
import logging
from typing import Dict, Optional
import numpy as np
from scipy import stats
from ..exceptions import DiagnosticUndefined, InputError
from ..models.experiment import GroupAssignment
from ..models.lipid_data import NormalizedMatrix
from ..models.statistics import AnalysisConfig, AssumptionFlags, RecommendedTest

logger = logging.getLogger(__name__)

SPREAD_RTOL = 1e-12


def is_negligible_spread(spread: float, values: np.ndarray) -> bool:
    """True when a spread measure is rounding noise relative to the values."""
    return bool(spread <= SPREAD_RTOL * max(1.0, float(np.abs(values).max())))


def is_constant(values: np.ndarray) -> bool:
    """True when all values are equal up to floating point rounding."""
    return is_negligible_spread(np.ptp(values), values)


class AssumptionDiagnosticsService:
    """
    Checks normality (Shapiro-Wilk), variance homogeneity (Levene) and
    distribution shape similarity (IQR ratio) for every feature.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def diagnose(
        self,
        normalized: NormalizedMatrix,
        groups: GroupAssignment
    ) -> Dict[str, AssumptionFlags]:
        """
        Compute assumption flags for each feature, restricted to the two groups.

        Args:
            normalized: Log-transformed abundance matrix
            groups: Two-group partition of the samples

        Returns:
            Dict mapping feature_id to AssumptionFlags
        """
        missing = [s for s in groups.all_samples if s not in normalized.data.columns]
        if missing:
            raise InputError(f"Group samples not in normalized matrix: {', '.join(missing)}")

        group_a = normalized.data[groups.group_a_samples]
        group_b = normalized.data[groups.group_b_samples]

        flags = {}
        for feature_id in normalized.data.index:
            a_values = group_a.loc[feature_id].dropna().to_numpy(dtype=float)
            b_values = group_b.loc[feature_id].dropna().to_numpy(dtype=float)
            flags[feature_id] = self.diagnose_feature(a_values, b_values)

        n_welch = sum(1 for f in flags.values() if f.recommended_test == RecommendedTest.WELCH_T)
        logger.debug(
            "Diagnostics for %s: %d of %d features meet t-test assumptions",
            groups.name, n_welch, len(flags)
        )
        return flags

    def diagnose_feature(self, a_values: np.ndarray, b_values: np.ndarray) -> AssumptionFlags:
        """Assumption flags for one feature's two groups of values."""
        normal_a = self._undefined_as_none(self._is_normal, a_values)
        normal_b = self._undefined_as_none(self._is_normal, b_values)
        equal_var = self._undefined_as_none(self._has_equal_variance, a_values, b_values)
        similar_shape = self._undefined_as_none(self._has_similar_shape, a_values, b_values)

        use_ttest = self._all_true([normal_a, normal_b, equal_var])
        use_wilcoxon = False if use_ttest else similar_shape

        if use_ttest:
            recommended = RecommendedTest.WELCH_T
        elif use_wilcoxon:
            recommended = RecommendedTest.WILCOXON
        else:
            recommended = RecommendedTest.SKIP

        return AssumptionFlags(
            normal_in_group_a=normal_a,
            normal_in_group_b=normal_b,
            equal_variance=equal_var,
            similar_shape=similar_shape,
            use_ttest=use_ttest,
            use_wilcoxon=use_wilcoxon,
            recommended_test=recommended
        )

    def _is_normal(self, values: np.ndarray) -> bool:
        if len(values) < 3:
            raise DiagnosticUndefined("Shapiro-Wilk needs at least 3 values")
        if is_constant(values):
            raise DiagnosticUndefined("Shapiro-Wilk undefined for identical values")

        _, p_value = stats.shapiro(values)
        if not np.isfinite(p_value):
            raise DiagnosticUndefined("Shapiro-Wilk returned a non-finite p-value")
        return bool(p_value > self.config.alpha)

    def _has_equal_variance(self, a_values: np.ndarray, b_values: np.ndarray) -> bool:
        if len(a_values) < 2 or len(b_values) < 2:
            raise DiagnosticUndefined("Levene's test needs at least 2 values per group")
        if is_constant(a_values) and is_constant(b_values):
            raise DiagnosticUndefined("Levene's test undefined when both groups are constant")

        with np.errstate(divide='ignore', invalid='ignore'):
            _, p_value = stats.levene(a_values, b_values)
        if not np.isfinite(p_value):
            raise DiagnosticUndefined("Levene's test returned a non-finite p-value")
        return bool(p_value > self.config.alpha)

    def _has_similar_shape(self, a_values: np.ndarray, b_values: np.ndarray) -> bool:
        if len(a_values) < 2 or len(b_values) < 2:
            raise DiagnosticUndefined("IQR comparison needs at least 2 values per group")

        iqr_a = stats.iqr(a_values)
        iqr_b = stats.iqr(b_values)
        if is_negligible_spread(iqr_a, a_values) or is_negligible_spread(iqr_b, b_values):
            raise DiagnosticUndefined("IQR comparison undefined when a group has zero IQR")

        relative_difference = abs(iqr_a - iqr_b) / max(iqr_a, iqr_b)
        return bool(relative_difference < self.config.shape_tolerance)

    @staticmethod
    def _undefined_as_none(check, *args) -> Optional[bool]:
        try:
            return check(*args)
        except DiagnosticUndefined as e:
            logger.debug("Diagnostic undefined: %s", e)
            return None

    @staticmethod
    def _all_true(flags) -> Optional[bool]:
        """Three-valued AND: False wins over NA, NA wins over True."""
        if any(flag is False for flag in flags):
            return False
        if any(flag is None for flag in flags):
            return None
        return True

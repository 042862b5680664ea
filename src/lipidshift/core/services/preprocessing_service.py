"""
Preprocessing service for lipid abundance data.
Pure business logic - no UI dependencies.
"""
import logging
from typing import Optional, Tuple
import numpy as np
import pandas as pd
from ..exceptions import InputError
from ..models.lipid_data import AbundanceMatrix, NormalizedMatrix
from ..models.statistics import AnalysisConfig

logger = logging.getLogger(__name__)


class PreprocessingService:
    """
    Turns raw intensities into log10 percent-of-total abundances.

    Steps, in order:
    1. Impute missing entries with a fraction of the global minimum
    2. Normalize each sample to percent of its total
    3. log10(x + epsilon)
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def preprocess(self, matrix: AbundanceMatrix) -> NormalizedMatrix:
        """
        Run imputation, compositional normalization and log transform.

        Args:
            matrix: Raw abundance matrix

        Returns:
            NormalizedMatrix with the same feature and sample identifiers

        Raises:
            InputError: If the matrix is empty, entirely missing, or a sample
                        has no positive total
        """
        if matrix.data.empty:
            raise InputError("Abundance matrix is empty")

        imputed, imputed_value, n_imputed = self.impute_missing(matrix.data)
        percent = self.normalize_composition(imputed)
        logged = self.log_transform(percent)

        logger.info(
            "Preprocessed %d features x %d samples (%d values imputed with %.4g)",
            logged.shape[0], logged.shape[1], n_imputed, imputed_value
        )

        return NormalizedMatrix(data=logged, imputed_value=imputed_value, n_imputed=n_imputed)

    def impute_missing(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, float, int]:
        """
        Replace missing values with imputation_fraction * global minimum.

        The minimum is taken over every observed value in the matrix, not
        per feature or per sample.

        Args:
            df: Feature-by-sample intensities, missing as NaN

        Returns:
            Tuple of (imputed_df, imputed_value, n_imputed)

        Raises:
            InputError: If no finite value is observed
        """
        values = df.to_numpy(dtype=float)
        observed = values[~np.isnan(values)]
        if observed.size == 0:
            raise InputError("Cannot impute: every value in the matrix is missing")

        min_val = observed.min()
        if not np.isfinite(min_val):
            raise InputError(f"Cannot impute: minimum observed value is not finite ({min_val})")

        imputed_value = float(self.config.imputation_fraction * min_val)
        n_imputed = int(np.isnan(values).sum())
        if n_imputed == 0:
            return df, imputed_value, 0

        return df.fillna(imputed_value), imputed_value, n_imputed

    def normalize_composition(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Express each feature as a percentage of its sample's total.

        Args:
            df: Imputed feature-by-sample intensities

        Returns:
            DataFrame whose columns each sum to 100

        Raises:
            InputError: If a sample total is zero, negative or not finite
        """
        totals = df.sum(axis=0)
        bad_samples = totals[~np.isfinite(totals) | (totals <= 0)]
        if not bad_samples.empty:
            raise InputError(
                f"Samples with no positive total abundance: {', '.join(bad_samples.index.astype(str))}"
            )
        return df.divide(totals, axis='columns') * 100

    def log_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply log10(x + log_epsilon) to every value."""
        return np.log10(df + self.config.log_epsilon)

"""
Adapter layer between tabular lipid data and core service models.
Handles conversion from wide lipid tables into matrix/metadata models and
flattening of comparison results for plotting and export.
"""
import re
from typing import List, Optional, Tuple
import numpy as np
import pandas as pd
from ..core.exceptions import InputError
from ..core.models.comparison import AnalysisReport
from ..core.models.experiment import SampleMetadata
from ..core.models.lipid_data import AbundanceMatrix, FeatureClassAnnotation
from ..core.models.statistics import ComparisonResult

RESULT_COLUMNS = [
    'LipidMolec', 'ClassKey', 'mean_group_a', 'mean_group_b',
    'log10_fold_change', 'FoldChange', 'log2FoldChange', 'statistic',
    'pValue', 'adjusted_pValue', '-log10(pValue)', '-log10(adjusted_pValue)',
    'test_method', 'failure_reason', 'GeneType',
    'normal_in_group_a', 'normal_in_group_b', 'equal_variance',
    'similar_shape', 'recommended_test',
]


class LipidTableAdapter:
    """
    Converts between LipidCruncher-style wide tables and core models.

    Expected table layout:
        LipidMolec | ClassKey | intensity[s1] | intensity[s2] | ...
    """

    def from_wide_dataframe(
        self,
        df: pd.DataFrame,
        intensity_prefix: str = 'intensity'
    ) -> Tuple[AbundanceMatrix, FeatureClassAnnotation]:
        """
        Build an abundance matrix and class annotation from a wide table.

        Args:
            df: Table with a 'LipidMolec' column, an optional 'ClassKey'
                column and one '<prefix>[<sample>]' column per sample
            intensity_prefix: Column prefix of the sample columns

        Returns:
            Tuple of (AbundanceMatrix, FeatureClassAnnotation)

        Raises:
            InputError: If required columns are missing or values are invalid

        Example:
            >>> df = pd.DataFrame({
            ...     'LipidMolec': ['PC(16:0_18:1)'],
            ...     'ClassKey': ['PC'],
            ...     'intensity[s1]': [100.0],
            ...     'intensity[s2]': [200.0]
            ... })
            >>> matrix, annotation = adapter.from_wide_dataframe(df)
            >>> matrix.sample_ids
            ['s1', 's2']
        """
        if 'LipidMolec' not in df.columns:
            raise InputError("Lipid table must contain a 'LipidMolec' column")

        intensity_cols = self.intensity_columns(df, intensity_prefix)
        if not intensity_cols:
            raise InputError(f"Lipid table has no '{intensity_prefix}[...]' columns")

        sample_names = [self._sample_name(col, intensity_prefix) for col in intensity_cols]
        values = df[intensity_cols].apply(pd.to_numeric, errors='coerce')
        values.columns = sample_names
        values.index = df['LipidMolec'].astype(str).str.strip()
        values.index.name = None

        matrix = AbundanceMatrix.from_dataframe(values)

        classes = {}
        if 'ClassKey' in df.columns:
            for lipid, lipid_class in zip(values.index, df['ClassKey']):
                if pd.notna(lipid_class):
                    classes[lipid] = str(lipid_class)

        return matrix, FeatureClassAnnotation(classes=classes)

    def metadata_from_dataframe(
        self,
        df: pd.DataFrame,
        sample_column: str = 'sample',
        timepoint_order: Optional[List[str]] = None
    ) -> SampleMetadata:
        """
        Build sample metadata from a flat table with one row per sample.

        Args:
            df: Table with sample, genotype and timepoint columns
            sample_column: Name of the sample identifier column
            timepoint_order: Optional explicit timepoint ordering

        Returns:
            SampleMetadata indexed by sample id

        Raises:
            InputError: If the sample column is missing or validation fails
        """
        if sample_column not in df.columns:
            raise InputError(f"Metadata table must contain a '{sample_column}' column")

        indexed = df.copy()
        indexed[sample_column] = indexed[sample_column].astype(str).str.strip()
        indexed = indexed.set_index(sample_column)
        indexed.index.name = None
        return SampleMetadata.from_dataframe(indexed, timepoint_order=timepoint_order)

    def results_to_dataframe(self, results: List[ComparisonResult]) -> pd.DataFrame:
        """
        Flatten results into a volcano-plot / export friendly DataFrame.

        Missing values become NaN; -log10 columns are NaN where the
        p-value is missing.
        """
        rows = []
        for result in results:
            flags = result.diagnostics
            rows.append({
                'LipidMolec': result.feature_id,
                'ClassKey': result.class_label,
                'mean_group_a': result.mean_group_a,
                'mean_group_b': result.mean_group_b,
                'log10_fold_change': result.log10_fold_change,
                'FoldChange': result.fold_change,
                'log2FoldChange': result.log2_fold_change,
                'statistic': _nan_if_none(result.statistic),
                'pValue': _nan_if_none(result.p_value),
                'adjusted_pValue': _nan_if_none(result.adjusted_p_value),
                'test_method': result.test_method,
                'failure_reason': result.failure_reason,
                'GeneType': result.gene_type,
                'normal_in_group_a': None if flags is None else flags.normal_in_group_a,
                'normal_in_group_b': None if flags is None else flags.normal_in_group_b,
                'equal_variance': None if flags is None else flags.equal_variance,
                'similar_shape': None if flags is None else flags.similar_shape,
                'recommended_test': None if flags is None else flags.recommended_test.value,
            })

        result_df = pd.DataFrame(rows, columns=[c for c in RESULT_COLUMNS if not c.startswith('-log10')])
        result_df['-log10(pValue)'] = -np.log10(result_df['pValue'].astype(float))
        result_df['-log10(adjusted_pValue)'] = -np.log10(result_df['adjusted_pValue'].astype(float))
        return result_df[RESULT_COLUMNS]

    def report_to_dataframe(self, report: AnalysisReport) -> pd.DataFrame:
        """All completed comparisons stacked, with a leading 'comparison' column."""
        frames = []
        for name, run in report.runs.items():
            run_df = self.results_to_dataframe(run.results)
            run_df.insert(0, 'comparison', name)
            frames.append(run_df)

        if not frames:
            return pd.DataFrame(columns=['comparison'] + RESULT_COLUMNS)
        return pd.concat(frames, axis=0, ignore_index=True)

    @staticmethod
    def intensity_columns(df: pd.DataFrame, intensity_prefix: str = 'intensity') -> List[str]:
        """Columns named '<prefix>[<sample>]', in table order."""
        pattern = re.compile(rf'^{re.escape(intensity_prefix)}\[(.+)\]$')
        return [col for col in df.columns if isinstance(col, str) and pattern.match(col)]

    @staticmethod
    def _sample_name(column: str, intensity_prefix: str) -> str:
        return column[len(intensity_prefix) + 1:-1]


def _nan_if_none(value: Optional[float]) -> float:
    return np.nan if value is None else value

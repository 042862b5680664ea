"""
Containers for the output of one comparison and of a full analysis run.
"""
from typing import Dict, List
from pydantic import BaseModel, ConfigDict, Field
import pandas as pd
from .experiment import ComparisonSpec, GroupAssignment
from .lipid_data import NormalizedMatrix
from .statistics import AssumptionFlags, ComparisonResult


class ComparisonRun(BaseModel):
    """
    Everything produced by one comparison: the groups it resolved to,
    the per-feature results and the per-feature assumption diagnostics.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    comparison: ComparisonSpec
    groups: GroupAssignment
    results: List[ComparisonResult] = Field(default_factory=list)
    diagnostics: Dict[str, AssumptionFlags] = Field(default_factory=dict)

    def classification_inputs(self) -> pd.DataFrame:
        """
        Fold change and adjusted p-value per feature, the two inputs the
        significance classifier thresholds on.

        Returns:
            DataFrame with columns ['feature_id', 'fold_change', 'adjusted_p_value']
        """
        return pd.DataFrame(
            {
                'feature_id': [r.feature_id for r in self.results],
                'fold_change': [r.fold_change for r in self.results],
                'adjusted_p_value': [
                    float('nan') if r.adjusted_p_value is None else r.adjusted_p_value
                    for r in self.results
                ],
            },
            columns=['feature_id', 'fold_change', 'adjusted_p_value']
        )

    def summary(self) -> Dict[str, int]:
        """Counts of 'up', 'down' and 'ns' features plus failed tests."""
        counts = {'up': 0, 'down': 0, 'ns': 0}
        for result in self.results:
            if result.gene_type is not None:
                counts[result.gene_type] += 1
        counts['failed_tests'] = sum(1 for r in self.results if r.test_failed)
        return counts

    def with_results(self, results: List[ComparisonResult]) -> "ComparisonRun":
        """Copy of this run with its results replaced."""
        return self.model_copy(update={'results': list(results)})


class AnalysisReport(BaseModel):
    """Output of a full workflow run."""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    normalized: NormalizedMatrix
    runs: Dict[str, ComparisonRun] = Field(default_factory=dict)
    failed: Dict[str, str] = Field(default_factory=dict, description="Comparison name -> error message")

    def get_run(self, name: str) -> ComparisonRun:
        if name not in self.runs:
            raise KeyError(f"No completed comparison named '{name}'. Available: {list(self.runs)}")
        return self.runs[name]

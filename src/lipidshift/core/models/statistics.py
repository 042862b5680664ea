"""
Statistical configuration and per-feature result models.
"""
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AnalysisConfig(BaseModel):
    """
    Configuration for preprocessing, testing and significance calling.

    Attributes:
        imputation_fraction: Missing values are replaced by this fraction of the global minimum
        log_epsilon: Offset added before the log10 transform
        alpha: Threshold for the normality and variance diagnostics
        shape_tolerance: Maximum relative IQR difference for 'similar shape'
        fc_up: Linear fold change at or above which a feature can be 'up'
        fc_down: Linear fold change at or below which a feature can be 'down'
        padj_threshold: Adjusted p-value at or below which a feature is significant
        correction_method: Multiple testing correction ('fdr_bh')
        honor_diagnostics: If True, run the test the diagnostics recommend
                           instead of always running Welch's t-test
    """
    imputation_fraction: float = Field(default=0.5, gt=0, le=1, description="Fraction of global minimum used for imputation")
    log_epsilon: float = Field(default=1e-6, gt=0, description="Offset for log10 transform")
    alpha: float = Field(default=0.05, gt=0, lt=1, description="Diagnostic test threshold")
    shape_tolerance: float = Field(default=0.3, gt=0, description="Relative IQR difference tolerance")
    fc_up: float = Field(default=1.5, gt=0, description="Up-regulation fold change threshold")
    fc_down: float = Field(default=0.5, gt=0, description="Down-regulation fold change threshold")
    padj_threshold: float = Field(default=0.05, gt=0, le=1, description="Adjusted p-value threshold")
    correction_method: str = Field(default='fdr_bh', description="Multiple testing correction")
    honor_diagnostics: bool = Field(default=False, description="Use the diagnostic test recommendation")

    @field_validator('correction_method')
    @classmethod
    def validate_correction_method(cls, v):
        """Only Benjamini-Hochberg is supported."""
        valid_methods = ['fdr_bh']
        if v not in valid_methods:
            raise ValueError(f"correction_method must be one of {valid_methods}, got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_fold_change_thresholds(self):
        if self.fc_down >= self.fc_up:
            raise ValueError(
                f"fc_down ({self.fc_down}) must be smaller than fc_up ({self.fc_up})"
            )
        return self


class RecommendedTest(str, Enum):
    """Test suggested by the assumption diagnostics."""
    WELCH_T = 'welch_t'
    WILCOXON = 'wilcoxon'
    SKIP = 'skip'


class AssumptionFlags(BaseModel):
    """
    Assumption diagnostics for one feature in one comparison.
    None means the diagnostic could not be computed (NA).
    """
    model_config = ConfigDict(frozen=True)

    normal_in_group_a: Optional[bool] = None
    normal_in_group_b: Optional[bool] = None
    equal_variance: Optional[bool] = None
    similar_shape: Optional[bool] = None
    use_ttest: Optional[bool] = None
    use_wilcoxon: Optional[bool] = None
    recommended_test: RecommendedTest = RecommendedTest.SKIP


class SucceededTest(BaseModel):
    """A per-feature test that produced a statistic and p-value."""
    model_config = ConfigDict(frozen=True)

    status: Literal['ok'] = 'ok'
    method: str
    statistic: float
    p_value: float


class FailedTest(BaseModel):
    """A per-feature test that could not be computed."""
    model_config = ConfigDict(frozen=True)

    status: Literal['failed'] = 'failed'
    method: str
    reason: str


FeatureTestOutcome = Annotated[
    Union[SucceededTest, FailedTest],
    Field(discriminator='status')
]


GeneType = Literal['up', 'down', 'ns']


class ComparisonResult(BaseModel):
    """
    Differential result for one feature in one comparison.

    Means are of log10 abundances. fold_change is group B relative to
    group A on the linear scale. Missing numeric values are None.
    """
    model_config = ConfigDict(frozen=True)

    feature_id: str
    mean_group_a: float
    mean_group_b: float
    log10_fold_change: float
    fold_change: float
    log2_fold_change: float
    statistic: Optional[float] = None
    p_value: Optional[float] = None
    adjusted_p_value: Optional[float] = None
    test_method: str = "Welch's t-test"
    failure_reason: Optional[str] = None
    class_label: Optional[str] = None
    diagnostics: Optional[AssumptionFlags] = None
    gene_type: Optional[GeneType] = None

    @property
    def test_failed(self) -> bool:
        return self.failure_reason is not None

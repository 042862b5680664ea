"""
Lipid abundance data models.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import numpy as np
import pandas as pd
from ..exceptions import InputError


def _validate_numeric_frame(df: pd.DataFrame, label: str) -> pd.DataFrame:
    """Shared shape/key checks for feature-by-sample frames."""
    if not isinstance(df, pd.DataFrame):
        raise ValueError(f"{label} must be a pandas DataFrame, got {type(df).__name__}")
    if df.empty or df.shape[0] == 0 or df.shape[1] == 0:
        raise ValueError(f"{label} must contain at least one feature and one sample")
    if df.index.has_duplicates:
        duplicates = sorted(set(df.index[df.index.duplicated()].astype(str)))
        raise ValueError(f"Duplicate feature identifiers in {label}: {', '.join(duplicates)}")
    if df.columns.has_duplicates:
        duplicates = sorted(set(df.columns[df.columns.duplicated()].astype(str)))
        raise ValueError(f"Duplicate sample identifiers in {label}: {', '.join(duplicates)}")

    try:
        numeric = df.astype(float)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{label} must contain only numeric values: {e}")

    numeric.index = numeric.index.astype(str)
    numeric.columns = numeric.columns.astype(str)
    return numeric


class AbundanceMatrix(BaseModel):
    """
    Raw lipid intensities, one row per feature (lipid species) and one
    column per sample. Missing measurements are NaN.

    The frame is copied on construction; treat it as read-only.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    data: pd.DataFrame = Field(description="Feature-by-sample intensity matrix")

    @field_validator('data')
    @classmethod
    def validate_data(cls, v):
        """Ensure unique keys, numeric and non-negative observed values."""
        numeric = _validate_numeric_frame(v, "abundance matrix")
        values = numeric.to_numpy()
        observed = values[~np.isnan(values)]
        if (observed < 0).any():
            raise ValueError("Abundance values must be non-negative")
        return numeric.copy()

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "AbundanceMatrix":
        """
        Factory method that reports invalid input as InputError.

        Args:
            df: Feature-by-sample DataFrame (index = feature ids)

        Returns:
            AbundanceMatrix instance

        Raises:
            InputError: If the frame is empty, has duplicate keys, or holds
                non-numeric or negative values
        """
        try:
            return cls(data=df)
        except ValidationError as e:
            raise InputError(f"Invalid abundance matrix: {e}") from e

    @property
    def feature_ids(self) -> List[str]:
        return list(self.data.index)

    @property
    def sample_ids(self) -> List[str]:
        return list(self.data.columns)

    def n_missing(self) -> int:
        """Number of missing entries across the whole matrix."""
        return int(self.data.isna().to_numpy().sum())


class NormalizedMatrix(BaseModel):
    """
    Imputed, percent-of-total normalized, log10-transformed abundances.
    Same feature/sample keys as the AbundanceMatrix it was derived from.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    data: pd.DataFrame = Field(description="Feature-by-sample log10 abundance matrix")
    imputed_value: float = Field(description="Value substituted for missing entries")
    n_imputed: int = Field(ge=0, description="Number of entries that were imputed")

    @field_validator('data')
    @classmethod
    def validate_data(cls, v):
        return _validate_numeric_frame(v, "normalized matrix").copy()

    @property
    def feature_ids(self) -> List[str]:
        return list(self.data.index)

    @property
    def sample_ids(self) -> List[str]:
        return list(self.data.columns)


class FeatureClassAnnotation(BaseModel):
    """
    Lipid class label per feature (e.g. 'PC(16:0_18:1)' -> 'PC').
    Used for grouping and coloring downstream, never for statistics.
    """
    model_config = ConfigDict(frozen=True)

    classes: Dict[str, str] = Field(default_factory=dict, description="feature_id -> class label")

    def label_for(self, feature_id: str) -> Optional[str]:
        """Class label for a feature, or None when it is not annotated."""
        return self.classes.get(feature_id)

    def get_lipid_classes(self) -> List[str]:
        """Unique class labels in first-seen order."""
        return list(dict.fromkeys(self.classes.values()))

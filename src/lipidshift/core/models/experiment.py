"""
Experiment design models: sample metadata, comparison definitions and
the two-group partition a comparison resolves to.
"""
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
import pandas as pd
from ..exceptions import InputError


class Genotype(str, Enum):
    """Genotypes supported by the genotype contrast."""
    WT = 'WT'
    KO = 'KO'


REQUIRED_METADATA_COLUMNS = ['genotype', 'timepoint']


class SampleMetadata(BaseModel):
    """
    Per-sample attributes, indexed by sample identifier.

    Attributes:
        data: DataFrame indexed by sample_id with at least 'genotype' and
              'timepoint' columns. Extra attribute columns are kept.
        timepoint_order: Ordering of timepoints from earliest to latest.
                         Defaults to the order of first appearance.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    data: pd.DataFrame = Field(description="Sample attributes indexed by sample_id")
    timepoint_order: List[str] = Field(default_factory=list, description="Timepoints, earliest first")

    @field_validator('data')
    @classmethod
    def validate_data(cls, v):
        """Ensure required columns, unique sample ids and known genotypes."""
        if not isinstance(v, pd.DataFrame):
            raise ValueError(f"metadata must be a pandas DataFrame, got {type(v).__name__}")
        if v.empty:
            raise ValueError("metadata must contain at least one sample")

        missing = [col for col in REQUIRED_METADATA_COLUMNS if col not in v.columns]
        if missing:
            raise ValueError(f"metadata is missing required columns: {', '.join(missing)}")

        if v.index.has_duplicates:
            duplicates = sorted(set(v.index[v.index.duplicated()].astype(str)))
            raise ValueError(f"Duplicate sample identifiers in metadata: {', '.join(duplicates)}")

        if v[REQUIRED_METADATA_COLUMNS].isna().any().any():
            raise ValueError("genotype and timepoint must be set for every sample")

        data = v.copy()
        data.index = data.index.astype(str)
        data['genotype'] = data['genotype'].astype(str).str.strip()
        data['timepoint'] = data['timepoint'].astype(str).str.strip()

        valid_genotypes = [g.value for g in Genotype]
        invalid = sorted(set(data['genotype']) - set(valid_genotypes))
        if invalid:
            raise ValueError(f"genotype must be one of {valid_genotypes}, got {invalid}")

        return data

    @model_validator(mode='after')
    def validate_timepoint_order(self):
        """An explicit order must be unique and cover every observed timepoint."""
        if not self.timepoint_order:
            return self

        if len(set(self.timepoint_order)) != len(self.timepoint_order):
            raise ValueError(f"timepoint_order contains duplicates: {self.timepoint_order}")

        uncovered = [tp for tp in self.data['timepoint'].unique() if tp not in self.timepoint_order]
        if uncovered:
            raise ValueError(f"timepoint_order does not include: {', '.join(uncovered)}")
        return self

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        timepoint_order: Optional[List[str]] = None
    ) -> "SampleMetadata":
        """
        Factory method that reports invalid metadata as InputError.

        Args:
            df: DataFrame indexed by sample_id
            timepoint_order: Optional explicit timepoint ordering

        Returns:
            SampleMetadata instance

        Raises:
            InputError: If validation fails
        """
        try:
            return cls(data=df, timepoint_order=[str(tp) for tp in (timepoint_order or [])])
        except ValidationError as e:
            raise InputError(f"Invalid sample metadata: {e}") from e

    @property
    def sample_ids(self) -> List[str]:
        return list(self.data.index)

    @property
    def ordered_timepoints(self) -> List[str]:
        """Timepoints from earliest to latest."""
        if self.timepoint_order:
            return list(self.timepoint_order)
        return list(dict.fromkeys(self.data['timepoint']))

    def timepoint_rank(self, timepoint: str) -> int:
        """Position of a timepoint in the ordering; raises InputError if unknown."""
        order = self.ordered_timepoints
        if timepoint not in order:
            raise InputError(f"Unknown timepoint '{timepoint}'. Available: {order}")
        return order.index(timepoint)

    def select(self, **filters: str) -> List[str]:
        """
        Sample ids whose attributes match every filter, in metadata order.

        Example:
            >>> metadata.select(genotype='WT', timepoint='day3')
            ['s1', 's2']
        """
        mask = pd.Series(True, index=self.data.index)
        for column, value in filters.items():
            if column not in self.data.columns:
                raise InputError(f"Unknown metadata attribute '{column}'")
            mask &= self.data[column] == (value.value if isinstance(value, Enum) else str(value))
        return list(self.data.index[mask])


class GroupAssignment(BaseModel):
    """
    Two named, disjoint sample groups. Group A is the fold-change
    denominator, group B the numerator.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Comparison name")
    group_a_label: str = Field(description="Label of the reference (denominator) group")
    group_b_label: str = Field(description="Label of the contrasted (numerator) group")
    group_a_samples: List[str] = Field(description="Sample ids in group A")
    group_b_samples: List[str] = Field(description="Sample ids in group B")

    @model_validator(mode='after')
    def validate_groups(self):
        if self.group_a_label == self.group_b_label:
            raise ValueError(f"Cannot compare group to itself: {self.group_a_label}")

        overlap = set(self.group_a_samples) & set(self.group_b_samples)
        if overlap:
            raise ValueError(f"Samples assigned to both groups: {', '.join(sorted(overlap))}")
        return self

    @property
    def all_samples(self) -> List[str]:
        return self.group_a_samples + self.group_b_samples


class TemporalComparison(BaseModel):
    """
    Contrast two timepoints, optionally within one genotype.
    The earlier timepoint is always group A.
    """
    model_config = ConfigDict(frozen=True)

    axis: Literal['timepoint'] = 'timepoint'
    timepoint_a: str
    timepoint_b: str
    genotype: Optional[Genotype] = None
    label: Optional[str] = Field(default=None, description="Overrides the generated name")

    @model_validator(mode='after')
    def validate_distinct(self):
        if self.timepoint_a == self.timepoint_b:
            raise ValueError(f"Cannot compare timepoint to itself: {self.timepoint_a}")
        return self

    def ordered_timepoints(self, metadata: SampleMetadata) -> tuple:
        """(earlier, later) according to the metadata ordering."""
        if metadata.timepoint_rank(self.timepoint_a) <= metadata.timepoint_rank(self.timepoint_b):
            return self.timepoint_a, self.timepoint_b
        return self.timepoint_b, self.timepoint_a

    def name_for(self, metadata: SampleMetadata) -> str:
        if self.label:
            return self.label
        try:
            earlier, later = self.ordered_timepoints(metadata)
        except InputError:
            earlier, later = self.timepoint_a, self.timepoint_b
        name = f"{later}_vs_{earlier}"
        if self.genotype is not None:
            name += f"_{self.genotype.value}"
        return name


class GenotypeComparison(BaseModel):
    """Contrast WT against KO (the reference) at one timepoint."""
    model_config = ConfigDict(frozen=True)

    axis: Literal['genotype'] = 'genotype'
    timepoint: str
    label: Optional[str] = Field(default=None, description="Overrides the generated name")

    def name_for(self, metadata: SampleMetadata) -> str:
        if self.label:
            return self.label
        return f"{Genotype.WT.value}_vs_{Genotype.KO.value}_{self.timepoint}"


ComparisonSpec = Annotated[
    Union[TemporalComparison, GenotypeComparison],
    Field(discriminator='axis')
]

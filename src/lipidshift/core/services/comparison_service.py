"""
Comparison Service

Resolves a comparison definition (timepoint or genotype contrast) into two
sample groups and runs diagnostics and differential testing on them.
Pure business logic - no UI dependencies.
"""
import logging
from typing import Optional, Union
from ..exceptions import InsufficientSamplesError
from ..models.comparison import ComparisonRun
from ..models.experiment import (
    Genotype,
    GenotypeComparison,
    GroupAssignment,
    SampleMetadata,
    TemporalComparison,
)
from ..models.lipid_data import FeatureClassAnnotation, NormalizedMatrix
from ..models.statistics import AnalysisConfig
from .diagnostics_service import AssumptionDiagnosticsService
from .differential_test_service import DifferentialTestService

logger = logging.getLogger(__name__)

MIN_SAMPLES_PER_GROUP = 2


class ComparisonService:
    """
    Runs one two-group comparison end to end.

    Supported contrasts:
    - TemporalComparison: earlier timepoint (group A) vs later timepoint
      (group B), optionally within one genotype
    - GenotypeComparison: KO (group A) vs WT (group B) at one timepoint
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        diagnostics_service: Optional[AssumptionDiagnosticsService] = None,
        test_service: Optional[DifferentialTestService] = None
    ):
        self.config = config or AnalysisConfig()
        self.diagnostics_service = diagnostics_service or AssumptionDiagnosticsService(self.config)
        self.test_service = test_service or DifferentialTestService(self.config)

    def build_groups(
        self,
        metadata: SampleMetadata,
        comparison: Union[TemporalComparison, GenotypeComparison]
    ) -> GroupAssignment:
        """
        Select and partition samples for a comparison.

        Args:
            metadata: Sample metadata
            comparison: Temporal or genotype comparison definition

        Returns:
            GroupAssignment with group A as the fold-change denominator

        Raises:
            InputError: If a referenced timepoint does not exist
            InsufficientSamplesError: If either group has fewer than 2 samples

        Example:
            >>> comparison = GenotypeComparison(timepoint='day3')
            >>> groups = service.build_groups(metadata, comparison)
            >>> groups.group_a_label, groups.group_b_label
            ('KO', 'WT')
        """
        name = comparison.name_for(metadata)

        if isinstance(comparison, TemporalComparison):
            earlier, later = comparison.ordered_timepoints(metadata)
            secondary = {}
            if comparison.genotype is not None:
                secondary['genotype'] = comparison.genotype
            group_a_label, group_b_label = earlier, later
            group_a_samples = metadata.select(timepoint=earlier, **secondary)
            group_b_samples = metadata.select(timepoint=later, **secondary)
        else:
            metadata.timepoint_rank(comparison.timepoint)  # unknown timepoint -> InputError
            group_a_label, group_b_label = Genotype.KO.value, Genotype.WT.value
            group_a_samples = metadata.select(timepoint=comparison.timepoint, genotype=Genotype.KO)
            group_b_samples = metadata.select(timepoint=comparison.timepoint, genotype=Genotype.WT)

        for label, samples in ((group_a_label, group_a_samples), (group_b_label, group_b_samples)):
            if len(samples) < MIN_SAMPLES_PER_GROUP:
                raise InsufficientSamplesError(name, label, len(samples), MIN_SAMPLES_PER_GROUP)

        return GroupAssignment(
            name=name,
            group_a_label=group_a_label,
            group_b_label=group_b_label,
            group_a_samples=group_a_samples,
            group_b_samples=group_b_samples
        )

    def run_comparison(
        self,
        normalized: NormalizedMatrix,
        metadata: SampleMetadata,
        comparison: Union[TemporalComparison, GenotypeComparison],
        class_annotation: Optional[FeatureClassAnnotation] = None
    ) -> ComparisonRun:
        """
        Build groups, compute diagnostics, test every feature and attach
        class labels.

        Args:
            normalized: Log-transformed abundance matrix
            metadata: Sample metadata
            comparison: Temporal or genotype comparison definition
            class_annotation: Optional feature -> lipid class mapping

        Returns:
            ComparisonRun with unclassified results

        Raises:
            InputError: If a referenced timepoint does not exist
            InsufficientSamplesError: If either group has fewer than 2 samples
        """
        groups = self.build_groups(metadata, comparison)
        logger.info(
            "Running %s: %s (n=%d) vs %s (n=%d)",
            groups.name, groups.group_b_label, len(groups.group_b_samples),
            groups.group_a_label, len(groups.group_a_samples)
        )

        diagnostics = self.diagnostics_service.diagnose(normalized, groups)
        results = self.test_service.compare(normalized, groups, diagnostics)

        annotation = class_annotation or FeatureClassAnnotation()
        results = [
            result.model_copy(update={'class_label': annotation.label_for(result.feature_id)})
            for result in results
        ]

        return ComparisonRun(
            name=groups.name,
            comparison=comparison,
            groups=groups,
            results=results,
            diagnostics=diagnostics
        )

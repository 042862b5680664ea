"""
Differential analysis workflow orchestrator.
Coordinates validation, preprocessing, comparisons and significance calling.
"""
import logging
from typing import Dict, List, Optional, Union
from ..core.exceptions import InputError, InsufficientSamplesError
from ..core.models.comparison import AnalysisReport, ComparisonRun
from ..core.models.experiment import GenotypeComparison, SampleMetadata, TemporalComparison
from ..core.models.lipid_data import AbundanceMatrix, FeatureClassAnnotation
from ..core.models.statistics import AnalysisConfig
from ..core.services.comparison_service import ComparisonService
from ..core.services.input_validation_service import InputValidationService
from ..core.services.preprocessing_service import PreprocessingService
from ..core.services.significance_service import SignificanceService

logger = logging.getLogger(__name__)


class LipidomicsAnalysisWorkflow:
    """
    Runs the complete differential-abundance analysis.

    Matrix- and metadata-level errors abort before any comparison runs.
    A comparison with too few samples is recorded as failed and the
    remaining comparisons still run.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self.validation_service = InputValidationService()
        self.preprocessing_service = PreprocessingService(self.config)
        self.comparison_service = ComparisonService(self.config)
        self.significance_service = SignificanceService()

    def run(
        self,
        matrix: AbundanceMatrix,
        metadata: SampleMetadata,
        comparisons: List[Union[TemporalComparison, GenotypeComparison]],
        class_annotation: Optional[FeatureClassAnnotation] = None
    ) -> AnalysisReport:
        """
        Run every requested comparison on the preprocessed matrix.

        Args:
            matrix: Raw abundance matrix
            metadata: Sample metadata matching the matrix columns
            comparisons: Comparison definitions to run
            class_annotation: Optional feature -> lipid class mapping

        Returns:
            AnalysisReport with classified runs and failed comparisons

        Raises:
            InputError: If inputs are malformed, sample ids mismatch, or two
                        comparisons share a name or reference an unknown timepoint
        """
        self.validation_service.validate_sample_correspondence(matrix, metadata)
        self._check_comparisons(comparisons, metadata)

        normalized = self.preprocessing_service.preprocess(matrix)

        runs: Dict[str, ComparisonRun] = {}
        failed: Dict[str, str] = {}
        for comparison in comparisons:
            name = comparison.name_for(metadata)
            try:
                run = self.comparison_service.run_comparison(
                    normalized, metadata, comparison, class_annotation
                )
            except InsufficientSamplesError as e:
                logger.warning("Skipping comparison %s: %s", name, e)
                failed[name] = str(e)
                continue

            run = run.with_results(self.significance_service.classify(
                run.results,
                fc_up=self.config.fc_up,
                fc_down=self.config.fc_down,
                padj_threshold=self.config.padj_threshold
            ))
            runs[run.name] = run

            summary = run.summary()
            logger.info(
                "%s: %d up, %d down, %d ns, %d failed tests",
                run.name, summary['up'], summary['down'], summary['ns'], summary['failed_tests']
            )

        return AnalysisReport(normalized=normalized, runs=runs, failed=failed)

    @staticmethod
    def _check_comparisons(comparisons, metadata: SampleMetadata) -> None:
        """Unknown timepoints and duplicate names are fatal before any computation."""
        for comparison in comparisons:
            if isinstance(comparison, TemporalComparison):
                comparison.ordered_timepoints(metadata)
            else:
                metadata.timepoint_rank(comparison.timepoint)

        names = [comparison.name_for(metadata) for comparison in comparisons]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise InputError(f"Duplicate comparison names: {', '.join(duplicates)}")

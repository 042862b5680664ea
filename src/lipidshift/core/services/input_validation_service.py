"""
Service for checking that the abundance matrix and sample metadata
describe the same samples.
"""
import logging
from ..exceptions import InputError
from ..models.experiment import SampleMetadata
from ..models.lipid_data import AbundanceMatrix

logger = logging.getLogger(__name__)


class InputValidationService:
    """Checks run before any preprocessing or comparison."""

    def validate_sample_correspondence(
        self,
        matrix: AbundanceMatrix,
        metadata: SampleMetadata
    ) -> None:
        """
        Require a one-to-one correspondence between matrix columns and
        metadata sample ids.

        Args:
            matrix: Raw abundance matrix
            metadata: Sample metadata

        Raises:
            InputError: If either side has samples the other lacks
        """
        matrix_samples = set(matrix.sample_ids)
        metadata_samples = set(metadata.sample_ids)

        if matrix_samples == metadata_samples:
            logger.debug("Sample identifiers match (%d samples)", len(matrix_samples))
            return

        msg = []
        missing_metadata = sorted(matrix_samples - metadata_samples)
        missing_matrix = sorted(metadata_samples - matrix_samples)
        if missing_metadata:
            msg.append(f"Samples without metadata: {', '.join(missing_metadata)}")
        if missing_matrix:
            msg.append(f"Metadata samples absent from matrix: {', '.join(missing_matrix)}")
        raise InputError("; ".join(msg))

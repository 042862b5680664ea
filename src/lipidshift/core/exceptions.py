"""
Error taxonomy for the differential-abundance pipeline.

Input-level errors abort a run, sample-size errors abort a single comparison,
and per-feature errors are recovered inside the comparison that raised them.
"""
from typing import Optional


class LipidShiftError(Exception):
    """Base class for all pipeline errors."""


class InputError(LipidShiftError, ValueError):
    """Malformed or empty matrix/metadata, or mismatched sample identifiers."""


class InsufficientSamplesError(LipidShiftError, ValueError):
    """A comparison group has fewer samples than the test needs."""

    def __init__(self, comparison: str, group: str, n_samples: int, minimum: int = 2):
        self.comparison = comparison
        self.group = group
        self.n_samples = n_samples
        self.minimum = minimum
        super().__init__(
            f"Comparison '{comparison}': group '{group}' has {n_samples} sample(s), "
            f"at least {minimum} required"
        )


class FeatureTestFailure(LipidShiftError):
    """A per-feature statistical test could not be computed."""

    def __init__(self, reason: str, feature_id: Optional[str] = None):
        self.reason = reason
        self.feature_id = feature_id
        super().__init__(reason if feature_id is None else f"{feature_id}: {reason}")


class DiagnosticUndefined(LipidShiftError):
    """A per-feature diagnostic could not be computed; recorded as NA."""

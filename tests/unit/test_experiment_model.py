"""
Unit tests for SampleMetadata, GroupAssignment and comparison definition models.
"""
import pytest
import pandas as pd
from pydantic import TypeAdapter, ValidationError
from lipidshift.core.exceptions import InputError
from lipidshift.core.models.experiment import (
    ComparisonSpec,
    Genotype,
    GenotypeComparison,
    GroupAssignment,
    SampleMetadata,
    TemporalComparison,
)


@pytest.fixture
def metadata_frame():
    """Two genotypes at two timepoints, two replicates each."""
    return pd.DataFrame(
        {
            'genotype': ['WT', 'WT', 'KO', 'KO', 'WT', 'WT', 'KO', 'KO'],
            'timepoint': ['day3', 'day3', 'day3', 'day3', 'day7', 'day7', 'day7', 'day7'],
        },
        index=['s1', 's2', 's3', 's4', 's5', 's6', 's7', 's8']
    )


class TestSampleMetadata:
    """Test suite for SampleMetadata model."""

    def test_valid_metadata(self, metadata_frame):
        metadata = SampleMetadata(data=metadata_frame)

        assert metadata.sample_ids == ['s1', 's2', 's3', 's4', 's5', 's6', 's7', 's8']
        assert metadata.ordered_timepoints == ['day3', 'day7']

    def test_explicit_timepoint_order(self, metadata_frame):
        """Test that an explicit order overrides first appearance."""
        metadata = SampleMetadata(data=metadata_frame, timepoint_order=['day7', 'day3'])

        assert metadata.ordered_timepoints == ['day7', 'day3']
        assert metadata.timepoint_rank('day3') == 1

    def test_timepoint_order_must_cover_all_timepoints(self, metadata_frame):
        with pytest.raises(ValidationError, match="does not include"):
            SampleMetadata(data=metadata_frame, timepoint_order=['day3'])

    def test_missing_required_column_raises_error(self, metadata_frame):
        with pytest.raises(ValidationError, match="missing required columns"):
            SampleMetadata(data=metadata_frame.drop(columns=['timepoint']))

    def test_unknown_genotype_raises_error(self, metadata_frame):
        metadata_frame.loc['s1', 'genotype'] = 'HET'

        with pytest.raises(ValidationError, match="genotype must be one of"):
            SampleMetadata(data=metadata_frame)

    def test_numeric_timepoints_become_strings(self):
        df = pd.DataFrame({'genotype': ['WT', 'KO'], 'timepoint': [3, 7]}, index=['s1', 's2'])
        metadata = SampleMetadata(data=df)

        assert metadata.ordered_timepoints == ['3', '7']

    def test_unknown_timepoint_rank_raises_input_error(self, metadata_frame):
        metadata = SampleMetadata(data=metadata_frame)

        with pytest.raises(InputError, match="Unknown timepoint 'day14'"):
            metadata.timepoint_rank('day14')

    def test_select_by_attributes(self, metadata_frame):
        metadata = SampleMetadata(data=metadata_frame)

        assert metadata.select(genotype=Genotype.KO, timepoint='day7') == ['s7', 's8']
        assert metadata.select(genotype='WT') == ['s1', 's2', 's5', 's6']

    def test_select_unknown_attribute_raises_error(self, metadata_frame):
        metadata = SampleMetadata(data=metadata_frame)

        with pytest.raises(InputError, match="Unknown metadata attribute"):
            metadata.select(sex='F')

    def test_from_dataframe_reports_input_error(self):
        with pytest.raises(InputError, match="Invalid sample metadata"):
            SampleMetadata.from_dataframe(pd.DataFrame())


class TestGroupAssignment:
    """Test suite for GroupAssignment model."""

    def test_valid_groups(self):
        groups = GroupAssignment(
            name='WT_vs_KO_day3',
            group_a_label='KO',
            group_b_label='WT',
            group_a_samples=['s3', 's4'],
            group_b_samples=['s1', 's2']
        )

        assert groups.all_samples == ['s3', 's4', 's1', 's2']

    def test_same_label_raises_error(self):
        with pytest.raises(ValidationError, match="Cannot compare group to itself"):
            GroupAssignment(
                name='x', group_a_label='WT', group_b_label='WT',
                group_a_samples=['s1'], group_b_samples=['s2']
            )

    def test_overlapping_samples_raise_error(self):
        with pytest.raises(ValidationError, match="assigned to both groups"):
            GroupAssignment(
                name='x', group_a_label='KO', group_b_label='WT',
                group_a_samples=['s1', 's2'], group_b_samples=['s2', 's3']
            )


class TestComparisonDefinitions:
    """Test suite for TemporalComparison and GenotypeComparison."""

    def test_temporal_orders_by_metadata(self, metadata_frame):
        """Test that the earlier timepoint becomes group A regardless of argument order."""
        metadata = SampleMetadata(data=metadata_frame)
        comparison = TemporalComparison(timepoint_a='day7', timepoint_b='day3')

        assert comparison.ordered_timepoints(metadata) == ('day3', 'day7')
        assert comparison.name_for(metadata) == 'day7_vs_day3'

    def test_temporal_name_includes_genotype(self, metadata_frame):
        metadata = SampleMetadata(data=metadata_frame)
        comparison = TemporalComparison(timepoint_a='day3', timepoint_b='day7', genotype='KO')

        assert comparison.genotype == Genotype.KO
        assert comparison.name_for(metadata) == 'day7_vs_day3_KO'

    def test_temporal_same_timepoint_raises_error(self):
        with pytest.raises(ValidationError, match="Cannot compare timepoint to itself"):
            TemporalComparison(timepoint_a='day3', timepoint_b='day3')

    def test_genotype_name(self, metadata_frame):
        metadata = SampleMetadata(data=metadata_frame)

        assert GenotypeComparison(timepoint='day3').name_for(metadata) == 'WT_vs_KO_day3'

    def test_label_overrides_name(self, metadata_frame):
        metadata = SampleMetadata(data=metadata_frame)

        assert GenotypeComparison(timepoint='day3', label='early').name_for(metadata) == 'early'

    def test_discriminated_union_parsing(self):
        """Test that plain dicts resolve to the right comparison variant."""
        adapter = TypeAdapter(ComparisonSpec)

        temporal = adapter.validate_python({'axis': 'timepoint', 'timepoint_a': 'day3', 'timepoint_b': 'day7'})
        genotype = adapter.validate_python({'axis': 'genotype', 'timepoint': 'day3'})

        assert isinstance(temporal, TemporalComparison)
        assert isinstance(genotype, GenotypeComparison)

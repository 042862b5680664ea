"""
Unit tests for SignificanceService.
"""
import math
import pytest
from lipidshift.core.models.statistics import ComparisonResult
from lipidshift.core.services.significance_service import SignificanceService


def _result(feature_id, fold_change, adjusted_p_value):
    log10_fc = math.log10(fold_change)
    return ComparisonResult(
        feature_id=feature_id,
        mean_group_a=0.0,
        mean_group_b=log10_fc,
        log10_fold_change=log10_fc,
        fold_change=fold_change,
        log2_fold_change=log10_fc * math.log2(10),
        p_value=adjusted_p_value,
        adjusted_p_value=adjusted_p_value
    )


@pytest.fixture
def service():
    return SignificanceService()


class TestClassifyOne:
    """Tests for the single-result rule."""

    @pytest.mark.parametrize('fold_change,padj,expected', [
        (2.0, 0.01, 'up'),
        (1.5, 0.05, 'up'),
        (0.4, 0.01, 'down'),
        (0.5, 0.05, 'down'),
        (1.2, 0.001, 'ns'),
        (3.0, 0.2, 'ns'),
        (None, 0.01, 'ns'),
        (2.0, None, 'ns'),
        (2.0, float('nan'), 'ns'),
    ])
    def test_rule(self, fold_change, padj, expected):
        assert SignificanceService.classify_one(fold_change, padj, 1.5, 0.5, 0.05) == expected


class TestClassify:
    """Tests for classifying a result list."""

    def test_every_result_gets_a_label(self, service):
        results = [
            _result('a', 2.0, 0.01),
            _result('b', 0.25, 0.001),
            _result('c', 1.1, 0.5),
        ]
        failed = results[2].model_copy(update={'p_value': None, 'adjusted_p_value': None,
                                               'failure_reason': 'zero variance in both groups'})

        classified = service.classify(results[:2] + [failed])

        assert [r.gene_type for r in classified] == ['up', 'down', 'ns']
        assert [r.feature_id for r in classified] == ['a', 'b', 'c']

    def test_input_not_modified(self, service):
        results = [_result('a', 2.0, 0.01)]

        service.classify(results)

        assert results[0].gene_type is None

    def test_custom_thresholds(self, service):
        classified = service.classify([_result('a', 2.0, 0.01)], fc_up=3.0, fc_down=0.3)

        assert classified[0].gene_type == 'ns'

    def test_inverted_thresholds_raise_error(self, service):
        with pytest.raises(ValueError, match="must be smaller than fc_up"):
            service.classify([], fc_up=0.5, fc_down=1.5)

    def test_summarize(self, service):
        classified = service.classify([
            _result('a', 2.0, 0.01),
            _result('b', 2.5, 0.02),
            _result('c', 1.0, 0.9),
        ])

        assert service.summarize(classified) == {'up': 2, 'down': 0, 'ns': 1}

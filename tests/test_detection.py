"""Tests for problem type detection."""

import pytest

from ml_engine import ColumnInfo, Dataset, analyze_target_column, detect_ml_problem


class TestDetectMLProblem:
    """Target and problem type suggestion."""

    def test_regression_target(self, detection_dataset):
        result = detect_ml_problem(detection_dataset)

        assert result.problem_type == 'regression'
        assert result.suggested_target == 't'
        assert result.target_cardinality == 40
        # score 40 is below the confidence floor
        assert result.confidence == pytest.approx(0.5)
        assert result.suggested_features == ['f1', 'f2', 'f3']
        assert 'regression' in result.reasoning

    def test_classification_target(self, categorical_dataset):
        result = detect_ml_problem(categorical_dataset)

        # label (2 values) scores 86, color (3 values) scores 84
        assert result.problem_type == 'classification'
        assert result.suggested_target == 'label'
        assert result.confidence == pytest.approx(0.86)
        assert 'label' not in result.suggested_features

    def test_no_target_suggests_clustering(self, blob_dataset):
        result = detect_ml_problem(blob_dataset)

        assert result.problem_type == 'clustering'
        assert result.suggested_target is None
        assert result.confidence == pytest.approx(0.6)
        assert result.suggested_features == ['a', 'b', 'c']

    def test_too_small(self):
        dataset = Dataset.from_records([{'a': i, 'b': i % 2} for i in range(4)])
        result = detect_ml_problem(dataset)

        assert result.problem_type == 'clustering'
        assert result.confidence == pytest.approx(0.3)

    def test_single_column_is_too_small(self):
        dataset = Dataset.from_records([{'a': i % 3} for i in range(30)])
        assert detect_ml_problem(dataset).confidence == pytest.approx(0.3)

    def test_internal_error_falls_back(self):
        broken = Dataset(rows=tuple([1, 2] for _ in range(6)), columns=(ColumnInfo('a'), ColumnInfo('b')))
        result = detect_ml_problem(broken)

        assert result.problem_type == 'clustering'
        assert result.confidence == pytest.approx(0.3)
        assert result.reasoning.startswith('Error')

    def test_ties_keep_first_column(self):
        dataset = Dataset.from_records([{'p': i % 2, 'q': (i + 1) % 2, 'id': i} for i in range(10)])
        assert detect_ml_problem(dataset).suggested_target == 'p'

    def test_confidence_bounds(self, detection_dataset, categorical_dataset, blob_dataset):
        for dataset in (detection_dataset, categorical_dataset, blob_dataset):
            assert 0.0 <= detect_ml_problem(dataset).confidence <= 1.0


class TestAnalyzeTargetColumn:
    """Problem type for a user-chosen target."""

    def test_numeric_target(self, detection_dataset):
        result = analyze_target_column(detection_dataset, 't')
        assert result.problem_type == 'regression'
        assert result.confidence == pytest.approx(0.8)

    def test_categorical_target(self, categorical_dataset):
        result = analyze_target_column(categorical_dataset, 'color')
        assert result.problem_type == 'classification'
        assert result.target_cardinality == 3

    def test_constant_target(self):
        dataset = Dataset.from_records([{'a': i, 'b': 1} for i in range(12)])
        result = analyze_target_column(dataset, 'b')
        assert result.problem_type == 'clustering'
        assert result.suggested_target is None

    def test_missing_column(self, detection_dataset):
        with pytest.raises(ValueError, match='not found'):
            analyze_target_column(detection_dataset, 'nope')

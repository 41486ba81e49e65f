"""Tests for single-row prediction."""

import pytest

from ml_engine import Dataset, MLConfig, MLPipeline, make_prediction
from ml_engine.schemas import ModelResult


@pytest.fixture(scope='module')
def regression_session():
    rows = [
        {'x1': float(i), 'x2': float((i * 7) % 13), 'y': 3.0 * i - 2.0 * ((i * 7) % 13) + 5.0}
        for i in range(60)
    ]
    config = MLConfig(target_column='y', feature_columns=['x1', 'x2'], problem_type='regression')
    return MLPipeline().run(Dataset.from_records(rows), config)


@pytest.fixture
def categorical_session(categorical_dataset):
    config = MLConfig(target_column='label', feature_columns=['size', 'color'], problem_type='classification')
    return MLPipeline().run(categorical_dataset, config)


class TestRegressionPrediction:

    def test_linear_value(self, regression_session):
        result = regression_session.predict({'x1': 10, 'x2': 5}, 'linear_regression')

        assert result.predicted_value == pytest.approx(25.0, abs=1e-6)
        assert result.algorithm == 'linear_regression'
        assert result.substituted_values == {}

    def test_interval_brackets_prediction(self, regression_session):
        for algorithm in ('linear_regression', 'decision_tree', 'random_forest'):
            result = regression_session.predict({'x1': 30, 'x2': 2}, algorithm)
            assert result.confidence_interval is not None
            assert result.confidence_interval.lower <= result.predicted_value <= result.confidence_interval.upper
            assert 0.0 <= result.confidence <= 1.0

    def test_contributions_sorted(self, regression_session):
        result = regression_session.predict({'x1': 10, 'x2': 5}, 'linear_regression')
        contributions = [c.contribution for c in result.feature_contributions]

        assert contributions == sorted(contributions, reverse=True)
        top = result.feature_contributions[0]
        assert top.feature == 'x1'
        assert top.direction == 'negative'
        assert result.explanation == (
            'The most influential feature is "x1" with a negative contribution. Model: Linear Regression.'
        )

    def test_unparseable_number_uses_mean(self, regression_session):
        result = regression_session.predict({'x1': 'n/a', 'x2': 5}, 'linear_regression')
        assert set(result.substituted_values) == {'x1'}
        assert result.substituted_values['x1'] == '29.5'


class TestClassificationPrediction:

    def test_label_output(self, categorical_session):
        for algorithm in ('logistic_regression', 'decision_tree', 'random_forest'):
            result = categorical_session.predict({'size': 7.5, 'color': 'red'}, algorithm)
            assert result.predicted_value in ('yes', 'no')
            assert 0.0 <= result.confidence <= 1.0
            assert result.confidence_interval is None

    def test_unseen_category(self, categorical_session):
        result = categorical_session.predict({'size': 2.0, 'color': 'purple'}, 'decision_tree')
        assert result.substituted_values == {'color': 'blue'}

    def test_missing_input(self, categorical_session):
        result = categorical_session.predict({'size': 2.0}, 'logistic_regression')
        assert set(result.substituted_values) == {'color'}


class TestClusteringPrediction:

    def test_cluster_label(self, blob_dataset):
        session = MLPipeline().run(blob_dataset, MLConfig(problem_type='clustering'))
        result = session.predict({'b': 50.0, 'c': 50.0})

        assert result.predicted_value.startswith('Cluster ')
        assert result.confidence >= 0.4
        assert result.explanation.startswith('This data point is most similar to Cluster ')


def test_unsupported_model(regression_session):
    model = ModelResult(
        algorithm='linear_regression',
        algorithm_label='Linear Regression',
        problem_type='regression',
        feature_columns=('x1',),
        feature_importance=[],
    )
    with pytest.raises(TypeError):
        make_prediction({'x1': 1.0}, model, regression_session.processed)

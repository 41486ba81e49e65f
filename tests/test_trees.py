"""Tests for CART trees and the random forest."""

import numpy as np
import pytest

from ml_engine import Dataset, MLConfig, preprocess_dataset
from ml_engine.forest import (
    RandomForestTrainer,
    forest_size,
    forest_vote,
    max_features_per_split,
)
from ml_engine.sampling import LinearCongruentialGenerator
from ml_engine.schemas import InternalNode, LeafNode
from ml_engine.tree import (
    CartTreeBuilder,
    DecisionTreeTrainer,
    count_leaves,
    derive_tree_params,
    predict_tree,
    trace_path,
    tree_depth,
)


def _step_target(offset):
    rows = [{'x': float(i), 'y': float(i >= 20) + offset} for i in range(40)]
    processed, _ = preprocess_dataset(Dataset.from_records(rows), 'y', ['x'], scaling_method='none')
    return processed


def _splits(node):
    """(feature, threshold) of every internal node, preorder."""
    if isinstance(node, LeafNode):
        return []
    return [(node.feature, node.threshold), *_splits(node.left), *_splits(node.right)]


@pytest.fixture
def separable(separable_dataset):
    processed, _ = preprocess_dataset(separable_dataset, 'label', ['x', 'w'], scaling_method='none')
    return processed


class TestCartTreeBuilder:
    """Split search and tree shape."""

    def test_derive_params(self):
        assert derive_tree_params(100) == (6, 8)
        assert derive_tree_params(1) == (4, 8)
        assert derive_tree_params(1_000_000) == (12, 500)

    def test_pure_split(self):
        X = np.array([[1.0], [2.0], [3.0], [10.0], [11.0], [12.0]])
        y = np.array([0.0, 0.0, 0.0, 1.0, 1.0, 1.0])
        builder = CartTreeBuilder('classification', max_depth=4, min_samples_split=2,
                                  min_samples_leaf=1, class_values=(0, 1))
        root = builder.build(X, y, ['f'])

        assert isinstance(root, InternalNode)
        assert root.threshold == pytest.approx(6.5)
        assert root.gain == pytest.approx(0.5)
        assert isinstance(root.left, LeafNode) and root.left.prediction == 0.0
        assert isinstance(root.right, LeafNode) and root.right.class_counts == {1: 3}
        assert builder.gains['f'] == pytest.approx(0.5 * 6)

    def test_regression_leaf_is_mean(self):
        X = np.array([[1.0], [2.0], [3.0], [4.0]])
        y = np.array([1.0, 3.0, 10.0, 12.0])
        builder = CartTreeBuilder('regression', max_depth=1, min_samples_split=2, min_samples_leaf=1)
        root = builder.build(X, y, ['f'])

        assert root.threshold == pytest.approx(2.5)
        assert root.left.prediction == pytest.approx(2.0)
        assert root.right.prediction == pytest.approx(11.0)

    def test_constant_feature_makes_leaf(self):
        X = np.ones((10, 1))
        y = np.arange(10, dtype=float)
        root = CartTreeBuilder('regression', max_depth=5, min_samples_split=2).build(X, y, ['f'])

        assert isinstance(root, LeafNode)
        assert root.samples == 10

    def test_respects_min_samples_leaf(self):
        X = np.arange(10, dtype=float).reshape(-1, 1)
        y = np.array([0.0] + [1.0] * 9)
        root = CartTreeBuilder('classification', max_depth=5, min_samples_split=2,
                               min_samples_leaf=2, class_values=(0, 1)).build(X, y, ['f'])

        assert isinstance(root, InternalNode)
        for node in (root.left, root.right):
            assert node.samples >= 2

    def test_regression_split_ignores_target_offset(self):
        X = np.arange(40, dtype=float).reshape(-1, 1)
        y = (np.arange(40) >= 20).astype(float)
        builder = CartTreeBuilder('regression', max_depth=3, min_samples_split=2)

        plain = builder.build(X, y, ['f'])
        shifted = builder.build(X, y + 1.7e12, ['f'])

        for root in (plain, shifted):
            assert isinstance(root, InternalNode)
            assert root.threshold == pytest.approx(19.5)
            assert root.gain == pytest.approx(0.25)

    def test_regression_gain_ignores_target_offset_with_noise(self):
        rng = np.random.default_rng(0)
        X = np.arange(200, dtype=float).reshape(-1, 1)
        y = (np.arange(200) >= 100).astype(float) + rng.normal(0.0, 0.05, 200)
        builder = CartTreeBuilder('regression', max_depth=1, min_samples_split=2)

        plain = builder.build(X, y, ['f'])
        shifted = builder.build(X, y + 1e8, ['f'])

        assert plain.threshold == shifted.threshold == pytest.approx(99.5)
        assert shifted.gain == pytest.approx(plain.gain, rel=1e-5)

    def test_max_features_requires_rng(self):
        with pytest.raises(ValueError):
            CartTreeBuilder('regression', max_depth=3, min_samples_split=2, max_features=1)

    def test_trace_path(self):
        leaf = LeafNode(prediction=1.0, samples=3, impurity=0.0)
        root = InternalNode(feature='f', threshold=0.5, gain=0.1, samples=6, impurity=0.5,
                            left=LeafNode(prediction=0.0, samples=3, impurity=0.0), right=leaf)

        found, path = trace_path(root, {'f': 0.9})
        assert found is leaf
        assert path == [('f', 0.5, 0.9)]
        assert predict_tree(root, {'f': 0.5}) == 0.0
        assert tree_depth(root) == 1
        assert count_leaves(root) == 2


class TestDecisionTreeTrainer:

    def test_separable_classes(self, separable):
        result = DecisionTreeTrainer().train(separable, 'classification')

        assert result.metrics.accuracy == 1.0
        assert result.metrics.f1 == 1.0
        assert result.tree.feature == 'x'
        assert result.tree.threshold == pytest.approx(49.5)
        assert result.train_rows == 80
        assert result.test_rows == 20
        assert result.feature_importance[0].feature == 'x'
        assert result.feature_importance[0].importance == 1.0

    def test_deterministic(self, separable):
        first = DecisionTreeTrainer().train(separable, 'classification')
        second = DecisionTreeTrainer().train(separable, 'classification')
        assert first.tree == second.tree

    def test_interpretation(self, separable):
        result = DecisionTreeTrainer().train(separable, 'classification')
        assert result.interpretation.startswith('Decision Tree (depth 1, 2 leaves) achieved accuracy = 100.0%')

    def test_regression(self, regression_dataset):
        processed, _ = preprocess_dataset(regression_dataset, 'y', ['x1', 'x2'])
        result = DecisionTreeTrainer().train(processed, 'regression')

        assert 0.0 <= result.metrics.r_squared <= 1.0
        assert result.metrics.rmse >= 0.0

    def test_regression_with_large_target(self):
        plain = DecisionTreeTrainer().train(_step_target(0.0), 'regression')
        shifted = DecisionTreeTrainer().train(_step_target(1e9), 'regression')

        assert _splits(shifted.tree) == _splits(plain.tree) == [('x', 19.5)]
        assert shifted.tree.gain == pytest.approx(plain.tree.gain)


class TestRandomForest:

    def test_size_by_rows(self):
        assert forest_size(999) == 11
        assert forest_size(1000) == 10
        assert forest_size(4999) == 10
        assert forest_size(5000) == 9

    def test_features_per_split(self):
        assert max_features_per_split('classification', 9) == 3
        assert max_features_per_split('classification', 1) == 1
        assert max_features_per_split('regression', 9) == 3
        assert max_features_per_split('regression', 2) == 1

    def test_vote_ties_go_to_smallest_class(self):
        assert forest_vote([1.0, 0.0, 1.0, 0.0]) == 0.0
        assert forest_vote([2.0, 2.0, 1.0]) == 2.0

    def test_seeds(self, separable):
        result = RandomForestTrainer(MLConfig(random_state=7)).train(separable, 'classification')

        assert len(result.trees) == 11
        assert result.seeds == tuple(7 + t * 97 for t in range(11))
        assert result.max_features_per_split == 1

    def test_reproducible(self, separable):
        first = RandomForestTrainer().train(separable, 'classification')
        second = RandomForestTrainer().train(separable, 'classification')

        assert first.trees == second.trees
        assert first.metrics == second.metrics

    def test_seed_changes_forest(self, separable):
        first = RandomForestTrainer(MLConfig(random_state=1)).train(separable, 'classification')
        second = RandomForestTrainer(MLConfig(random_state=2)).train(separable, 'classification')
        assert first.trees != second.trees

    def test_bootstrap_draws_are_in_range(self):
        rng = LinearCongruentialGenerator(42)
        draws = [rng.randint(80) for _ in range(80)]
        assert min(draws) >= 0 and max(draws) < 80

    def test_regression_with_large_target(self):
        plain = RandomForestTrainer().train(_step_target(0.0), 'regression')
        shifted = RandomForestTrainer().train(_step_target(1e9), 'regression')

        assert [_splits(t) for t in shifted.trees] == [_splits(t) for t in plain.trees]
        for a, b in zip(plain.trees, shifted.trees):
            if isinstance(a, InternalNode):
                assert b.gain == pytest.approx(a.gain)

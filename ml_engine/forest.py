"""Bootstrap-aggregated CART forest."""

import logging
import math
from collections import Counter
from typing import Dict, List, Mapping, Sequence

import numpy as np

from .config import FOREST_SEED_STRIDE, ProblemType
from .metrics import compute_regression_metrics
from .sampling import LinearCongruentialGenerator
from .schemas import ProcessedDataset, RandomForestResult, TreeNode
from .trainers import BaseTrainer
from .tree import CartTreeBuilder, derive_tree_params, predict_tree

logger = logging.getLogger(__name__)


def forest_size(train_rows: int) -> int:
    """Fewer trees for larger training sets: 11, 10 or 9."""
    if train_rows < 1000:
        return 11
    if train_rows < 5000:
        return 10
    return 9


def max_features_per_split(problem_type: ProblemType, n_features: int) -> int:
    if problem_type == 'classification':
        return max(1, int(math.floor(math.sqrt(n_features))))
    return max(1, n_features // 3)


def forest_vote(predictions: Sequence[float]) -> float:
    """Majority class; ties go to the smallest class value."""
    counts = Counter(int(round(p)) for p in predictions)
    top = max(counts.values())
    return float(min(c for c, n in counts.items() if n == top))


def forest_predict(
    trees: Sequence[TreeNode],
    values: Mapping[str, float],
    problem_type: ProblemType,
) -> float:
    outputs = [predict_tree(tree, values) for tree in trees]
    if problem_type == 'classification':
        return forest_vote(outputs)
    return float(np.mean(outputs))


class RandomForestTrainer(BaseTrainer):
    """Trains 9-11 trees, each on a bootstrap resample drawn from its own seeded
    generator (``random_state + index * 97``) and limited to a random feature
    subset at every split."""

    algorithm = 'random_forest'

    def _fit(self, processed: ProcessedDataset, problem_type: ProblemType) -> RandomForestResult:
        train, test = self.split(processed)
        features = processed.feature_columns
        X = processed.feature_matrix(train)
        y = processed.target_values(train)
        n = len(train)

        max_depth, min_samples_split = derive_tree_params(n)
        class_values = self.class_values(processed) if problem_type == 'classification' else ()
        m = max_features_per_split(problem_type, len(features))

        trees: List[TreeNode] = []
        seeds: List[int] = []
        gains: Dict[str, float] = {f: 0.0 for f in features}
        for t in range(forest_size(n)):
            seed = self.config.random_state + t * FOREST_SEED_STRIDE
            rng = LinearCongruentialGenerator(seed)
            sample = np.array([rng.randint(n) for _ in range(n)], dtype=int)
            builder = CartTreeBuilder(
                problem_type,
                max_depth=max_depth,
                min_samples_split=min_samples_split,
                min_samples_leaf=self.config.min_samples_leaf,
                class_values=class_values,
                max_features=m,
                rng=rng,
            )
            trees.append(builder.build(X[sample], y[sample], features))
            seeds.append(seed)
            for f, g in builder.gains.items():
                gains[f] += g
        logger.debug("Grew %d trees with %d features per split", len(trees), m)

        predictions = [
            forest_predict(trees, dict(zip(features, row)), problem_type)
            for row in processed.feature_matrix(test)
        ]
        actual = processed.target_values(test)
        if problem_type == 'classification':
            metrics = self.score_classification(processed, np.rint(actual), predictions, class_values)
        else:
            metrics = compute_regression_metrics(actual, predictions, len(features))

        label = f'{self.label} ({len(trees)} trees)'
        return RandomForestResult(
            algorithm=self.algorithm,
            algorithm_label=self.label,
            problem_type=problem_type,
            feature_columns=features,
            feature_importance=self.normalize_importance(
                gains,
                self.target_correlations(processed, train),
                {f: g > 0 for f, g in gains.items()},
            ),
            interpretation=self.describe(problem_type, label, metrics),
            train_rows=n,
            test_rows=len(test),
            metrics=metrics,
            trees=tuple(trees),
            seeds=tuple(seeds),
            max_features_per_split=m,
            class_values=tuple(class_values),
        )

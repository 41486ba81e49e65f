"""CART decision trees: split search, recursion, traversal and the trainer.

Classification nodes are scored with Gini impurity, regression nodes with the
population variance of the target. Each feature is sorted once per node and swept
with cumulative sums, so a node costs O(p * n log n).
"""

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .config import MAX_TREE_DEPTH, MIN_GAIN, MIN_SAMPLES_SPLIT, MIN_TREE_DEPTH, ProblemType
from .metrics import compute_regression_metrics
from .sampling import LinearCongruentialGenerator
from .schemas import DecisionTreeResult, InternalNode, LeafNode, ProcessedDataset, TreeNode
from .trainers import BaseTrainer

logger = logging.getLogger(__name__)

__all__ = [
    'LeafNode',
    'InternalNode',
    'TreeNode',
    'CartTreeBuilder',
    'derive_tree_params',
    'trace_path',
    'predict_tree',
    'tree_depth',
    'count_leaves',
    'DecisionTreeTrainer',
]

PathStep = Tuple[str, float, float]


def derive_tree_params(train_rows: int) -> Tuple[int, int]:
    """``(max_depth, min_samples_split)`` scaled to the training set size."""
    n = max(1, train_rows)
    max_depth = min(MAX_TREE_DEPTH, max(MIN_TREE_DEPTH, int(math.floor(math.log2(n)))))
    min_samples_split = max(MIN_SAMPLES_SPLIT, int(math.floor(math.sqrt(n) / 2)))
    return max_depth, min_samples_split


class CartTreeBuilder:
    """Grows one binary tree by greedy best-split recursion.

    ``max_features`` restricts each node to a random feature subset drawn from
    ``rng`` (the random-forest case); otherwise every feature is evaluated in
    column order. After :meth:`build`, ``gains`` holds each feature's summed
    ``gain * node_samples``.
    """

    def __init__(
        self,
        problem_type: ProblemType,
        max_depth: int,
        min_samples_split: int,
        min_samples_leaf: int = 2,
        class_values: Sequence[int] = (),
        max_features: Optional[int] = None,
        rng: Optional[LinearCongruentialGenerator] = None,
    ):
        if max_features is not None and rng is None:
            raise ValueError("max_features requires a seeded rng")
        self.problem_type = problem_type
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = max(1, min_samples_leaf)
        self.class_values = np.asarray(class_values, dtype=int)
        self.max_features = max_features
        self.rng = rng
        self.gains: Dict[str, float] = {}

    @property
    def is_classifier(self) -> bool:
        return self.problem_type == 'classification'

    def build(self, X: np.ndarray, y: np.ndarray, feature_names: Sequence[str]) -> TreeNode:
        self._X = np.asarray(X, dtype=float)
        self._names = list(feature_names)
        self.gains = {name: 0.0 for name in self._names}
        if self.is_classifier:
            index = {int(c): i for i, c in enumerate(self.class_values)}
            self._y = np.array([index[int(v)] for v in np.rint(y)], dtype=int)
        else:
            self._y = np.asarray(y, dtype=float)
        return self._grow(np.arange(len(self._y)), depth=0)

    # -- node statistics -------------------------------------------------

    def _impurity(self, rows: np.ndarray) -> float:
        if rows.size == 0:
            return 0.0
        if self.is_classifier:
            p = np.bincount(self._y[rows], minlength=len(self.class_values)) / rows.size
            return float(1.0 - np.sum(p ** 2))
        return float(np.var(self._y[rows]))

    def _leaf(self, rows: np.ndarray, impurity: float) -> LeafNode:
        if self.is_classifier:
            counts = np.bincount(self._y[rows], minlength=len(self.class_values))
            winner = int(np.argmax(counts))
            return LeafNode(
                prediction=float(self.class_values[winner]),
                samples=int(rows.size),
                impurity=impurity,
                class_counts={int(self.class_values[i]): int(c) for i, c in enumerate(counts) if c},
            )
        prediction = float(np.mean(self._y[rows])) if rows.size else 0.0
        return LeafNode(prediction=prediction, samples=int(rows.size), impurity=impurity)

    # -- recursion -------------------------------------------------------

    def _grow(self, rows: np.ndarray, depth: int) -> TreeNode:
        impurity = self._impurity(rows)
        if depth >= self.max_depth or rows.size < self.min_samples_split or impurity <= 1e-12:
            return self._leaf(rows, impurity)

        best = self._best_split(rows, impurity)
        if best is None:
            return self._leaf(rows, impurity)

        feature_idx, threshold, gain = best
        go_left = self._X[rows, feature_idx] <= threshold
        left_rows, right_rows = rows[go_left], rows[~go_left]
        if left_rows.size == 0 or right_rows.size == 0:
            return self._leaf(rows, impurity)

        name = self._names[feature_idx]
        self.gains[name] += gain * rows.size
        return InternalNode(
            feature=name,
            threshold=threshold,
            gain=gain,
            samples=int(rows.size),
            impurity=impurity,
            left=self._grow(left_rows, depth + 1),
            right=self._grow(right_rows, depth + 1),
        )

    def _candidate_features(self) -> List[int]:
        p = len(self._names)
        if self.max_features is None or self.max_features >= p:
            return list(range(p))
        return self.rng.sample(range(p), self.max_features)

    def _best_split(self, rows: np.ndarray, parent_impurity: float) -> Optional[Tuple[int, float, float]]:
        best: Optional[Tuple[int, float, float]] = None
        for feature_idx in self._candidate_features():
            found = self._sweep(rows, feature_idx, parent_impurity)
            if found is not None and (best is None or found[1] > best[2]):
                best = (feature_idx, found[0], found[1])
        return best

    def _sweep(self, rows: np.ndarray, feature_idx: int, parent_impurity: float) -> Optional[Tuple[float, float]]:
        """Best ``(threshold, gain)`` for one feature, or None."""
        n = rows.size
        x = self._X[rows, feature_idx]
        order = np.argsort(x, kind='stable')
        xs = x[order]
        ys = self._y[rows][order]

        left_n = np.arange(1, n)
        right_n = n - left_n

        if self.is_classifier:
            onehot = np.eye(len(self.class_values))[ys]
            cum = np.cumsum(onehot, axis=0)[:-1]
            right = onehot.sum(axis=0) - cum
            gini_left = 1.0 - np.sum((cum / left_n[:, None]) ** 2, axis=1)
            gini_right = 1.0 - np.sum((right / right_n[:, None]) ** 2, axis=1)
            child = (left_n * gini_left + right_n * gini_right) / n
        else:
            # Centred so the sum-of-squares differences keep precision for large targets.
            ys = ys - ys.mean()
            cum = np.cumsum(ys)
            cum_sq = np.cumsum(ys ** 2)
            total, total_sq = cum[-1], cum_sq[-1]
            left_sum, left_sq = cum[:-1], cum_sq[:-1]
            sse_left = left_sq - left_sum ** 2 / left_n
            sse_right = (total_sq - left_sq) - (total - left_sum) ** 2 / right_n
            child = (sse_left + sse_right) / n

        valid = (
            (xs[1:] > xs[:-1])
            & (left_n >= self.min_samples_leaf)
            & (right_n >= self.min_samples_leaf)
        )
        if not valid.any():
            return None
        gains = np.where(valid, parent_impurity - child, -np.inf)
        cut = int(np.argmax(gains))
        gain = float(gains[cut])
        if gain <= MIN_GAIN:
            return None
        return float((xs[cut] + xs[cut + 1]) / 2), gain


def trace_path(node: TreeNode, values: Mapping[str, float]) -> Tuple[LeafNode, List[PathStep]]:
    """Walk root to leaf; each step is ``(feature, threshold, value)``."""
    path: List[PathStep] = []
    while isinstance(node, InternalNode):
        value = values.get(node.feature, 0.0)
        path.append((node.feature, node.threshold, value))
        node = node.left if value <= node.threshold else node.right
    return node, path


def predict_tree(node: TreeNode, values: Mapping[str, float]) -> float:
    return trace_path(node, values)[0].prediction


def tree_depth(node: TreeNode) -> int:
    if isinstance(node, LeafNode):
        return 0
    return 1 + max(tree_depth(node.left), tree_depth(node.right))


def count_leaves(node: TreeNode) -> int:
    if isinstance(node, LeafNode):
        return 1
    return count_leaves(node.left) + count_leaves(node.right)


class DecisionTreeTrainer(BaseTrainer):
    algorithm = 'decision_tree'

    def _fit(self, processed: ProcessedDataset, problem_type: ProblemType) -> DecisionTreeResult:
        train, test = self.split(processed)
        features = processed.feature_columns
        max_depth, min_samples_split = derive_tree_params(len(train))
        class_values = self.class_values(processed) if problem_type == 'classification' else ()

        builder = CartTreeBuilder(
            problem_type,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=self.config.min_samples_leaf,
            class_values=class_values,
        )
        root = builder.build(processed.feature_matrix(train), processed.target_values(train), features)

        predictions = [predict_tree(root, dict(zip(features, row))) for row in processed.feature_matrix(test)]
        actual = processed.target_values(test)
        if problem_type == 'classification':
            metrics = self.score_classification(processed, np.rint(actual), predictions, class_values)
        else:
            metrics = compute_regression_metrics(actual, predictions, len(features))

        label = f'{self.label} (depth {tree_depth(root)}, {count_leaves(root)} leaves)'
        return DecisionTreeResult(
            algorithm=self.algorithm,
            algorithm_label=self.label,
            problem_type=problem_type,
            feature_columns=features,
            feature_importance=self.normalize_importance(
                builder.gains,
                self.target_correlations(processed, train),
                {f: g > 0 for f, g in builder.gains.items()},
            ),
            interpretation=self.describe(problem_type, label, metrics),
            train_rows=len(train),
            test_rows=len(test),
            metrics=metrics,
            tree=root,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=self.config.min_samples_leaf,
            class_values=tuple(class_values),
        )

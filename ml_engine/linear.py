"""Least-squares linear regression and one-vs-rest logistic regression."""

import logging
import warnings

import numpy as np
from scipy.linalg import LinAlgError, LinAlgWarning, pinvh, solve

from .config import ProblemType
from .metrics import compute_regression_metrics
from .schemas import LinearModelResult, LogisticModelResult, ProcessedDataset
from .trainers import BaseTrainer
from .utils import sigmoid

logger = logging.getLogger(__name__)


def fit_least_squares(X: np.ndarray, y: np.ndarray) -> tuple[float, np.ndarray]:
    """Solve the normal equations for ``[intercept, *coefficients]``.

    Falls back to the pseudo-inverse when the Gram matrix is singular or badly
    conditioned, and to a mean-only model when there are too few rows.
    """
    n, p = X.shape
    if n == 0:
        return 0.0, np.zeros(p)
    if p == 0 or n < p + 2:
        return float(y.mean()), np.zeros(p)

    design = np.column_stack([np.ones(n), X])
    gram = design.T @ design
    rhs = design.T @ y
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('error', LinAlgWarning)
            beta = solve(gram, rhs, assume_a='sym')
    except (LinAlgError, LinAlgWarning):
        logger.warning("Normal equations are singular; using pseudo-inverse")
        beta = pinvh(gram) @ rhs
    return float(beta[0]), np.asarray(beta[1:], dtype=float)


class LinearRegressionTrainer(BaseTrainer):
    algorithm = 'linear_regression'

    def _fit(self, processed: ProcessedDataset, problem_type: ProblemType) -> LinearModelResult:
        train, test = self.split(processed)
        features = processed.feature_columns

        intercept, coefs = fit_least_squares(processed.feature_matrix(train), processed.target_values(train))

        predictions = intercept + processed.feature_matrix(test) @ coefs
        metrics = compute_regression_metrics(processed.target_values(test), predictions, len(features))

        coefficients = {f: float(c) for f, c in zip(features, coefs)}
        terms = ' '.join(f"{'+' if c >= 0 else '-'} {abs(c):.4f} × {f}" for f, c in coefficients.items())
        equation = f'{processed.target_column} = {intercept:.4f} {terms}'.rstrip()

        return LinearModelResult(
            algorithm=self.algorithm,
            algorithm_label=self.label,
            problem_type='regression',
            feature_columns=features,
            feature_importance=self.normalize_importance(coefficients, self.target_correlations(processed, train)),
            interpretation=self.describe('regression', self.label, metrics),
            train_rows=len(train),
            test_rows=len(test),
            metrics=metrics,
            coefficients=coefficients,
            intercept=intercept,
            equation=equation,
        )


class LogisticRegressionTrainer(BaseTrainer):
    """One binary classifier per class, fitted by batch gradient descent on
    cross-entropy. The highest sigmoid score wins at prediction time."""

    algorithm = 'logistic_regression'

    def _fit(self, processed: ProcessedDataset, problem_type: ProblemType) -> LogisticModelResult:
        train, test = self.split(processed)
        features = processed.feature_columns
        class_values = self.class_values(processed, limit=self.config.max_classes)
        if not class_values:
            raise ValueError("No target classes available for logistic regression")

        X = processed.feature_matrix(train)
        y = np.rint(processed.target_values(train))
        n, p = X.shape
        k = len(class_values)

        weights = np.zeros((k, p))
        biases = np.zeros(k)
        if n:
            targets = (y[:, None] == np.asarray(class_values)[None, :]).astype(float)
            lr = self.config.learning_rate
            for _ in range(self.config.max_iterations):
                errors = sigmoid(X @ weights.T + biases) - targets
                weights -= lr * (errors.T @ X) / n
                biases -= lr * errors.mean(axis=0)

        scores = sigmoid(processed.feature_matrix(test) @ weights.T + biases)
        predictions = np.asarray(class_values)[np.argmax(scores, axis=1)] if len(test) else np.array([])
        metrics = self.score_classification(
            processed, np.rint(processed.target_values(test)), predictions, class_values,
        )

        raw_importance = {f: float(v) for f, v in zip(features, np.mean(np.abs(weights), axis=0))}
        return LogisticModelResult(
            algorithm=self.algorithm,
            algorithm_label=self.label,
            problem_type='classification',
            feature_columns=features,
            feature_importance=self.normalize_importance(raw_importance, self.target_correlations(processed, train)),
            interpretation=self.describe('classification', self.label, metrics),
            train_rows=len(train),
            test_rows=len(test),
            metrics=metrics,
            class_values=class_values,
            weights=weights.tolist(),
            biases=biases.tolist(),
            coefficients={f: float(v) for f, v in zip(features, weights.mean(axis=0))},
            intercept=float(biases.mean()),
        )

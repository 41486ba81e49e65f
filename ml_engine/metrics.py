"""Held-out scoring for regression, classification and clustering models."""

import math
from typing import Sequence

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error

from .config import MAPE_CAP, MAPE_MIN_ACTUAL
from .schemas import ClassificationMetrics, ClusteringMetrics, RegressionMetrics


def compute_regression_metrics(actual: Sequence[float], predicted: Sequence[float], n_features: int) -> RegressionMetrics:
    """RMSE, MAE, clamped R², adjusted R² and capped MAPE."""
    y = np.asarray(actual, dtype=float)
    y_hat = np.asarray(predicted, dtype=float)
    n = y.size
    if n == 0:
        return RegressionMetrics(rmse=0.0, mae=0.0, r_squared=0.0, adjusted_r_squared=0.0, mape=0.0)

    rmse = math.sqrt(mean_squared_error(y, y_hat))
    mae = float(mean_absolute_error(y, y_hat))

    ss_res = float(np.sum((y - y_hat) ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    r_squared = 1.0 if ss_tot == 0 else max(0.0, 1 - ss_res / ss_tot)

    if n > n_features + 1:
        adjusted = max(0.0, 1 - (1 - r_squared) * (n - 1) / (n - n_features - 1))
    else:
        adjusted = r_squared

    mask = np.abs(y) > MAPE_MIN_ACTUAL
    if mask.any():
        mape = float(np.mean(np.abs((y[mask] - y_hat[mask]) / y[mask])) * 100)
        mape = min(mape, MAPE_CAP)
    else:
        mape = 0.0

    return RegressionMetrics(
        rmse=rmse,
        mae=mae,
        r_squared=r_squared,
        adjusted_r_squared=adjusted,
        mape=mape,
    )


def compute_classification_metrics(
    actual: Sequence[float],
    predicted: Sequence[float],
    class_values: Sequence[int],
    class_labels: Sequence[str],
) -> ClassificationMetrics:
    """Confusion matrix over ``class_values`` plus macro-averaged scores.

    Rows of the matrix are actual classes, columns predicted ones. A class with no
    predicted (or actual) members contributes 0 precision (or recall).
    """
    k = len(class_values)
    index = {int(c): i for i, c in enumerate(class_values)}
    matrix = np.zeros((k, k), dtype=int)
    for a, p in zip(actual, predicted):
        i = index.get(int(round(a)))
        j = index.get(int(round(p)))
        if i is not None and j is not None:
            matrix[i, j] += 1

    total = len(actual)
    accuracy = float(np.trace(matrix)) / total if total else 0.0

    precisions, recalls, f1s = [], [], []
    for c in range(k):
        tp = matrix[c, c]
        predicted_c = matrix[:, c].sum()
        actual_c = matrix[c, :].sum()
        precision = tp / predicted_c if predicted_c else 0.0
        recall = tp / actual_c if actual_c else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
        precisions.append(precision)
        recalls.append(recall)
        f1s.append(f1)

    return ClassificationMetrics(
        accuracy=accuracy,
        precision=float(np.mean(precisions)) if k else 0.0,
        recall=float(np.mean(recalls)) if k else 0.0,
        f1=float(np.mean(f1s)) if k else 0.0,
        confusion_matrix=matrix.tolist(),
        class_labels=list(class_labels),
    )


def compute_clustering_metrics(
    silhouette: float,
    optimal_k: int,
    inertia: float,
    davies_bouldin: float = 0.0,
) -> ClusteringMetrics:
    return ClusteringMetrics(
        silhouette_score=float(silhouette),
        optimal_k=int(optimal_k),
        inertia=float(inertia),
        davies_bouldin_index=float(davies_bouldin),
    )

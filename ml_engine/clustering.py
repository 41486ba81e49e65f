"""K-means clustering on the processed feature matrix."""

import logging
import math
from typing import Tuple

import numpy as np
from sklearn.cluster import KMeans
from sklearn.metrics import davies_bouldin_score, silhouette_score

from .config import ProblemType
from .metrics import compute_clustering_metrics
from .schemas import FeatureImportanceItem, KMeansResult, ProcessedDataset
from .trainers import BaseTrainer

logger = logging.getLogger(__name__)

SILHOUETTE_SAMPLE_SIZE = 2000


def choose_k(n_rows: int) -> int:
    """``clamp(floor(sqrt(n / 2)), 2, 5)``, never more than the row count."""
    k = min(5, max(2, int(math.floor(math.sqrt(n_rows / 2)))))
    return max(1, min(k, n_rows))


def nearest_centroid(X: np.ndarray, centroids: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Index of the closest centroid per row and its squared distance.

    Ties go to the lower centroid index.
    """
    distances = ((X[:, None, :] - centroids[None, :, :]) ** 2).sum(axis=2)
    assignments = np.argmin(distances, axis=1)
    return assignments, distances[np.arange(len(X)), assignments]


def run_kmeans(X: np.ndarray, k: int, random_state: int = 42) -> Tuple[np.ndarray, np.ndarray, float]:
    """Fit k-means and return ``(centroids, assignments, inertia)``.

    Assignments are recomputed against the final centroids so they agree with
    what prediction does for a new row.
    """
    if len(X) == 0:
        raise ValueError("Cannot cluster an empty dataset")
    model = KMeans(n_clusters=k, n_init=10, random_state=random_state)
    model.fit(X)
    centroids = model.cluster_centers_
    assignments, distances = nearest_centroid(X, centroids)
    return centroids, assignments, float(distances.sum())


class KMeansTrainer(BaseTrainer):
    algorithm = 'k_means'

    def _fit(self, processed: ProcessedDataset, problem_type: ProblemType) -> KMeansResult:
        features = processed.feature_columns
        X = processed.feature_matrix()
        n, d = X.shape
        k = choose_k(n)
        centroids, assignments, inertia = run_kmeans(X, k, self.config.random_state)

        distinct = len(set(assignments.tolist()))
        if 2 <= distinct <= n - 1:
            silhouette = float(silhouette_score(
                X, assignments,
                sample_size=SILHOUETTE_SAMPLE_SIZE if n > SILHOUETTE_SAMPLE_SIZE else None,
                random_state=self.config.random_state,
            ))
            davies_bouldin = float(davies_bouldin_score(X, assignments))
        else:
            logger.warning("Silhouette undefined for %d clusters over %d rows; using inertia estimate", distinct, n)
            silhouette = max(0.0, 1 - inertia / (n * max(d, 1)))
            davies_bouldin = max(0.0, 1 - silhouette)

        metrics = compute_clustering_metrics(silhouette, k, inertia, davies_bouldin)
        return KMeansResult(
            algorithm=self.algorithm,
            algorithm_label=self.label,
            problem_type='clustering',
            feature_columns=features,
            feature_importance=[
                FeatureImportanceItem(feature=f, importance=1.0, correlation_with_target=0.0, is_selected=True)
                for f in features
            ],
            interpretation=f'K-Means found {k} natural clusters with silhouette score {silhouette:.3f}.',
            train_rows=n,
            test_rows=0,
            metrics=metrics,
            centroids=centroids.tolist(),
            cluster_assignments=[int(a) for a in assignments],
        )

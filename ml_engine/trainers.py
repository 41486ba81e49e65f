"""Shared plumbing for the model trainers."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import ALGORITHM_LABELS, Algorithm, MLConfig, ProblemType
from .metrics import compute_classification_metrics
from .sampling import split_data
from .schemas import AnyModelResult, ClassificationMetrics, FeatureImportanceItem, ProcessedDataset

logger = logging.getLogger(__name__)


class BaseTrainer(ABC):
    """Trains one algorithm family on a :class:`ProcessedDataset`.

    Subclasses implement :meth:`_fit`; :meth:`train` adds timing and logging.
    """

    algorithm: Algorithm

    def __init__(self, config: Optional[MLConfig] = None):
        self.config = config or MLConfig()

    @property
    def label(self) -> str:
        return ALGORITHM_LABELS[self.algorithm]

    def train(self, processed: ProcessedDataset, problem_type: ProblemType) -> AnyModelResult:
        start = time.perf_counter()
        result = self._fit(processed, problem_type)
        result.training_duration_ms = (time.perf_counter() - start) * 1000
        logger.info("%s trained on %d rows in %.1f ms", self.label, result.train_rows, result.training_duration_ms)
        return result

    @abstractmethod
    def _fit(self, processed: ProcessedDataset, problem_type: ProblemType) -> AnyModelResult:
        ...

    def split(self, processed: ProcessedDataset) -> Tuple[pd.DataFrame, pd.DataFrame]:
        return split_data(processed.data, self.config.split_ratio)

    @staticmethod
    def class_values(processed: ProcessedDataset, limit: Optional[int] = None) -> Tuple[int, ...]:
        """Sorted distinct rounded target values, optionally capped."""
        values = sorted({int(v) for v in np.rint(processed.target_values())})
        return tuple(values[:limit] if limit is not None else values)

    @staticmethod
    def class_labels(processed: ProcessedDataset, class_values: Sequence[int]) -> List[str]:
        return [processed.decode_label(processed.target_column, c) for c in class_values]

    def score_classification(
        self,
        processed: ProcessedDataset,
        actual: Sequence[float],
        predicted: Sequence[float],
        class_values: Sequence[int],
    ) -> ClassificationMetrics:
        return compute_classification_metrics(
            actual, predicted, class_values, self.class_labels(processed, class_values),
        )

    @staticmethod
    def target_correlations(processed: ProcessedDataset, frame: pd.DataFrame) -> Dict[str, float]:
        features = list(processed.feature_columns)
        correlations = frame[features].astype(float).corrwith(frame[processed.target_column].astype(float))
        return {f: float(r) for f, r in correlations.fillna(0.0).items()}

    @staticmethod
    def normalize_importance(
        raw: Mapping[str, float],
        correlations: Optional[Mapping[str, float]] = None,
        selected: Optional[Mapping[str, bool]] = None,
    ) -> List[FeatureImportanceItem]:
        """Scale raw scores so the top feature is exactly 1."""
        top = max([*(abs(v) for v in raw.values()), 0.001])
        return [
            FeatureImportanceItem(
                feature=feature,
                importance=abs(value) / top,
                correlation_with_target=(correlations or {}).get(feature, 0.0),
                is_selected=(selected or {}).get(feature, True),
            )
            for feature, value in raw.items()
        ]

    @staticmethod
    def describe(problem_type: ProblemType, label: str, metrics) -> str:
        if problem_type == 'regression':
            return f'{label} achieved R² = {metrics.r_squared:.3f}, RMSE = {metrics.rmse:.3f}.'
        return f'{label} achieved accuracy = {metrics.accuracy * 100:.1f}%, F1 = {metrics.f1:.3f}.'

"""Model comparison: train every candidate for a problem type and rank them."""

import logging
from typing import Callable, Dict, List, Optional, Type

from sklearn.base import BaseEstimator

from .clustering import KMeansTrainer
from .config import RANKING_METRICS, MLConfig, ProblemType
from .forest import RandomForestTrainer
from .linear import LinearRegressionTrainer, LogisticRegressionTrainer
from .schemas import AnyModelResult, ModelComparisonResult, ProcessedDataset
from .trainers import BaseTrainer
from .tree import DecisionTreeTrainer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]


class ModelSelector(BaseEstimator):
    """Trains the candidate models for a problem type and flags the best one.

    Regression and classification always run three candidates in a fixed order;
    clustering runs k-means only. The ranking metric is R², macro F1 or the
    silhouette score, and ties keep the earliest-trained model.
    """

    MODELS: Dict[str, List[Type[BaseTrainer]]] = {
        'regression': [LinearRegressionTrainer, DecisionTreeTrainer, RandomForestTrainer],
        'classification': [LogisticRegressionTrainer, DecisionTreeTrainer, RandomForestTrainer],
        'clustering': [KMeansTrainer],
    }

    def __init__(self, config: Optional[MLConfig] = None):
        self.config = config
        self.results_: List[AnyModelResult] = []
        self.best_model_: Optional[AnyModelResult] = None

    def compare(
        self,
        processed: ProcessedDataset,
        problem_type: ProblemType,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ModelComparisonResult:
        """Train and rank every candidate for ``problem_type``."""
        if problem_type not in self.MODELS:
            raise ValueError(f"Unknown problem type '{problem_type}'")
        report = on_progress or (lambda percent, message: None)
        config = self.config or MLConfig()
        trainers = [cls(config) for cls in self.MODELS[problem_type]]

        results = self._train_models(processed, problem_type, trainers, report)

        if problem_type == 'clustering':
            report(100, 'Clustering complete.')
        else:
            report(95, 'Selecting best model...')
        best = self._find_best_model(results, problem_type)
        best.is_top_model = True
        if problem_type != 'clustering':
            report(100, 'Training complete!')

        logger.info("Best model: %s (%s)", best.algorithm_label, RANKING_METRICS[problem_type])
        self.results_ = results
        self.best_model_ = best
        return ModelComparisonResult(
            results=results,
            best_model=best,
            ranking_metric=RANKING_METRICS[problem_type],
            training_complete=True,
        )

    def _train_models(
        self,
        processed: ProcessedDataset,
        problem_type: ProblemType,
        trainers: List[BaseTrainer],
        report: ProgressCallback,
    ) -> List[AnyModelResult]:
        """Run each trainer; one that raises is logged and skipped."""
        results: List[AnyModelResult] = []
        for step, trainer in enumerate(trainers):
            report(round(step / len(trainers) * 80 + 10), f'Training {trainer.label}...')
            try:
                results.append(trainer.train(processed, problem_type))
            except Exception:
                logger.exception("Error training %s", trainer.label)
                continue

        if not results:
            raise RuntimeError("No models trained successfully")
        return results

    @staticmethod
    def score(result: AnyModelResult) -> float:
        if result.problem_type == 'regression':
            return result.metrics.r_squared
        if result.problem_type == 'classification':
            return result.metrics.f1
        return result.metrics.silhouette_score

    def _find_best_model(self, results: List[AnyModelResult], problem_type: ProblemType) -> AnyModelResult:
        """Highest ranking metric wins; ties keep the earlier model."""
        if not results:
            raise ValueError("No models to compare")
        best = results[0]
        for candidate in results[1:]:
            if self.score(candidate) > self.score(best):
                best = candidate
        return best

"""End-to-end training session: detect, preprocess, analyse, train, predict."""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .config import MLConfig
from .detection import analyze_target_column, detect_ml_problem
from .feature_analysis import analyze_features
from .models import ModelSelector, ProgressCallback
from .prediction import make_prediction
from .preprocessing import preprocess_dataset
from .schemas import (
    AnyModelResult,
    Dataset,
    FeatureEngineeringResult,
    MLProblemDetection,
    ModelComparisonResult,
    PredictionResult,
    PreprocessingReport,
    ProcessedDataset,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything one training session produced. Lives as long as the session."""
    detection: MLProblemDetection
    report: PreprocessingReport
    processed: ProcessedDataset
    feature_analysis: FeatureEngineeringResult
    comparison: ModelComparisonResult
    config: MLConfig

    @property
    def best_model(self) -> AnyModelResult:
        return self.comparison.best_model

    def model(self, algorithm: Optional[str] = None) -> AnyModelResult:
        if algorithm is None:
            return self.best_model
        found = self.comparison.get(algorithm)
        if found is None:
            raise ValueError(f"Model '{algorithm}' was not trained in this session")
        return found

    def predict(self, values: Mapping[str, Any], algorithm: Optional[str] = None) -> PredictionResult:
        return make_prediction(values, self.model(algorithm), self.processed)


class MLPipeline:
    """Runs the stages in order, reporting progress between them."""

    def __init__(self, selector: Optional[ModelSelector] = None):
        self.selector = selector

    def run(
        self,
        dataset: Dataset,
        config: Optional[MLConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PipelineResult:
        config = config or MLConfig()
        report_progress = on_progress or (lambda percent, message: None)

        report_progress(0, 'Detecting problem type...')
        if config.target_column:
            detection = analyze_target_column(dataset, config.target_column)
        else:
            detection = detect_ml_problem(dataset)

        names = dataset.column_names
        if not names:
            raise ValueError("Dataset has no columns")
        target = config.target_column or detection.suggested_target or names[0]
        problem_type = config.problem_type or detection.problem_type
        features = [f for f in (config.feature_columns or detection.suggested_features) if f != target]
        if not features:
            features = [c for c in names if c != target]
        if not features:
            raise ValueError("At least one feature column is required")

        logger.info("Training session: %s on target '%s' with %d features", problem_type, target, len(features))

        report_progress(3, 'Preprocessing data...')
        processed, report = preprocess_dataset(
            dataset, target, features,
            impute_strategy=config.impute_strategy,
            scaling_method=config.scaling_method,
        )

        report_progress(6, 'Analysing features...')
        feature_analysis = analyze_features(processed)

        selector = self.selector or ModelSelector(config)
        comparison = selector.compare(processed, problem_type, on_progress=report_progress)

        return PipelineResult(
            detection=detection,
            report=report,
            processed=processed,
            feature_analysis=feature_analysis,
            comparison=comparison,
            config=config,
        )

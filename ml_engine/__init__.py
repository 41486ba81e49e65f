"""
ML engine: problem detection, preprocessing, training, ranking
and explainable single-row prediction for arbitrary tabular data.
"""

from .config import MLConfig, ALGORITHM_LABELS, RANKING_METRICS, calculate_split_percentages
from .schemas import Dataset, ColumnInfo, ProcessedDataset, ModelComparisonResult, PredictionResult
from .detection import detect_ml_problem, analyze_target_column
from .preprocessing import preprocess_dataset
from .feature_analysis import analyze_features
from .models import ModelSelector
from .prediction import make_prediction
from .pipeline import MLPipeline, PipelineResult
from .utils import safe_json_convert, validate_training_config

__all__ = [
    'MLConfig',
    'ALGORITHM_LABELS',
    'RANKING_METRICS',
    'calculate_split_percentages',
    'Dataset',
    'ColumnInfo',
    'ProcessedDataset',
    'ModelComparisonResult',
    'PredictionResult',
    'detect_ml_problem',
    'analyze_target_column',
    'preprocess_dataset',
    'analyze_features',
    'ModelSelector',
    'make_prediction',
    'MLPipeline',
    'PipelineResult',
    'safe_json_convert',
    'validate_training_config',
]

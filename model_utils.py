"""
Facade over the ml_engine package for the web layer.
Takes and returns plain JSON-friendly structures; engine objects stay inside.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from ml_engine import (
    MLConfig,
    MLPipeline,
    PipelineResult,
    Dataset,
    detect_ml_problem,
    analyze_target_column as analyze_target,
    calculate_split_percentages,
    safe_json_convert,
    validate_training_config as validate_config,
)

# ============================================================================
# MAIN API FUNCTIONS
# ============================================================================

def build_dataset(records: Sequence[Dict[str, Any]], columns: Optional[Sequence[Any]] = None,
                  name: str = 'dataset') -> Dataset:
    """Wrap JSON records (a list of row objects) as an engine dataset."""
    if not isinstance(records, (list, tuple)) or not all(isinstance(r, dict) for r in records):
        raise ValueError("Rows must be a list of objects")
    return Dataset.from_records(records, columns=columns, name=name)


def detect_target_and_type(dataset: Dataset) -> Dict[str, Any]:
    """Suggested target, problem type and features for a dataset."""
    return safe_json_convert(detect_ml_problem(dataset))


def analyze_target_column(dataset: Dataset, target_column: str) -> Dict[str, Any]:
    """Problem type for a user-chosen target plus basic column facts."""
    if target_column not in dataset.column_names:
        return {
            'success': False,
            'error': f"Column '{target_column}' not found in dataset"
        }

    info = next(c for c in dataset.columns if c.name == target_column)
    detection = analyze_target(dataset, target_column)
    total_rows = dataset.row_count
    return {
        'success': True,
        'column_name': target_column,
        'unique_count': info.unique_count,
        'missing_count': info.null_count,
        'total_rows': total_rows,
        'data_type': info.type,
        'sample_values': [str(r.get(target_column)) for r in dataset.rows[:10]],
        'missing_percentage': round((info.null_count / total_rows * 100), 2) if total_rows > 0 else 0,
        'detected_type': detection.problem_type,
        'type_confidence': detection.confidence,
        'reasoning': detection.reasoning,
    }


def validate_training_config(dataset: Dataset, target: Optional[str], feature_columns: Optional[List[str]],
                             problem_type: Optional[str], split_ratio: Any) -> Dict[str, Any]:
    """Validate a training request before it reaches the engine."""
    return validate_config(dataset, target, feature_columns, split_ratio, problem_type)


def train_models(dataset: Dataset, target: str, feature_columns: List[str], problem_type: Optional[str] = None,
                 split_ratio: float = 0.8, impute_strategy: str = 'mean_imputation',
                 scaling_method: str = 'z_score',
                 on_progress: Optional[Callable[[int, str], None]] = None) -> PipelineResult:
    """Run a full training session.

    Raises ValueError with every validation message joined when the request is malformed.
    """
    validation = validate_training_config(dataset, target, feature_columns, problem_type, split_ratio)
    if not validation['valid']:
        raise ValueError('; '.join(validation['errors']))

    config = MLConfig(
        target_column=target,
        feature_columns=list(feature_columns),
        problem_type=problem_type,
        split_ratio=float(split_ratio),
        impute_strategy=impute_strategy,
        scaling_method=scaling_method,
    )
    return MLPipeline().run(dataset, config, on_progress=on_progress)


def predict(session: PipelineResult, values: Dict[str, Any], algorithm: Optional[str] = None) -> Dict[str, Any]:
    """Predict one row with the best (or a named) model from a session."""
    return safe_json_convert(session.predict(values, algorithm))


def summarize_models(session: PipelineResult) -> List[Dict[str, Any]]:
    """One flat record per trained model: identity, ranking flag and metrics."""
    rows = []
    for result in session.comparison.results:
        row = {
            'algorithm': result.algorithm,
            'model': result.algorithm_label,
            'is_top_model': result.is_top_model,
            'train_rows': result.train_rows,
            'test_rows': result.test_rows,
            'training_duration_ms': round(result.training_duration_ms, 2),
        }
        row.update(safe_json_convert(result.metrics))
        row.pop('confusion_matrix', None)
        row.pop('class_labels', None)
        rows.append(row)
    return rows


__all__ = [
    'build_dataset',
    'safe_json_convert',
    'detect_target_and_type',
    'analyze_target_column',
    'validate_training_config',
    'train_models',
    'predict',
    'summarize_models',
    'calculate_split_percentages',
]

"""Configuration, literal types and tuning constants for the ML engine."""

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional


ProblemType = Literal['regression', 'classification', 'clustering']

Algorithm = Literal[
    'linear_regression',
    'logistic_regression',
    'decision_tree',
    'random_forest',
    'k_means',
]

ImputeStrategy = Literal['mean_imputation', 'median_imputation', 'mode_imputation', 'drop_rows']

ScalingMethod = Literal['none', 'min_max', 'z_score']

ColumnType = Literal['number', 'string', 'date']


ALGORITHM_LABELS: Dict[str, str] = {
    'linear_regression': 'Linear Regression',
    'logistic_regression': 'Logistic Regression',
    'decision_tree': 'Decision Tree',
    'random_forest': 'Random Forest',
    'k_means': 'K-Means Clustering',
}

RANKING_METRICS: Dict[str, str] = {
    'regression': 'R²',
    'classification': 'F1 Score',
    'clustering': 'Silhouette Score',
}

# Preprocessing
MAX_TRAINING_ROWS = 10_000
MAX_MISSING_RATIO = 0.8
NUMERIC_RATIO = 0.85
IQR_FENCE = 1.5

# Problem detection
MAX_CLASSIFICATION_CARDINALITY = 20
DETECTION_SAMPLE_ROWS = 20
DETECTION_MIN_NUMERIC = 10

# Feature analysis
REDUNDANCY_THRESHOLD = 0.9
NEAR_CONSTANT_STD = 0.001
MIN_IMPORTANCE = 0.05

# Trees and forests
MAX_TREE_DEPTH = 12
MIN_TREE_DEPTH = 4
MIN_SAMPLES_SPLIT = 8
MIN_GAIN = 1e-7
FOREST_SEED_STRIDE = 97

# Metrics
MAPE_MIN_ACTUAL = 0.001
MAPE_CAP = 9999.0


@dataclass
class MLConfig:
    """Configuration object for one training session."""
    target_column: Optional[str] = None
    feature_columns: Optional[List[str]] = None
    problem_type: Optional[ProblemType] = None
    split_ratio: float = 0.8
    impute_strategy: ImputeStrategy = 'mean_imputation'
    scaling_method: ScalingMethod = 'z_score'
    random_state: int = 42
    min_samples_leaf: int = 2
    learning_rate: float = 0.05
    max_iterations: int = 300
    max_classes: int = 10


def calculate_split_percentages(split_ratio: float) -> tuple[int, int]:
    """Calculate train/test split percentages."""
    train_percent = int(round(split_ratio * 100))
    test_percent = 100 - train_percent
    return train_percent, test_percent

"""Typed structures shared across the engine.

Inputs (:class:`Dataset`), the session-scoped :class:`ProcessedDataset`, and every
result object handed back to callers. ``ModelResult`` is a small class hierarchy,
one concrete class per algorithm family, so prediction can dispatch on type.
"""

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .config import NUMERIC_RATIO, Algorithm, ColumnType, ProblemType, ScalingMethod
from .utils import is_missing, label_key, to_number


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnInfo:
    """Column metadata supplied by the ingestion layer."""
    name: str
    type: ColumnType = 'string'
    null_count: int = 0
    unique_count: int = 0


@dataclass(frozen=True)
class Dataset:
    """Ordered rows of named columns. Never mutated by the engine."""
    rows: Tuple[Mapping[str, Any], ...]
    columns: Tuple[ColumnInfo, ...]
    name: str = 'dataset'

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @classmethod
    def from_records(
        cls,
        records: Sequence[Mapping[str, Any]],
        columns: Optional[Sequence[Union[str, Mapping[str, Any], ColumnInfo]]] = None,
        name: str = 'dataset',
    ) -> 'Dataset':
        """Build a dataset from row mappings, describing each column.

        ``columns`` may list names, ``{'name', 'type'}`` mappings or ready
        :class:`ColumnInfo` objects; declared types win over inferred ones.
        """
        rows = tuple(dict(r) for r in records)

        if columns is None:
            names: List[str] = []
            for row in rows:
                names.extend(k for k in row if k not in names)
            columns = names

        infos = []
        for col in columns:
            if isinstance(col, ColumnInfo):
                infos.append(col)
            elif isinstance(col, Mapping):
                infos.append(_describe_column(str(col['name']), rows, col.get('type')))
            else:
                infos.append(_describe_column(str(col), rows, None))
        return cls(rows=rows, columns=tuple(infos), name=name)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, name: str = 'dataset') -> 'Dataset':
        """Wrap a pandas DataFrame, turning NaN cells into ``None``."""
        records = df.astype(object).where(df.notna(), None).to_dict('records')
        return cls.from_records(records, columns=[str(c) for c in df.columns], name=name)


def _describe_column(name: str, rows: Sequence[Mapping[str, Any]], declared: Optional[str]) -> ColumnInfo:
    values = [r.get(name) for r in rows]
    present = [v for v in values if not is_missing(v)]
    if declared in ('number', 'string', 'date'):
        col_type = declared
    elif present and sum(isinstance(v, (datetime.date, pd.Timestamp)) for v in present) >= len(present) * NUMERIC_RATIO:
        col_type = 'date'
    elif present and sum(to_number(v) is not None for v in present) >= len(present) * NUMERIC_RATIO:
        col_type = 'number'
    else:
        col_type = 'string'
    return ColumnInfo(
        name=name,
        type=col_type,
        null_count=len(values) - len(present),
        unique_count=len({label_key(v) for v in present}),
    )


# ---------------------------------------------------------------------------
# Preprocessing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScalingParams:
    mean: float
    std: float
    min: float
    max: float


@dataclass(frozen=True, eq=False)
class ProcessedDataset:
    """Fully numeric, sampled training matrix plus the context needed to invert it.

    ``data`` holds the target column first, then the features. Features are scaled
    according to ``scaling_method``; the target never is.
    """
    data: pd.DataFrame
    target_column: str
    feature_columns: Tuple[str, ...]
    scaling_params: Dict[str, ScalingParams]
    label_mappings: Dict[str, Dict[str, int]]
    reverse_label_mappings: Dict[str, Dict[int, str]]
    scaling_method: ScalingMethod = 'z_score'

    @property
    def columns(self) -> List[str]:
        return [self.target_column, *self.feature_columns]

    @property
    def row_count(self) -> int:
        return len(self.data)

    def feature_matrix(self, frame: Optional[pd.DataFrame] = None) -> np.ndarray:
        frame = self.data if frame is None else frame
        return frame.loc[:, list(self.feature_columns)].to_numpy(dtype=float)

    def target_values(self, frame: Optional[pd.DataFrame] = None) -> np.ndarray:
        frame = self.data if frame is None else frame
        return frame[self.target_column].to_numpy(dtype=float)

    def encode_value(self, column: str, raw: Any) -> Tuple[float, bool]:
        """Turn a raw cell into its unscaled numeric code.

        Returns the value and whether a fallback was substituted: unseen categories
        map to code 0 (the first training label), unparseable numbers to the
        training mean.
        """
        mapping = self.label_mappings.get(column)
        if mapping is not None:
            key = label_key(raw)
            if key in mapping:
                return float(mapping[key]), False
            return 0.0, True
        number = to_number(raw)
        if number is None:
            params = self.scaling_params.get(column)
            return (params.mean if params else 0.0), True
        return number, False

    def scale_value(self, column: str, value: float) -> float:
        params = self.scaling_params.get(column)
        if params is None or column == self.target_column or self.scaling_method == 'none':
            return value
        if self.scaling_method == 'z_score':
            return (value - params.mean) / params.std
        return (value - params.min) / (params.max - params.min)

    def unscale_value(self, column: str, value: float) -> float:
        params = self.scaling_params.get(column)
        if params is None or column == self.target_column or self.scaling_method == 'none':
            return value
        if self.scaling_method == 'z_score':
            return value * params.std + params.mean
        return value * (params.max - params.min) + params.min

    def decode_label(self, column: str, code: Union[int, float]) -> str:
        reverse = self.reverse_label_mappings.get(column, {})
        code = int(round(code))
        return reverse.get(code, str(code))


@dataclass(frozen=True)
class ColumnPreprocessingInfo:
    column: str
    missing_before: int
    missing_after: int
    strategy: str


@dataclass(frozen=True)
class PreprocessingReport:
    """Observational summary of a preprocessing run."""
    total_rows: int
    cleaned_rows: int
    dropped_rows: int
    imputed_cells: int
    outlier_count: int
    scaling_applied: ScalingMethod
    encoded_columns: List[str]
    column_stats: List[ColumnPreprocessingInfo]
    dropped_columns: List[str] = field(default_factory=list)
    outliers_per_column: Dict[str, int] = field(default_factory=dict)
    sampled_from: Optional[int] = None


# ---------------------------------------------------------------------------
# Detection and feature analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MLProblemDetection:
    problem_type: ProblemType
    confidence: float
    reasoning: str
    suggested_target: Optional[str]
    suggested_features: List[str]
    target_cardinality: int
    numeric_feature_count: int
    categorical_feature_count: int


@dataclass(frozen=True)
class FeatureImportanceItem:
    feature: str
    importance: float
    correlation_with_target: float
    is_selected: bool


@dataclass(frozen=True)
class CorrelationPair:
    col1: str
    col2: str
    r: float


@dataclass(frozen=True)
class FeatureEngineeringResult:
    feature_importance: List[FeatureImportanceItem]
    correlation_matrix: List[CorrelationPair]
    high_correlation_pairs: List[CorrelationPair]
    recommended_features: List[str]
    dropped_features: List[str]
    dimensionality_note: str


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RegressionMetrics:
    rmse: float
    mae: float
    r_squared: float
    adjusted_r_squared: float
    mape: float


@dataclass(frozen=True)
class ClassificationMetrics:
    accuracy: float
    precision: float
    recall: float
    f1: float
    confusion_matrix: List[List[int]]
    class_labels: List[str]


@dataclass(frozen=True)
class ClusteringMetrics:
    silhouette_score: float
    optimal_k: int
    inertia: float
    davies_bouldin_index: float


# ---------------------------------------------------------------------------
# Decision tree nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LeafNode:
    """Terminal node; ``class_counts`` is set for classification trees only."""
    prediction: float
    samples: int
    impurity: float
    class_counts: Optional[Dict[int, int]] = None


@dataclass(frozen=True)
class InternalNode:
    """Binary split: rows with ``value <= threshold`` go left."""
    feature: str
    threshold: float
    gain: float
    samples: int
    impurity: float
    left: 'TreeNode'
    right: 'TreeNode'


TreeNode = Union[LeafNode, InternalNode]


# ---------------------------------------------------------------------------
# Model results
# ---------------------------------------------------------------------------

@dataclass(kw_only=True)
class ModelResult:
    """Fields shared by every trained model."""
    algorithm: Algorithm
    algorithm_label: str
    problem_type: ProblemType
    feature_columns: Tuple[str, ...]
    feature_importance: List[FeatureImportanceItem]
    interpretation: str = ''
    training_duration_ms: float = 0.0
    train_rows: int = 0
    test_rows: int = 0
    is_top_model: bool = False


@dataclass(kw_only=True)
class LinearModelResult(ModelResult):
    metrics: RegressionMetrics
    coefficients: Dict[str, float]
    intercept: float
    equation: str = ''


@dataclass(kw_only=True)
class LogisticModelResult(ModelResult):
    """One-vs-rest weights, one row per class in ``class_values`` order."""
    metrics: ClassificationMetrics
    class_values: Tuple[int, ...]
    weights: List[List[float]]
    biases: List[float]
    coefficients: Dict[str, float]
    intercept: float


@dataclass(kw_only=True)
class DecisionTreeResult(ModelResult):
    metrics: Union[RegressionMetrics, ClassificationMetrics]
    tree: TreeNode
    max_depth: int
    min_samples_split: int
    min_samples_leaf: int
    class_values: Tuple[int, ...] = ()


@dataclass(kw_only=True)
class RandomForestResult(ModelResult):
    metrics: Union[RegressionMetrics, ClassificationMetrics]
    trees: Tuple[TreeNode, ...]
    seeds: Tuple[int, ...]
    max_features_per_split: int
    class_values: Tuple[int, ...] = ()


@dataclass(kw_only=True)
class KMeansResult(ModelResult):
    metrics: ClusteringMetrics
    centroids: List[List[float]]
    cluster_assignments: List[int]


AnyModelResult = Union[
    LinearModelResult,
    LogisticModelResult,
    DecisionTreeResult,
    RandomForestResult,
    KMeansResult,
]


@dataclass
class ModelComparisonResult:
    results: List[AnyModelResult]
    best_model: AnyModelResult
    ranking_metric: str
    training_complete: bool = True

    def get(self, algorithm: str) -> Optional[AnyModelResult]:
        return next((r for r in self.results if r.algorithm == algorithm), None)


# ---------------------------------------------------------------------------
# Prediction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FeatureContribution:
    feature: str
    contribution: float
    direction: Literal['positive', 'negative']


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float
    upper: float


@dataclass(frozen=True)
class PredictionResult:
    """Single-row prediction.

    ``substituted_values`` names every input that fell back to a default, mapped
    to what was used instead (the first training label for unseen categories).
    """
    predicted_value: Union[float, str]
    confidence: float
    feature_contributions: List[FeatureContribution]
    explanation: str
    algorithm: str
    confidence_interval: Optional[ConfidenceInterval] = None
    substituted_values: Dict[str, str] = field(default_factory=dict)

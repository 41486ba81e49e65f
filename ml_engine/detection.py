"""Problem type and target detection from raw column statistics."""

import logging
import math
from typing import Any, List, Optional, Tuple

from .config import (
    DETECTION_MIN_NUMERIC,
    DETECTION_SAMPLE_ROWS,
    MAX_CLASSIFICATION_CARDINALITY,
    NUMERIC_RATIO,
    ProblemType,
)
from .schemas import Dataset, MLProblemDetection
from .utils import is_missing, label_key, to_number

logger = logging.getLogger(__name__)


def detect_ml_problem(dataset: Dataset) -> MLProblemDetection:
    """Pick the most plausible target column and problem type.

    Every column except identifiers (one value per row) and constants is scored:
    numeric columns with more than 20 distinct values are regression candidates,
    columns with 2-20 distinct values are classification candidates. The highest
    score wins; ties keep the first column. Never raises: any internal error turns
    into a low-confidence clustering suggestion.
    """
    try:
        return _detect(dataset)
    except Exception:
        logger.warning("Problem detection failed; defaulting to clustering", exc_info=True)
        return MLProblemDetection(
            problem_type='clustering',
            confidence=0.3,
            reasoning='Error during problem detection. Defaulting to clustering.',
            suggested_target=None,
            suggested_features=[],
            target_cardinality=0,
            numeric_feature_count=0,
            categorical_feature_count=0,
        )


def _detect(dataset: Dataset) -> MLProblemDetection:
    rows = dataset.rows
    names = dataset.column_names
    n = len(rows)

    if n < 5 or len(names) < 2:
        return MLProblemDetection(
            problem_type='clustering',
            confidence=0.3,
            reasoning='Dataset too small for meaningful ML problem detection.',
            suggested_target=None,
            suggested_features=list(names),
            target_cardinality=0,
            numeric_feature_count=0,
            categorical_feature_count=0,
        )

    best_score = -math.inf
    best_target: Optional[str] = None
    best_type: ProblemType = 'clustering'
    best_cardinality = 0

    for name in names:
        candidate = _score_column([r.get(name) for r in rows], n)
        if candidate is None:
            continue
        score, candidate_type, cardinality = candidate
        if score > best_score:
            best_score, best_target, best_type, best_cardinality = score, name, candidate_type, cardinality

    if best_target is None:
        numeric_cols = _numeric_columns(dataset, exclude=None)
        return MLProblemDetection(
            problem_type='clustering',
            confidence=0.6,
            reasoning='No clear target column found. Clustering will group similar rows together.',
            suggested_target=None,
            suggested_features=numeric_cols,
            target_cardinality=0,
            numeric_feature_count=len(numeric_cols),
            categorical_feature_count=len(names) - len(numeric_cols),
        )

    numeric_cols = _numeric_columns(dataset, exclude=best_target)
    categorical_count = len(names) - 1 - len(numeric_cols)
    if best_type == 'regression':
        reasoning = (f'Column "{best_target}" has {best_cardinality} unique numeric values, '
                     'suited to regression on a continuous outcome.')
    else:
        reasoning = (f'Column "{best_target}" has {best_cardinality} distinct categories, '
                     'suited to classification of discrete labels.')

    logger.info("Detected %s problem with target '%s' (score %.1f)", best_type, best_target, best_score)
    return MLProblemDetection(
        problem_type=best_type,
        confidence=min(0.95, max(0.5, best_score / 100)),
        reasoning=reasoning,
        suggested_target=best_target,
        suggested_features=numeric_cols,
        target_cardinality=best_cardinality,
        numeric_feature_count=len(numeric_cols),
        categorical_feature_count=categorical_count,
    )


def _score_column(values: List[Any], n: int) -> Optional[Tuple[float, ProblemType, int]]:
    present = [v for v in values if not is_missing(v)]
    if not present:
        return None
    cardinality = len({label_key(v) for v in present})
    if cardinality == n or cardinality == 1:
        return None

    numeric_count = sum(to_number(v) is not None for v in present)
    is_numeric = numeric_count >= len(present) * NUMERIC_RATIO

    if is_numeric and cardinality > MAX_CLASSIFICATION_CARDINALITY:
        score = max(0.0, 100 - abs(cardinality - math.sqrt(n) * 10) / n * 100)
        return score, 'regression', cardinality
    if 2 <= cardinality <= MAX_CLASSIFICATION_CARDINALITY:
        return 90.0 - 2 * cardinality, 'classification', cardinality
    return None


def _numeric_columns(dataset: Dataset, exclude: Optional[str]) -> List[str]:
    """Columns with enough parseable numbers among the first rows."""
    head = dataset.rows[:DETECTION_SAMPLE_ROWS]
    numeric = []
    for name in dataset.column_names:
        if name == exclude:
            continue
        count = sum(to_number(r.get(name)) is not None for r in head)
        if count >= DETECTION_MIN_NUMERIC:
            numeric.append(name)
    return numeric


def analyze_target_column(dataset: Dataset, target_column: str) -> MLProblemDetection:
    """Problem type for a user-chosen target, bypassing candidate scoring."""
    if target_column not in dataset.column_names:
        raise ValueError(f"Column '{target_column}' not found in dataset")

    values = [r.get(target_column) for r in dataset.rows]
    present = [v for v in values if not is_missing(v)]
    cardinality = len({label_key(v) for v in present})
    is_numeric = bool(present) and sum(to_number(v) is not None for v in present) >= len(present) * NUMERIC_RATIO

    if is_numeric and cardinality > MAX_CLASSIFICATION_CARDINALITY:
        problem_type: ProblemType = 'regression'
        confidence = 0.8
        reasoning = f'Column "{target_column}" is numeric with {cardinality} unique values.'
    elif cardinality >= 2:
        problem_type = 'classification'
        confidence = 0.8 if cardinality <= MAX_CLASSIFICATION_CARDINALITY else 0.4
        reasoning = f'Column "{target_column}" has {cardinality} distinct categories.'
    else:
        problem_type = 'clustering'
        confidence = 0.3
        reasoning = f'Column "{target_column}" has no variation to predict.'

    numeric_cols = _numeric_columns(dataset, exclude=target_column)
    return MLProblemDetection(
        problem_type=problem_type,
        confidence=confidence,
        reasoning=reasoning,
        suggested_target=target_column if problem_type != 'clustering' else None,
        suggested_features=numeric_cols,
        target_cardinality=cardinality,
        numeric_feature_count=len(numeric_cols),
        categorical_feature_count=len(dataset.column_names) - 1 - len(numeric_cols),
    )

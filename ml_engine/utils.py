"""Value helpers, JSON safety, and training-config validation."""

import dataclasses
import math
import numbers
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd


JSONSafe = Union[int, float, list, Dict[str, Any], str, None]


def is_missing(value: Any) -> bool:
    """True for None, empty strings and NaN floats."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if isinstance(value, float):
        return math.isnan(value)
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def to_number(value: Any) -> Optional[float]:
    """Parse a raw cell as a finite float, or return None."""
    if is_missing(value):
        return None
    if isinstance(value, numbers.Number):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def label_key(value: Any) -> str:
    """Canonical string used for cardinality and label encoding.

    Integral floats collapse onto their integer spelling so that ``3``, ``3.0``
    and ``"3"`` share one category.
    """
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, numbers.Number):
        number = float(value)
        if math.isfinite(number) and number.is_integer():
            return str(int(number))
        return repr(number)
    return str(value).strip()


def sigmoid(z: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Logistic link clipped to avoid overflow in ``exp``."""
    return 1.0 / (1.0 + np.exp(-np.clip(z, -500, 500)))


def safe_json_convert(obj: Any) -> JSONSafe:
    """Convert arbitrary Python/NumPy/pandas objects to JSON-safe values.

    Rules:
    - dataclasses → dicts of their fields
    - numpy scalars/arrays → native ints/floats/lists
    - NaN/inf/None → None
    - mappings/iterables → recursively converted
    - anything else → str(obj)
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: safe_json_convert(getattr(obj, f.name)) for f in dataclasses.fields(obj)}

    if isinstance(obj, bool) or obj is None:
        return obj
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        return float(obj) if math.isfinite(obj) else None
    if isinstance(obj, (int, str)):
        return obj

    if isinstance(obj, np.ndarray):
        return [safe_json_convert(x) for x in obj.tolist()]
    if isinstance(obj, pd.DataFrame):
        return [safe_json_convert(r) for r in obj.to_dict('records')]
    if isinstance(obj, pd.Series):
        return safe_json_convert(obj.to_dict())

    if isinstance(obj, bytes):
        return obj.decode('utf-8', errors='ignore')

    if isinstance(obj, dict):
        return {str(k): safe_json_convert(v) for k, v in obj.items()}

    if isinstance(obj, Iterable):
        return [safe_json_convert(x) for x in obj]

    return str(obj)


def validate_training_config(
    dataset: Any,
    target: Optional[str],
    feature_columns: Optional[List[str]],
    split_ratio: Any,
    problem_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate a training request before it reaches the engine."""
    errors = []
    column_names = set(dataset.column_names)

    if not target:
        errors.append("Target column must be provided")
    elif target not in column_names:
        errors.append(f"Target column '{target}' not found in dataset")

    features = [f for f in (feature_columns or []) if f != target]
    if not features:
        errors.append("At least one feature column is required")
    missing = [f for f in features if f not in column_names]
    if missing:
        errors.append(f"Feature columns not found in dataset: {', '.join(missing)}")

    valid_types = ['regression', 'classification', 'clustering']
    if problem_type is not None and problem_type not in valid_types:
        errors.append(f"Invalid problem type '{problem_type}'. Must be one of {valid_types}")

    try:
        ratio = float(split_ratio)
        if ratio <= 0 or ratio >= 1:
            errors.append("Split ratio must be between 0 and 1")
    except (ValueError, TypeError):
        errors.append("Split ratio must be a valid number")

    if dataset.row_count < 10:
        errors.append("Dataset too small. Need at least 10 rows for training")

    if problem_type == 'classification' and target in column_names:
        classes = {label_key(r.get(target)) for r in dataset.rows if not is_missing(r.get(target))}
        if len(classes) < 2:
            errors.append(f"Classification requires at least 2 unique target values, found {len(classes)}")

    return {
        'valid': len(errors) == 0,
        'errors': errors
    }

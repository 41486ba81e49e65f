"""Cleaning, imputation, label encoding and scaling of raw datasets.

Turns a :class:`~ml_engine.schemas.Dataset` into the fully numeric
:class:`~ml_engine.schemas.ProcessedDataset` every trainer consumes, together
with an observational :class:`~ml_engine.schemas.PreprocessingReport`.
Never raises on messy values: they are imputed, encoded or dropped, and counted.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder

from .config import IQR_FENCE, MAX_MISSING_RATIO, MAX_TRAINING_ROWS, NUMERIC_RATIO, ImputeStrategy, ScalingMethod
from .schemas import ColumnPreprocessingInfo, Dataset, PreprocessingReport, ProcessedDataset, ScalingParams
from .utils import is_missing, label_key, to_number

logger = logging.getLogger(__name__)


def preprocess_dataset(
    dataset: Dataset,
    target_column: str,
    feature_columns: Sequence[str],
    impute_strategy: ImputeStrategy = 'mean_imputation',
    scaling_method: ScalingMethod = 'z_score',
) -> Tuple[ProcessedDataset, PreprocessingReport]:
    """Prepare ``dataset`` for training.

    Steps, in order: stride-sample to at most 10,000 rows, drop features that are
    more than 80% missing, impute the rest (or drop incomplete rows for
    ``drop_rows``), drop rows without a usable target, label-encode non-numeric
    columns, compute scaling parameters, count IQR outliers, and scale features.
    The target column is never scaled.

    Deterministic: the same inputs always produce an identical ``data`` frame.
    """
    features: List[str] = []
    for col in feature_columns:
        if col != target_column and col not in features:
            features.append(col)

    frame = pd.DataFrame([dict(r) for r in dataset.rows], columns=[target_column, *features], dtype=object)
    sampled_from: Optional[int] = None
    if len(frame) > MAX_TRAINING_ROWS:
        sampled_from = len(frame)
        step = len(frame) // MAX_TRAINING_ROWS
        frame = frame.iloc[::step].iloc[:MAX_TRAINING_ROWS].reset_index(drop=True)
        logger.info("Sampled %d of %d rows (step %d)", len(frame), sampled_from, step)
    total_rows = len(frame)

    # Blank strings count as missing alongside None and NaN.
    frame = frame.mask(frame.map(is_missing))
    missing_counts = frame.isna().sum()

    dropped_columns = [col for col in features if total_rows and missing_counts[col] / total_rows > MAX_MISSING_RATIO]
    features = [col for col in features if col not in dropped_columns]
    if dropped_columns:
        logger.info("Dropped mostly-empty columns: %s", dropped_columns)

    columns = [target_column, *features]
    frame = frame[columns].copy()
    column_stats: List[ColumnPreprocessingInfo] = []
    imputed_cells = 0

    if impute_strategy == 'drop_rows':
        frame = frame.dropna().reset_index(drop=True)
        for col in columns:
            column_stats.append(ColumnPreprocessingInfo(
                column=col,
                missing_before=int(missing_counts[col]),
                missing_after=0,
                strategy='drop_rows' if missing_counts[col] else 'none',
            ))
    else:
        for col in columns:
            frame[col], filled, strategy = _impute_column(frame[col], impute_strategy)
            imputed_cells += filled
            column_stats.append(ColumnPreprocessingInfo(
                column=col,
                missing_before=int(missing_counts[col]),
                missing_after=int(frame[col].isna().sum()),
                strategy=strategy,
            ))

    label_mappings: Dict[str, Dict[str, int]] = {}
    reverse_label_mappings: Dict[str, Dict[int, str]] = {}
    encoded_columns: List[str] = []
    raw = pd.DataFrame(index=frame.index, columns=columns, dtype=float)

    # A categorical target becomes class codes; a numeric one keeps its values.
    target = frame[target_column]
    present_target = target.dropna()
    if len(present_target) and not _is_numeric(present_target):
        raw[target_column] = _label_encode(target_column, target, label_mappings, reverse_label_mappings)
        encoded_columns.append(target_column)
        keep = target.notna()
    else:
        raw[target_column] = target.map(to_number, na_action='ignore').astype(float)
        keep = raw[target_column].notna()
    frame = frame[keep].reset_index(drop=True)
    raw = raw[keep].reset_index(drop=True)
    dropped_rows = total_rows - len(frame)

    for col in features:
        if _is_numeric(frame[col].dropna()):
            raw[col] = frame[col].map(to_number, na_action='ignore').astype(float)
        else:
            raw[col] = _label_encode(col, frame[col], label_mappings, reverse_label_mappings)
            encoded_columns.append(col)

    scaling_params = {col: _scaling_params(raw[col].dropna().to_numpy()) for col in columns}

    # Strays in numeric columns that still fail to parse fall back to the mean.
    for col in columns:
        stray = int(raw[col].isna().sum())
        if stray:
            imputed_cells += stray
            raw[col] = raw[col].fillna(scaling_params[col].mean)

    outliers_per_column = {
        col: _count_outliers(raw[col].tolist()) for col in features if col not in label_mappings
    }

    data = raw.astype(float)
    if scaling_method != 'none':
        for col in features:
            params = scaling_params[col]
            if scaling_method == 'z_score':
                data[col] = (data[col] - params.mean) / params.std
            else:
                data[col] = (data[col] - params.min) / (params.max - params.min)

    processed = ProcessedDataset(
        data=data,
        target_column=target_column,
        feature_columns=tuple(features),
        scaling_params=scaling_params,
        label_mappings=label_mappings,
        reverse_label_mappings=reverse_label_mappings,
        scaling_method=scaling_method,
    )

    report = PreprocessingReport(
        total_rows=total_rows,
        cleaned_rows=len(data),
        dropped_rows=dropped_rows,
        imputed_cells=imputed_cells,
        outlier_count=sum(outliers_per_column.values()),
        scaling_applied=scaling_method,
        encoded_columns=encoded_columns,
        column_stats=column_stats,
        dropped_columns=dropped_columns,
        outliers_per_column=outliers_per_column,
        sampled_from=sampled_from,
    )
    logger.info("Preprocessed %d rows (%d dropped, %d cells imputed, %d columns encoded)",
                len(data), dropped_rows, imputed_cells, len(encoded_columns))
    return processed, report



def _is_numeric(present: pd.Series) -> bool:
    numeric = int(present.map(to_number).notna().sum())
    return numeric >= len(present) * NUMERIC_RATIO


def _impute_column(series: pd.Series, impute_strategy: ImputeStrategy) -> Tuple[pd.Series, int, str]:
    """Return ``series`` with missing cells filled, the number filled, and the strategy used."""
    present = series.dropna()
    missing = len(series) - len(present)
    if not missing or present.empty:
        return series, 0, 'none'

    if _is_numeric(present):
        numbers = present.map(to_number).dropna().astype(float)
        if impute_strategy == 'median_imputation':
            fill_value, strategy = float(numbers.median()), 'median_imputation'
        elif impute_strategy == 'mode_imputation':
            fill_value, strategy = float(numbers.mode().iat[0]), 'mode_imputation'
        else:
            fill_value, strategy = float(numbers.mean()), 'mean_imputation'
    else:
        fill_value, strategy = present.map(label_key).mode().iat[0], 'mode_imputation'

    return series.fillna(fill_value), missing, strategy


def _label_encode(
    col: str,
    series: pd.Series,
    label_mappings: Dict[str, Dict[str, int]],
    reverse_label_mappings: Dict[str, Dict[int, str]],
) -> pd.Series:
    """Codes for ``series`` in sorted label order; records both mappings for ``col``."""
    keys = series.map(label_key, na_action='ignore')
    encoder = LabelEncoder().fit(keys.dropna())
    labels = [str(label) for label in encoder.classes_]
    label_mappings[col] = {label: idx for idx, label in enumerate(labels)}
    reverse_label_mappings[col] = {idx: label for idx, label in enumerate(labels)}
    codes = encoder.transform(keys.fillna(labels[0]))
    return pd.Series(codes, index=series.index, dtype=float)


def _scaling_params(values: np.ndarray) -> ScalingParams:
    if not values.size:
        return ScalingParams(mean=0.0, std=1.0, min=0.0, max=1.0)
    arr = np.asarray(values, dtype=float)
    std = float(arr.std(ddof=1)) if arr.size > 1 else 0.0
    lo, hi = float(arr.min()), float(arr.max())
    return ScalingParams(
        mean=float(arr.mean()),
        std=std if std > 0 else 1.0,
        min=lo,
        max=hi if hi != lo else lo + 1,
    )


def _count_outliers(values: Sequence[float]) -> int:
    """Tukey fences around index-based quartiles."""
    if not values:
        return 0
    ordered = sorted(values)
    n = len(ordered)
    q1 = ordered[int(math.floor(n * 0.25))]
    q3 = ordered[int(math.floor(n * 0.75))]
    iqr = q3 - q1
    low, high = q1 - IQR_FENCE * iqr, q3 + IQR_FENCE * iqr
    return sum(v < low or v > high for v in ordered)

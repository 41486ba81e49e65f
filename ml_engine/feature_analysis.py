"""Correlation-based feature importance and redundancy analysis."""

import logging
from typing import List, Optional, Sequence

from .config import MIN_IMPORTANCE, NEAR_CONSTANT_STD, REDUNDANCY_THRESHOLD
from .schemas import CorrelationPair, FeatureEngineeringResult, FeatureImportanceItem, ProcessedDataset

logger = logging.getLogger(__name__)


def analyze_features(
    processed: ProcessedDataset,
    feature_columns: Optional[Sequence[str]] = None,
) -> FeatureEngineeringResult:
    """Rank features by absolute Pearson correlation with the target.

    Advisory only: nothing here changes what the trainers see. Near-constant
    features and features with normalized importance of 0.05 or less are
    listed in ``dropped_features``; pairs correlated above 0.9 are flagged.
    """
    features = list(feature_columns) if feature_columns is not None else list(processed.feature_columns)
    frame = processed.data.loc[:, [processed.target_column, *features]].astype(float)
    corr = frame.corr(method='pearson').fillna(0.0)

    raw_importance = {f: abs(float(corr.at[f, processed.target_column])) for f in features}
    max_importance = max([*raw_importance.values(), 0.001])

    items = [
        FeatureImportanceItem(
            feature=f,
            importance=raw_importance[f] / max_importance,
            correlation_with_target=float(corr.at[f, processed.target_column]),
            is_selected=True,
        )
        for f in features
    ]
    items.sort(key=lambda item: item.importance, reverse=True)

    correlation_matrix: List[CorrelationPair] = []
    high_pairs: List[CorrelationPair] = []
    for i, col1 in enumerate(features):
        for col2 in features[i + 1:]:
            pair = CorrelationPair(col1=col1, col2=col2, r=float(corr.at[col1, col2]))
            correlation_matrix.append(pair)
            if abs(pair.r) > REDUNDANCY_THRESHOLD:
                high_pairs.append(pair)

    stds = frame[features].std(ddof=1)
    dropped = []
    for item in items:
        near_constant = not stds[item.feature] >= NEAR_CONSTANT_STD
        if near_constant or item.importance <= MIN_IMPORTANCE:
            dropped.append(item.feature)
    recommended = [item.feature for item in items if item.feature not in dropped]

    items = [
        FeatureImportanceItem(
            feature=item.feature,
            importance=item.importance,
            correlation_with_target=item.correlation_with_target,
            is_selected=item.feature in recommended,
        )
        for item in items
    ]

    if len(features) > 20:
        note = (f'High dimensionality ({len(features)} features). '
                f'Consider reducing to top {min(15, len(recommended))} features.')
    else:
        note = f'{len(features)} features analysed. {len(recommended)} recommended for training.'

    logger.debug("Feature analysis: %d recommended, %d dropped, %d redundant pairs",
                 len(recommended), len(dropped), len(high_pairs))
    return FeatureEngineeringResult(
        feature_importance=items,
        correlation_matrix=correlation_matrix,
        high_correlation_pairs=high_pairs,
        recommended_features=recommended,
        dropped_features=dropped,
        dimensionality_note=note,
    )

"""Single-row inference with confidence and per-feature attribution."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from .clustering import nearest_centroid
from .forest import forest_vote
from .schemas import (
    AnyModelResult,
    ConfidenceInterval,
    DecisionTreeResult,
    FeatureContribution,
    KMeansResult,
    LinearModelResult,
    LogisticModelResult,
    PredictionResult,
    ProcessedDataset,
    RandomForestResult,
    RegressionMetrics,
)
from .tree import trace_path
from .utils import sigmoid

logger = logging.getLogger(__name__)

LEAF_SUPPORT_PRIOR = 5


def make_prediction(
    feature_values: Mapping[str, Any],
    model: AnyModelResult,
    processed: ProcessedDataset,
) -> PredictionResult:
    """Predict one row of raw inputs with a trained model.

    Inputs are encoded and scaled exactly as during training. Unseen categories
    fall back to the first training label (code 0) and unparseable numbers to the
    training mean; every such substitution is listed in ``substituted_values``.
    """
    inputs, substituted = _prepare_inputs(feature_values, model, processed)
    interval = None
    prefix = ''

    match model:
        case KMeansResult():
            predicted, confidence, contributions = _predict_kmeans(model, inputs)
            prefix = f'This data point is most similar to {predicted} based on the feature distances. '
        case DecisionTreeResult():
            predicted, confidence, contributions = _predict_tree(model, inputs, processed)
        case RandomForestResult():
            predicted, confidence, contributions = _predict_forest(model, inputs, processed)
        case LinearModelResult():
            predicted, confidence, contributions = _predict_linear(model, inputs, processed)
        case LogisticModelResult():
            predicted, confidence, contributions = _predict_logistic(model, inputs, processed)
        case _:
            raise TypeError(f"Unsupported model result: {type(model).__name__}")

    if model.problem_type == 'regression' and isinstance(model.metrics, RegressionMetrics):
        margin = 1.96 * model.metrics.rmse
        interval = ConfidenceInterval(lower=float(predicted) - margin, upper=float(predicted) + margin)

    contributions.sort(key=lambda c: c.contribution, reverse=True)
    if contributions:
        top = contributions[0]
        explanation = (f'{prefix}The most influential feature is "{top.feature}" '
                       f'with a {top.direction} contribution. Model: {model.algorithm_label}.')
    else:
        explanation = f'{prefix}Prediction made using {model.algorithm_label}.'

    return PredictionResult(
        predicted_value=predicted,
        confidence=float(min(1.0, max(0.0, confidence))),
        feature_contributions=contributions,
        explanation=explanation,
        algorithm=model.algorithm,
        confidence_interval=interval,
        substituted_values=substituted,
    )


def _prepare_inputs(
    feature_values: Mapping[str, Any],
    model: AnyModelResult,
    processed: ProcessedDataset,
) -> Tuple[Dict[str, float], Dict[str, str]]:
    inputs: Dict[str, float] = {}
    substituted: Dict[str, str] = {}
    for col in model.feature_columns:
        value, fell_back = processed.encode_value(col, feature_values.get(col))
        if fell_back:
            if col in processed.label_mappings:
                substituted[col] = processed.decode_label(col, 0)
            else:
                substituted[col] = f'{value:g}'
            logger.info("Input for '%s' replaced by '%s'", col, substituted[col])
        inputs[col] = processed.scale_value(col, value)
    return inputs, substituted


def _contribution(feature: str, signed: float, magnitude: Optional[float] = None) -> FeatureContribution:
    return FeatureContribution(
        feature=feature,
        contribution=float(abs(signed) if magnitude is None else magnitude),
        direction='positive' if signed >= 0 else 'negative',
    )


def _class_output(processed: ProcessedDataset, code: float) -> Union[float, str]:
    if processed.target_column in processed.reverse_label_mappings:
        return processed.decode_label(processed.target_column, code)
    return float(code)


def _regression_confidence(rmse: float, processed: ProcessedDataset) -> float:
    params = processed.scaling_params.get(processed.target_column)
    spread = params.std if params else 1.0
    return min(0.99, max(0.3, 1 - rmse / (spread + 0.001)))


def _path_contributions(model_features, steps) -> Tuple[Dict[str, float], Dict[str, float]]:
    magnitude = {f: 0.0 for f in model_features}
    signed = {f: 0.0 for f in model_features}
    for feature, threshold, value in steps:
        magnitude[feature] += abs(value - threshold)
        signed[feature] += value - threshold
    return magnitude, signed


def _predict_kmeans(model: KMeansResult, inputs: Dict[str, float]):
    point = np.array([[inputs[f] for f in model.feature_columns]], dtype=float)
    centroids = np.asarray(model.centroids, dtype=float)
    cluster, distance = nearest_centroid(point, centroids)
    cluster, distance = int(cluster[0]), float(distance[0])

    centroid = centroids[cluster]
    contributions = [
        _contribution(f, inputs[f] - centroid[j], (inputs[f] - centroid[j]) ** 2)
        for j, f in enumerate(model.feature_columns)
    ]
    return f'Cluster {cluster + 1}', max(0.4, 1 - distance / 10), contributions


def _predict_tree(model: DecisionTreeResult, inputs: Dict[str, float], processed: ProcessedDataset):
    leaf, steps = trace_path(model.tree, inputs)
    if model.problem_type == 'classification':
        counts = leaf.class_counts or {}
        winner = counts.get(int(round(leaf.prediction)), 0)
        confidence = winner / leaf.samples if leaf.samples else 0.0
        predicted = _class_output(processed, leaf.prediction)
    else:
        support = leaf.samples / (leaf.samples + LEAF_SUPPORT_PRIOR)
        confidence = support * _regression_confidence(model.metrics.rmse, processed)
        predicted = leaf.prediction

    magnitude, signed = _path_contributions(model.feature_columns, steps)
    contributions = [_contribution(f, signed[f], magnitude[f]) for f in model.feature_columns]
    return predicted, confidence, contributions


def _predict_forest(model: RandomForestResult, inputs: Dict[str, float], processed: ProcessedDataset):
    outputs: List[float] = []
    magnitude = {f: 0.0 for f in model.feature_columns}
    signed = {f: 0.0 for f in model.feature_columns}
    for tree in model.trees:
        leaf, steps = trace_path(tree, inputs)
        outputs.append(leaf.prediction)
        tree_magnitude, tree_signed = _path_contributions(model.feature_columns, steps)
        for f in model.feature_columns:
            magnitude[f] += tree_magnitude[f]
            signed[f] += tree_signed[f]

    n_trees = max(1, len(model.trees))
    contributions = [_contribution(f, signed[f] / n_trees, magnitude[f] / n_trees) for f in model.feature_columns]

    if model.problem_type == 'classification':
        winner = forest_vote(outputs)
        confidence = sum(int(round(o)) == int(winner) for o in outputs) / n_trees
        return _class_output(processed, winner), confidence, contributions

    spread = float(np.std(outputs)) if outputs else 0.0
    params = processed.scaling_params.get(processed.target_column)
    scale = (params.std if params else 1.0) + 0.001
    confidence = 1 / (1 + (spread + model.metrics.rmse) / scale)
    return float(np.mean(outputs)), confidence, contributions


def _predict_linear(model: LinearModelResult, inputs: Dict[str, float], processed: ProcessedDataset):
    terms = {f: model.coefficients.get(f, 0.0) * inputs[f] for f in model.feature_columns}
    predicted = model.intercept + sum(terms.values())
    confidence = _regression_confidence(model.metrics.rmse, processed)
    return float(predicted), confidence, [_contribution(f, t) for f, t in terms.items()]


def _predict_logistic(model: LogisticModelResult, inputs: Dict[str, float], processed: ProcessedDataset):
    x = np.array([inputs[f] for f in model.feature_columns], dtype=float)
    weights = np.asarray(model.weights, dtype=float).reshape(len(model.class_values), len(x))
    scores = sigmoid(weights @ x + np.asarray(model.biases, dtype=float))
    best = int(np.argmax(scores))
    probability = float(scores[best])

    contributions = [_contribution(f, weights[best, j] * x[j]) for j, f in enumerate(model.feature_columns)]
    return _class_output(processed, model.class_values[best]), abs(probability - 0.5) * 2, contributions

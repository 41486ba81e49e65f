"""
Helper functions and decorators for the Flask app.
Request parsing, the per-session server-side cache, and the heavier handlers.
"""

import uuid
import functools
from flask import session, jsonify, request, current_app
from typing import Callable, Dict, Any, Optional, Tuple

from ml_engine import Dataset, PipelineResult

# Server-side cache: engine objects never go into the cookie session
app_cache = {
    'datasets': {},
    'training_data': {}
}

VALIDATION_ERROR = 400


def api_response(func: Callable) -> Callable:
    """Decorator for standardized API responses with error handling"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
            if isinstance(result, (dict, list)):
                return jsonify(result)
            if isinstance(result, tuple) and isinstance(result[0], (dict, list)):
                return jsonify(result[0]), result[1]
            return result
        except ValueError as e:
            current_app.logger.warning(f"Rejected request in {func.__name__}: {str(e)}")
            return jsonify({'success': False, 'error': str(e)}), VALIDATION_ERROR
        except Exception as e:
            current_app.logger.error(f"API Error in {func.__name__}: {str(e)}")
            return jsonify({'success': False, 'error': str(e)}), 500
    return wrapper


def require_dataset(func: Callable) -> Callable:
    """Decorator to ensure a dataset was submitted in this session"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if get_session_cache('datasets') is None and not _payload().get('rows'):
            return jsonify({
                'success': False,
                'error': 'No dataset found. Please submit rows to /detect first.'
            }), 400
        return func(*args, **kwargs)
    return wrapper


def require_training(func: Callable) -> Callable:
    """Decorator to ensure models were trained in this session"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if get_session_cache('training_data') is None:
            return jsonify({
                'success': False,
                'error': 'No trained models found. Please train models first.'
            }), 400
        return func(*args, **kwargs)
    return wrapper


def get_session_cache(cache_type: str) -> Any:
    """Get cached data for current session"""
    session_id = session.get('session_id')
    if not session_id:
        return None
    return app_cache.get(cache_type, {}).get(session_id)


def set_session_cache(cache_type: str, data: Any) -> None:
    """Set cached data for current session"""
    session_id = session.get('session_id')
    if not session_id:
        session_id = str(uuid.uuid4())
        session['session_id'] = session_id

    if cache_type not in app_cache:
        app_cache[cache_type] = {}
    app_cache[cache_type][session_id] = data


def clear_session_cache() -> None:
    """Clear all cached data for current session"""
    session_id = session.get('session_id')
    if session_id:
        for cache_type in app_cache:
            app_cache[cache_type].pop(session_id, None)


def get_training_session() -> PipelineResult:
    return get_session_cache('training_data')


def _payload() -> Dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def load_dataset(data: Optional[Dict[str, Any]] = None) -> Dataset:
    """Dataset from the request body when rows are sent, else the cached one"""
    from model_utils import build_dataset

    data = _payload() if data is None else data
    if data.get('rows'):
        dataset = build_dataset(data['rows'], data.get('columns'), data.get('name', 'dataset'))
        set_session_cache('datasets', dataset)
        return dataset

    dataset = get_session_cache('datasets')
    if dataset is None:
        raise ValueError("No dataset found. Please submit rows first.")
    return dataset


def handle_detection() -> Dict[str, Any]:
    """Store the submitted dataset and suggest a target and problem type"""
    from model_utils import detect_target_and_type

    # A new dataset invalidates any previous training
    session_id = session.get('session_id')
    if session_id:
        app_cache['training_data'].pop(session_id, None)

    dataset = load_dataset()
    detection = detect_target_and_type(dataset)
    session['target'] = detection['suggested_target']
    session['ptype'] = detection['problem_type']
    current_app.logger.info(
        f"Detection for {dataset.row_count} rows: {detection['problem_type']} "
        f"(target={detection['suggested_target']})"
    )
    return {
        'success': True,
        'detection': detection,
        'columns': dataset.column_names,
        'row_count': dataset.row_count,
        'message': 'Problem detection completed!'
    }


def _training_params(data: Dict[str, Any]) -> Tuple[Optional[str], list, Optional[str], Any]:
    target = data.get('target') or session.get('target')
    ptype = data.get('ptype') or data.get('problem_type') or session.get('ptype')
    features = data.get('features') or data.get('feature_columns') or []
    if isinstance(features, str):
        features = [f.strip() for f in features.split(',') if f.strip()]
    split_ratio = data.get('split_ratio', data.get('split', 0.8))
    return target, list(features), ptype, split_ratio


def handle_validation() -> Dict[str, Any]:
    from model_utils import validate_training_config

    data = _payload()
    dataset = load_dataset(data)
    target, features, ptype, split_ratio = _training_params(data)
    if not features:
        features = [c for c in dataset.column_names if c != target]
    return {
        'success': True,
        'validation_result': validate_training_config(dataset, target, features, ptype, split_ratio)
    }


def handle_training() -> Tuple[Dict[str, Any], int]:
    """Validate the request, run a training session and cache it"""
    from model_utils import train_models, validate_training_config, summarize_models, safe_json_convert

    data = _payload()
    dataset = load_dataset(data)
    target, features, ptype, split_ratio = _training_params(data)
    if not features:
        features = [c for c in dataset.column_names if c != target]

    validation = validate_training_config(dataset, target, features, ptype, split_ratio)
    if not validation['valid']:
        error_message = "; ".join(validation['errors'])
        current_app.logger.warning(f"Training validation failed: {error_message}")
        return {'success': False, 'error': f"Training validation failed: {error_message}",
                'errors': validation['errors']}, VALIDATION_ERROR

    progress = []
    result = train_models(
        dataset, target, features, ptype,
        split_ratio=float(split_ratio),
        impute_strategy=data.get('impute_strategy', 'mean_imputation'),
        scaling_method=data.get('scaling_method', 'z_score'),
        on_progress=lambda percent, message: progress.append({'percent': percent, 'message': message}),
    )
    set_session_cache('training_data', result)
    session['best_model_name'] = result.best_model.algorithm
    session.permanent = True
    session.modified = True

    best = result.best_model
    current_app.logger.info(f"Training completed. Best model: {best.algorithm_label}")
    return {
        'success': True,
        'training_results': True,
        'best_model': best.algorithm,
        'best_model_label': best.algorithm_label,
        'ranking_metric': result.comparison.ranking_metric,
        'metrics': safe_json_convert(best.metrics),
        'feature_importance': safe_json_convert(best.feature_importance),
        'all_results': summarize_models(result),
        'preprocessing_report': safe_json_convert(result.report),
        'columns': list(result.processed.feature_columns),
        'progress': progress,
        'message': f'Training completed! Best model: {best.algorithm_label}'
    }, 200


def handle_prediction() -> Dict[str, Any]:
    from model_utils import predict

    data = _payload()
    values = data.get('values') or data.get('features') or {}
    if not isinstance(values, dict):
        raise ValueError("Prediction values must be an object of column -> value")
    prediction = predict(get_training_session(), values, data.get('algorithm'))
    return {'success': True, 'prediction': prediction}

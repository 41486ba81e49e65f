"""
Flask app exposing the ML engine as JSON endpoints.
Rows arrive as JSON records; trained sessions live in the server-side cache only.
"""

import os
import csv
import io
from flask import Flask, request, session, make_response
from model_utils import (
    analyze_target_column, calculate_split_percentages, safe_json_convert, summarize_models
)
from app_helpers import (
    api_response, require_dataset, require_training, load_dataset, clear_session_cache,
    get_training_session, handle_detection, handle_validation, handle_training, handle_prediction
)
from ml_engine.charts import (
    create_feature_importance_chart, create_model_comparison_chart,
    create_confusion_matrix_chart, create_cluster_sizes_chart
)

app = Flask(__name__)
app.secret_key = os.urandom(24)  # Generate random secret key
app.config['MAX_CONTENT_LENGTH'] = 50 * 1024 * 1024  # 50MB max request size

# Configure session settings for better persistence
app.config['SESSION_PERMANENT'] = True
app.config['PERMANENT_SESSION_LIFETIME'] = 3600  # 1 hour


@app.route('/detect', methods=['POST'])
@api_response
def detect():
    """Store the submitted rows and detect the ML problem."""
    return handle_detection()

@app.route('/analyze_target', methods=['POST'])
@api_response
@require_dataset
def analyze_target():
    """Problem type for a user-chosen target column."""
    data = request.get_json(silent=True) or {}
    target_column = data.get('target') if data else request.form.get('target')

    if not target_column:
        return {'success': False, 'error': 'Target column not specified'}, 400

    return analyze_target_column(load_dataset(data), target_column)

@app.route('/train', methods=['POST'])
@api_response
@require_dataset
def train():
    """Train models and store results for comparison."""
    return handle_training()

@app.route('/predict', methods=['POST'])
@api_response
@require_training
def predict():
    """Predict one row with the best (or a named) model."""
    return handle_prediction()

@app.route('/metrics', methods=['GET'])
@api_response
@require_training
def get_metrics():
    """AJAX endpoint: returns metrics for best model as JSON."""
    return safe_json_convert(get_training_session().best_model.metrics)

@app.route('/best_model', methods=['GET'])
@api_response
@require_training
def get_best_model():
    """AJAX endpoint: returns best model name and details."""
    result = get_training_session()
    best = result.best_model
    details = {
        'name': best.algorithm,
        'label': best.algorithm_label,
        'ranking_metric': result.comparison.ranking_metric,
        'interpretation': best.interpretation,
        'metrics': safe_json_convert(best.metrics),
    }
    equation = getattr(best, 'equation', None)
    if equation:
        details['equation'] = equation
    return details

@app.route('/feature_importance', methods=['GET'])
@api_response
@require_training
def get_feature_importance():
    """AJAX endpoint: returns feature importance of the requested or best model."""
    model = get_training_session().model(request.args.get('algorithm'))
    return safe_json_convert(model.feature_importance)

@app.route('/model_comparison', methods=['GET'])
@api_response
@require_training
def model_comparison():
    """AJAX endpoint: returns all trained model metrics for comparison."""
    return summarize_models(get_training_session())

@app.route('/preprocessing_report', methods=['GET'])
@api_response
@require_training
def preprocessing_report():
    return safe_json_convert(get_training_session().report)

@app.route('/feature_analysis', methods=['GET'])
@api_response
@require_training
def feature_analysis():
    return safe_json_convert(get_training_session().feature_analysis)

@app.route('/charts/<name>', methods=['GET'])
@api_response
@require_training
def chart(name):
    """Plotly HTML fragment for one of the result charts."""
    result = get_training_session()
    best = result.best_model
    if name == 'feature_importance':
        html = create_feature_importance_chart(best.feature_importance, best.algorithm_label)
    elif name == 'model_comparison':
        html = create_model_comparison_chart(result.comparison.results, result.comparison.ranking_metric)
    elif name == 'confusion_matrix' and best.problem_type == 'classification':
        html = create_confusion_matrix_chart(best.metrics)
    elif name == 'cluster_sizes' and best.problem_type == 'clustering':
        html = create_cluster_sizes_chart(best)
    else:
        return {'success': False, 'error': f"Chart '{name}' is not available for this session"}, 404
    return {'success': True, 'html': html}

@app.route('/calculate_split', methods=['POST'])
@api_response
def calculate_split():
    """Calculate train/test split percentages"""
    data = request.get_json(silent=True) or {}
    split_ratio = float(data.get('split_ratio', 0.8))
    train_percent, test_percent = calculate_split_percentages(split_ratio)
    return {
        'success': True,
        'train_percent': train_percent,
        'test_percent': test_percent,
        'split_ratio': split_ratio
    }

@app.route('/validate_training_config', methods=['POST'])
@api_response
@require_dataset
def validate_training_config_endpoint():
    """Validate training configuration before starting training"""
    return handle_validation()

@app.route('/reset_session', methods=['POST'])
@api_response
def reset_session():
    """Drop the cached dataset and trained models."""
    clear_session_cache()
    session.clear()
    return {'message': 'Session cleared successfully'}

@app.route('/export_results')
def export_results():
    """Export training results as CSV."""
    try:
        result = get_training_session()
        if result is None:
            return "No training results available for export.", 404

        all_results = summarize_models(result)
        output = io.StringIO()
        writer = csv.writer(output)

        metrics_keys = [k for k in all_results[0] if k not in ('algorithm', 'model', 'is_top_model')]
        header = ['Model', 'Best_Model'] + metrics_keys
        writer.writerow(header)

        for row in all_results:
            is_best = 'Yes' if row['is_top_model'] else 'No'
            writer.writerow([row['model'], is_best] + [row.get(key, '') for key in metrics_keys])

        response = make_response(output.getvalue())
        response.headers['Content-Type'] = 'text/csv'
        response.headers['Content-Disposition'] = 'attachment; filename=ml_engine_results.csv'
        return response

    except Exception as e:
        app.logger.error(f"Error exporting results: {str(e)}")
        return f"Error exporting results: {str(e)}", 500

if __name__ == "__main__":
    app.run(host='127.0.0.1', port=5002)

"""Tests for the Flask JSON API."""

import pytest

from app import app


@pytest.fixture
def client():
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def trained(client, separable_records):
    response = client.post('/train', json={
        'rows': separable_records,
        'target': 'label',
        'features': ['x', 'w'],
        'problem_type': 'classification',
        'split_ratio': 0.8,
    })
    assert response.status_code == 200
    return client


class TestDetectionEndpoints:

    def test_detect(self, client, separable_records):
        response = client.post('/detect', json={'rows': separable_records})
        body = response.get_json()

        assert response.status_code == 200
        assert body['success']
        assert body['row_count'] == 100
        assert body['columns'] == ['x', 'w', 'label']
        assert body['detection']['suggested_target'] == 'label'
        assert body['detection']['problem_type'] == 'classification'

    def test_detect_rejects_bad_rows(self, client):
        response = client.post('/detect', json={'rows': [1, 2, 3]})
        assert response.status_code == 400
        assert not response.get_json()['success']

    def test_analyze_target(self, client, separable_records):
        client.post('/detect', json={'rows': separable_records})
        body = client.post('/analyze_target', json={'target': 'label'}).get_json()

        assert body['success']
        assert body['unique_count'] == 2
        assert body['detected_type'] == 'classification'

    def test_analyze_target_without_dataset(self, client):
        response = client.post('/analyze_target', json={'target': 'label'})
        assert response.status_code == 400

    def test_analyze_unknown_target(self, client, separable_records):
        client.post('/detect', json={'rows': separable_records})
        body = client.post('/analyze_target', json={'target': 'nope'}).get_json()
        assert body['success'] is False


class TestTrainingEndpoints:

    def test_train_response(self, client, separable_records):
        response = client.post('/train', json={
            'rows': separable_records,
            'target': 'label',
            'features': 'x, w',
            'ptype': 'classification',
            'scaling_method': 'none',
        })
        body = response.get_json()

        assert response.status_code == 200
        assert body['success']
        assert body['ranking_metric'] == 'F1 Score'
        assert len(body['all_results']) == 3
        assert sum(r['is_top_model'] for r in body['all_results']) == 1
        assert body['progress'][-1] == {'percent': 100, 'message': 'Training complete!'}
        assert body['columns'] == ['x', 'w']

    def test_train_validation_errors(self, client, separable_records):
        response = client.post('/train', json={
            'rows': separable_records,
            'target': 'missing',
            'features': ['x'],
            'split_ratio': 1.5,
        })
        body = response.get_json()

        assert response.status_code == 400
        assert "Target column 'missing' not found in dataset" in body['errors']
        assert 'Split ratio must be between 0 and 1' in body['errors']

    def test_validate_training_config(self, client, separable_records):
        client.post('/detect', json={'rows': separable_records})
        body = client.post('/validate_training_config', json={'target': 'label'}).get_json()
        assert body['validation_result'] == {'valid': True, 'errors': []}

    def test_results_require_training(self, client):
        response = client.get('/metrics')
        assert response.status_code == 400
        assert 'train' in response.get_json()['error']

    def test_results(self, trained):
        assert 'f1' in trained.get('/metrics').get_json()

        best = trained.get('/best_model').get_json()
        assert best['ranking_metric'] == 'F1 Score'

        importance = trained.get('/feature_importance?algorithm=decision_tree').get_json()
        assert {item['feature'] for item in importance} == {'x', 'w'}

        comparison = trained.get('/model_comparison').get_json()
        assert [row['algorithm'] for row in comparison] == ['logistic_regression', 'decision_tree', 'random_forest']

        assert trained.get('/preprocessing_report').get_json()['total_rows'] == 100
        assert 'recommended_features' in trained.get('/feature_analysis').get_json()

    def test_unknown_algorithm(self, trained):
        response = trained.get('/feature_importance?algorithm=k_means')
        assert response.status_code == 400

    def test_charts(self, trained):
        assert trained.get('/charts/confusion_matrix').get_json()['success']
        assert trained.get('/charts/model_comparison').status_code == 200
        assert trained.get('/charts/cluster_sizes').status_code == 404

    def test_export(self, trained):
        response = trained.get('/export_results')
        lines = response.get_data(as_text=True).splitlines()

        assert response.headers['Content-Type'].startswith('text/csv')
        assert lines[0].startswith('Model,Best_Model,')
        assert len(lines) == 4

    def test_reset(self, trained):
        trained.post('/reset_session')
        assert trained.get('/metrics').status_code == 400


class TestPredictionEndpoint:

    def test_predict(self, trained):
        body = trained.post('/predict', json={'values': {'x': 10, 'w': 5000}}).get_json()

        assert body['success']
        assert body['prediction']['predicted_value'] in ('a', 'b')
        assert 0.0 <= body['prediction']['confidence'] <= 1.0

    def test_predict_with_named_model(self, trained):
        body = trained.post('/predict', json={'values': {'x': 80, 'w': 0}, 'algorithm': 'decision_tree'}).get_json()
        assert body['prediction']['predicted_value'] == 'b'
        assert body['prediction']['algorithm'] == 'decision_tree'

    def test_predict_rejects_non_object(self, trained):
        response = trained.post('/predict', json={'values': [1, 2]})
        assert response.status_code == 400


def test_calculate_split(client):
    body = client.post('/calculate_split', json={'split_ratio': 0.75}).get_json()
    assert body['train_percent'] == 75
    assert body['test_percent'] == 25


def test_calculate_split_without_json_body(client):
    response = client.post('/calculate_split', data='split_ratio=0.5', content_type='text/plain')
    body = response.get_json()

    assert response.status_code == 200
    assert body['train_percent'] == 80
    assert body['test_percent'] == 20

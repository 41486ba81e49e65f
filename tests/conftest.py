"""Shared datasets for the ML engine tests."""

import pytest

from ml_engine import Dataset


@pytest.fixture
def regression_records():
    """Exact linear target: y = 3*x1 - 2*x2 + 5."""
    return [
        {'x1': float(i), 'x2': float((i * 7) % 13), 'y': 3.0 * i - 2.0 * ((i * 7) % 13) + 5.0}
        for i in range(60)
    ]


@pytest.fixture
def regression_dataset(regression_records):
    return Dataset.from_records(regression_records, name='linear')


@pytest.fixture
def separable_records():
    """Two classes split cleanly by ``x`` at 49.5; ``w`` is a scrambled distractor."""
    return [
        {'x': float(i), 'w': float((i * 37) % 100) * 1000, 'label': 'a' if i < 50 else 'b'}
        for i in range(100)
    ]


@pytest.fixture
def separable_dataset(separable_records):
    return Dataset.from_records(separable_records, name='separable')


@pytest.fixture
def categorical_dataset():
    colors = ['red', 'green', 'blue']
    return Dataset.from_records([
        {
            'size': float(i % 10) + (i / 100),
            'color': colors[i % 3],
            'label': 'yes' if i % 10 >= 5 else 'no',
        }
        for i in range(60)
    ], name='categorical')


@pytest.fixture
def blob_dataset():
    """Two well separated blobs with no plausible target column."""
    rows = []
    for i in range(40):
        offset = 0.0 if i < 20 else 50.0
        rows.append({'a': offset + i * 0.013, 'b': offset - i * 0.017, 'c': offset + i * 0.011})
    return Dataset.from_records(rows, name='blobs')


@pytest.fixture
def detection_dataset():
    """Target ``t`` has 40 distinct numeric values over 100 rows; features are unique."""
    return Dataset.from_records([
        {'f1': i * 1.5, 'f2': i * 0.25 + 3, 'f3': 100.0 - i, 't': float(i % 40)}
        for i in range(100)
    ], name='detection')

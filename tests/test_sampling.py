"""Tests for the seeded generator and train/test split."""

import pandas as pd

from ml_engine.sampling import LinearCongruentialGenerator, split_data


class TestLinearCongruentialGenerator:

    def test_same_seed_same_sequence(self):
        a = LinearCongruentialGenerator(42)
        b = LinearCongruentialGenerator(42)
        assert [a.random() for _ in range(20)] == [b.random() for _ in range(20)]

    def test_different_seeds_differ(self):
        a = LinearCongruentialGenerator(42)
        b = LinearCongruentialGenerator(139)
        assert [a.random() for _ in range(5)] != [b.random() for _ in range(5)]

    def test_first_value(self):
        rng = LinearCongruentialGenerator(0)
        assert rng.random() == 1013904223 / 2 ** 32

    def test_ranges(self):
        rng = LinearCongruentialGenerator(7)
        for _ in range(500):
            assert 0.0 <= rng.random() < 1.0
            assert 0 <= rng.randint(3) < 3

    def test_sample_distinct(self):
        rng = LinearCongruentialGenerator(11)
        drawn = rng.sample(range(10), 4)
        assert len(drawn) == 4
        assert len(set(drawn)) == 4
        assert all(0 <= d < 10 for d in drawn)

    def test_sample_caps_at_population(self):
        rng = LinearCongruentialGenerator(11)
        assert sorted(rng.sample(['a', 'b'], 5)) == ['a', 'b']


class TestSplitData:

    def test_sizes(self):
        frame = pd.DataFrame({'y': range(10), 'x': range(10)})
        train, test = split_data(frame, 0.75)
        assert len(train) == 7
        assert len(test) == 3

    def test_orders_by_row_sum(self):
        frame = pd.DataFrame({'y': [5.0, 1.0, 3.0, 2.0], 'x': [0.0, 0.0, 0.0, 0.0]})
        train, test = split_data(frame, 0.5)
        assert train['y'].tolist() == [1.0, 2.0]
        assert test['y'].tolist() == [3.0, 5.0]

    def test_equal_sums_keep_order(self):
        frame = pd.DataFrame({'y': [1.0, 0.0, 2.0], 'x': [0.0, 1.0, -1.0]})
        train, test = split_data(frame, 0.67)
        assert list(train.index) + list(test.index) == [0, 1, 2]

    def test_repeatable(self):
        frame = pd.DataFrame({'y': [3.0, 1.0, 4.0, 1.0, 5.0, 9.0], 'x': [2.0, 6.0, 5.0, 3.0, 5.0, 8.0]})
        first = split_data(frame, 0.8)
        second = split_data(frame, 0.8)
        assert first[0].equals(second[0])
        assert first[1].equals(second[1])

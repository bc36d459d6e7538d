import pytest

from gitspark.stats import clamp, coefficient_of_variation, gini_coefficient, mean, percentile, shannon_entropy


class TestPercentile:
    def test_linear_interpolation(self):
        assert percentile([1, 2, 3, 4], 50) == 2.5
        assert percentile([10, 20, 30, 40, 50], 90) == pytest.approx(46.0)

    def test_order_independent(self):
        assert percentile([5, 1, 3], 50) == percentile([1, 3, 5], 50) == 3.0

    def test_empty(self):
        assert percentile([], 90) == 0.0

    def test_returns_python_float(self):
        assert type(percentile([1, 2], 50)) is float


class TestCoefficientOfVariation:
    def test_constant(self):
        assert coefficient_of_variation([4, 4, 4]) == 0.0

    def test_population_std(self):
        assert coefficient_of_variation([1, 3]) == pytest.approx(0.5)

    def test_degenerate(self):
        assert coefficient_of_variation([]) == 0.0
        assert coefficient_of_variation([0, 0]) == 0.0


class TestGini:
    def test_even(self):
        assert gini_coefficient([5, 5, 5, 5]) == 0.0

    def test_concentrated(self):
        assert gini_coefficient([0, 0, 0, 10]) == pytest.approx(0.75)

    def test_degenerate(self):
        assert gini_coefficient([]) == 0.0
        assert gini_coefficient([0, 0]) == 0.0


class TestMisc:
    def test_clamp(self):
        assert clamp(1.5) == 1.0
        assert clamp(-0.2) == 0.0
        assert clamp(150, 0, 100) == 100.0

    def test_mean(self):
        assert mean([]) == 0.0
        assert mean([1, 2]) == 1.5

    def test_entropy(self):
        assert shannon_entropy([1.0]) == 0.0
        assert shannon_entropy([0.5, 0.5]) == pytest.approx(1.0)
        assert shannon_entropy([0.0, 1.0]) == 0.0

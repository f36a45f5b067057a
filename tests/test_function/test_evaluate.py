"""Value and gradient evaluation."""

import numpy as np
import pytest

from termsum import (
    DimensionMismatch,
    Function,
    LinearTerm,
    Rosenbrock,
    SquaredDistance,
    SumOfSquares,
)
from termsum.diagnostics import approx_grad


def test_sum_of_squares_scenario(number_of_threads):
    x = np.array([3.0, 4.0])
    f = Function(number_of_threads=number_of_threads)
    f.add_term(SumOfSquares(2), x)

    assert f.evaluate() == 25.0
    assert f.evaluate(np.array([3.0, 4.0])) == 25.0
    value, gradient = f.evaluate_with_gradient(np.array([3.0, 4.0]))
    assert value == 25.0
    np.testing.assert_array_equal(gradient, [6.0, 8.0])
    value, gradient, hessian = f.evaluate_with_hessian(np.array([3.0, 4.0]))
    assert value == 25.0
    np.testing.assert_array_equal(hessian, np.diag([2.0, 2.0]))
    f.close()


def test_constant_variable_reads_user_storage():
    x = np.array([3.0, 4.0])
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(2), x)
    f.set_constant(x)
    assert f.get_number_of_scalars() == 0

    value, gradient = f.evaluate_with_gradient(np.zeros(0))
    assert value == 25.0
    assert gradient.shape == (0,)
    assert f.evaluate(np.zeros(0)) == 25.0

    x[:] = [1.0, 1.0]
    assert f.evaluate(np.zeros(0)) == 2.0


def test_constant_is_added():
    x = np.array([1.0])
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(1), x)
    f += 2.5
    assert f.constant == 2.5
    assert f.evaluate() == 3.5
    assert f.evaluate_with_gradient(np.array([2.0]))[0] == 6.5


def test_empty_function_evaluates_to_constant():
    f = Function(number_of_threads=2)
    f.constant = -1.0
    assert f.evaluate() == -1.0
    value, gradient = f.evaluate_with_gradient(np.zeros(0))
    assert value == -1.0
    assert gradient.shape == (0,)


def test_evaluate_with_x_does_not_touch_user_storage():
    x = np.array([1.0, 2.0])
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(2), x)
    assert f.evaluate(np.array([0.0, 0.0])) == 0.0
    np.testing.assert_array_equal(x, [1.0, 2.0])


def test_mixed_free_and_constant_gradient(number_of_threads):
    x = np.array([1.0, 2.0])
    y = np.array([0.5, -1.0])
    f = Function(number_of_threads=number_of_threads)
    f.add_term(SquaredDistance(2), x, y)
    f.add_term(LinearTerm([1.0, 1.0]), y)
    f.set_constant(y)

    point = np.array([2.0, 0.0])
    value, gradient = f.evaluate_with_gradient(point)
    assert value == pytest.approx(1.5**2 + 1.0**2 + (0.5 - 1.0))
    np.testing.assert_allclose(gradient, 2.0 * (point - y))
    f.close()


def test_gradient_matches_finite_differences(rng, number_of_threads):
    variables = [np.zeros(1) for _ in range(6)]
    f = Function(number_of_threads=number_of_threads)
    for a, b in zip(variables[:-1], variables[1:]):
        f.add_term(Rosenbrock(), a, b)
    f.add_term(SumOfSquares(1, scale=3.0), variables[2])

    point = rng.uniform(-1.0, 1.0, size=6)
    _, gradient = f.evaluate_with_gradient(point)
    np.testing.assert_allclose(gradient, approx_grad(f.evaluate, point), rtol=1e-6, atol=1e-6)
    f.close()


def test_wrong_global_length():
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(2), np.zeros(2))
    with pytest.raises(DimensionMismatch):
        f.evaluate(np.zeros(3))
    with pytest.raises(DimensionMismatch):
        f.evaluate_with_gradient(np.zeros(1))
    with pytest.raises(DimensionMismatch):
        f.evaluate_with_hessian(np.zeros((2, 1)))
    with pytest.raises(DimensionMismatch):
        f.copy_global_to_user(np.zeros(5))


def test_gradient_defaults_to_user_values():
    x = np.array([1.0, -2.0])
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(2), x)
    value, gradient = f.evaluate_with_gradient()
    assert value == 5.0
    np.testing.assert_array_equal(gradient, [2.0, -4.0])


def test_copy_between_user_and_global():
    x = np.array([1.0, 2.0])
    c = np.array([7.0])
    y = np.array([3.0])
    f = Function(number_of_threads=1)
    for v in (x, c, y):
        f.add_variable(v)
    f.set_constant(c)
    np.testing.assert_array_equal(f.copy_user_to_global(), [1.0, 2.0, 3.0])

    f.copy_global_to_user(np.array([-1.0, -2.0, -3.0]))
    np.testing.assert_array_equal(x, [-1.0, -2.0])
    np.testing.assert_array_equal(y, [-3.0])
    np.testing.assert_array_equal(c, [7.0])


def test_statistics_count_evaluations():
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(1), np.zeros(1))
    f.evaluate()
    f.evaluate()
    f.evaluate_with_gradient(np.zeros(1))
    f.evaluate_with_hessian(np.zeros(1))
    stats = f.statistics
    assert stats.evaluations_without_gradient == 2
    assert stats.evaluations_with_gradient == 2
    assert stats.allocation_time >= 0.0
    assert "Function evaluations with gradient:    2" in f.timing_report()
    f.clear()
    assert f.statistics.evaluations_with_gradient == 0


def test_repr_and_context_manager():
    with Function(number_of_threads=2) as f:
        f.add_term(SumOfSquares(1), np.ones(1))
        assert "terms=1" in repr(f)
        assert f.evaluate() == 1.0

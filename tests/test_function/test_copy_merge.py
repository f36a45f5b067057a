"""Copying functions and adding them together."""

import copy

import numpy as np
import pytest

from termsum import (
    DimensionMismatch,
    Function,
    GreaterThan,
    LinearTerm,
    SquaredDistance,
    SumOfSquares,
    UnsupportedOperation,
)


def build():
    x = np.array([1.0, 2.0])
    y = np.array([-1.0, 0.5])
    c = np.array([3.0])
    f = Function(number_of_threads=2)
    f.add_term(SquaredDistance(2), x, y)
    f.add_term(SumOfSquares(1), c)
    f.add_term(LinearTerm([1.0, 2.0]), y)
    f.set_constant(c)
    f.constant = 0.25
    return f, x, y, c


def test_copy_preserves_layout_and_values():
    f, x, y, c = build()
    g = f.copy()
    assert g.get_number_of_scalars() == f.get_number_of_scalars() == 4
    assert g.get_number_of_constants() == 1
    assert g.constant == 0.25
    assert g.number_of_threads == 2
    for v in (x, y, c):
        assert g.get_variable_global_index(v) == f.get_variable_global_index(v)

    point = np.array([0.5, 0.5, 1.0, -1.0])
    value_f, grad_f, hess_f = f.evaluate_with_hessian(point)
    value_g, grad_g, hess_g = g.evaluate_with_hessian(point)
    assert value_f == value_g
    np.testing.assert_array_equal(grad_f, grad_g)
    np.testing.assert_array_equal(hess_f, hess_g)


def test_copy_is_independent():
    f, x, _, _ = build()
    g = copy.copy(f)
    g.set_constant(x)
    g += 1.0
    assert f.get_number_of_scalars() == 4
    assert f.constant == 0.25
    assert g.get_number_of_scalars() == 2


def test_copy_keeps_change_of_variables():
    x = np.array([2.0])
    transform = GreaterThan(1)
    f = Function(number_of_threads=1)
    f.add_variable(x, change_of_variables=transform)
    f.add_term(SumOfSquares(1), x)
    g = f.copy()
    assert g.variable_registry[0].change_of_variables is transform
    t = f.copy_user_to_global()
    assert g.evaluate_with_gradient(t)[1] == pytest.approx(f.evaluate_with_gradient(t)[1])


def test_merge_adds_values():
    f, x, y, c = build()
    z = np.array([4.0])
    g = Function(number_of_threads=1)
    g.add_term(SumOfSquares(2, scale=2.0), x)
    g.add_term(SumOfSquares(1), z)
    g.constant = 1.0

    expected = f.evaluate() + g.evaluate()
    f += g
    assert f.get_number_of_terms() == 5
    assert f.get_number_of_variables() == 4
    assert f.constant == 1.25
    assert f.evaluate() == pytest.approx(expected)
    assert f.get_variable_global_index(z) == 4
    assert f.get_variable_global_index(c) == 5


def test_merge_keeps_constancy_of_new_variables():
    a = np.array([1.0])
    b = np.array([2.0])
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(1), a)
    g = Function(number_of_threads=1)
    g.add_term(SumOfSquares(1), b)
    g.set_constant(b)
    f += g
    assert f.get_number_of_scalars() == 1
    assert f.get_number_of_constants() == 1
    assert f.evaluate(np.array([3.0])) == 9.0 + 4.0


def test_plus_returns_new_function():
    f, _, _, _ = build()
    h = f + 1.0
    assert h is not f
    assert h.constant == 1.25
    assert f.constant == 0.25
    assert h.evaluate() == pytest.approx(f.evaluate() + 1.0)


def test_merge_rejects_change_of_variables():
    x = np.array([2.0])
    f = Function(number_of_threads=1)
    f.add_variable(x, change_of_variables=GreaterThan(1))
    f.add_term(SumOfSquares(1), x)
    g = Function(number_of_threads=1)
    g.add_term(SumOfSquares(1), np.array([1.0]))
    with pytest.raises(UnsupportedOperation):
        g += f
    with pytest.raises(UnsupportedOperation):
        f += g


def test_merge_dimension_conflict():
    backing = np.zeros(3)
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(3), backing)
    g = Function(number_of_threads=1)
    g.constant = 5.0
    g.add_term(SumOfSquares(1), np.ones(1))
    g.add_term(SumOfSquares(2), backing[:2])
    with pytest.raises(DimensionMismatch):
        f += g

    assert f.constant == 0.0
    assert f.get_number_of_variables() == 1
    assert f.get_number_of_terms() == 1
    assert f.get_number_of_scalars() == 3
    assert f.evaluate(np.ones(3)) == 3.0


def test_merge_with_itself_doubles():
    x = np.array([1.0, 2.0])
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(2), x)
    f.constant = 1.0
    f += f
    assert f.get_number_of_terms() == 2
    assert f.get_number_of_variables() == 1
    assert f.evaluate() == 12.0


def test_add_unsupported_type():
    f = Function(number_of_threads=1)
    with pytest.raises(TypeError):
        f += "three"

"""Dense, sparse and structural Hessian assembly."""

import numpy as np
import pytest
from scipy import sparse

from termsum import (
    Function,
    GreaterThan,
    HessianDisabled,
    Rosenbrock,
    SquaredDistance,
    SumOfSquares,
    UnsupportedOperation,
)
from termsum.diagnostics import approx_hessian
from termsum.function import TripletBuffer


def chain(number_of_threads, n=5):
    variables = [np.zeros(1) for _ in range(n)]
    f = Function(number_of_threads=number_of_threads)
    for a, b in zip(variables[:-1], variables[1:]):
        f.add_term(Rosenbrock(), a, b)
    return f, variables


def test_sparse_equals_dense(rng, number_of_threads):
    f, _ = chain(number_of_threads)
    x = np.zeros(2)
    y = np.zeros(2)
    f.add_term(SquaredDistance(2), x, y)
    f.add_term(SumOfSquares(2, scale=0.5), x)

    point = rng.normal(size=f.get_number_of_scalars())
    value_d, grad_d, dense = f.evaluate_with_hessian(point)
    value_s, grad_s, sp = f.evaluate_with_hessian(point, sparse=True)
    assert isinstance(sp, sparse.csr_matrix)
    assert value_d == value_s
    np.testing.assert_array_equal(grad_d, grad_s)
    np.testing.assert_allclose(sp.toarray(), dense, rtol=0, atol=1e-12)
    f.close()


def test_dense_hessian_matches_finite_differences(rng):
    f, _ = chain(1, n=4)
    point = rng.uniform(-1.0, 1.0, size=4)
    _, _, hessian = f.evaluate_with_hessian(point)
    np.testing.assert_allclose(hessian, approx_hessian(f.evaluate, point), rtol=1e-4, atol=1e-3)


def test_constant_variables_excluded_from_hessian():
    x = np.array([1.0, 2.0])
    y = np.array([0.0, 0.0])
    f = Function(number_of_threads=1)
    f.add_term(SquaredDistance(2), x, y)
    f.set_constant(y)
    _, _, hessian = f.evaluate_with_hessian(x.copy())
    np.testing.assert_array_equal(hessian, 2.0 * np.eye(2))
    _, _, sp = f.evaluate_with_hessian(x.copy(), sparse=True)
    assert sp.shape == (2, 2)
    assert sp.nnz == 2


def test_triplet_count_is_remembered():
    f, _ = chain(1, n=3)
    assert f.number_of_hessian_elements == 0
    f.evaluate_with_hessian(np.zeros(3), sparse=True)
    assert f.number_of_hessian_elements == 8


def test_create_sparse_hessian_structure():
    f, _ = chain(1, n=4)
    f.hessian_enabled = False
    pattern = f.create_sparse_hessian()
    expected = np.array(
        [
            [1, 1, 0, 0],
            [1, 2, 1, 0],
            [0, 1, 2, 1],
            [0, 0, 1, 1],
        ],
        dtype=float,
    )
    np.testing.assert_array_equal(pattern.toarray(), expected)


def test_hessian_disabled():
    f = Function(number_of_threads=1, hessian_enabled=False)
    f.add_term(SumOfSquares(1), np.zeros(1))
    with pytest.raises(HessianDisabled):
        f.evaluate_with_hessian(np.zeros(1))
    value, gradient = f.evaluate_with_gradient(np.array([2.0]))
    assert value == 4.0

    f.hessian_enabled = True
    _, _, hessian = f.evaluate_with_hessian(np.zeros(1))
    np.testing.assert_array_equal(hessian, [[2.0]])


def test_hessian_with_change_of_variables_unsupported():
    x = np.array([1.0])
    f = Function(number_of_threads=1)
    f.add_variable(x, change_of_variables=GreaterThan(1))
    f.add_term(SumOfSquares(1), x)
    with pytest.raises(UnsupportedOperation):
        f.evaluate_with_hessian(np.zeros(1))
    with pytest.raises(UnsupportedOperation):
        f.evaluate_with_hessian(np.zeros(1), sparse=True)
    with pytest.raises(UnsupportedOperation):
        f.create_sparse_hessian()

    f.set_constant(x)
    _, _, hessian = f.evaluate_with_hessian(np.zeros(0))
    assert hessian.shape == (0, 0)
    assert f.create_sparse_hessian().shape == (0, 0)


def test_unbound_transformed_variable_does_not_block_hessian():
    x = np.array([1.0])
    y = np.array([2.0])
    f = Function(number_of_threads=1)
    f.add_variable(x, change_of_variables=GreaterThan(1))
    f.add_term(SumOfSquares(1), y)
    _, _, hessian = f.evaluate_with_hessian(np.array([0.0, 3.0]))
    np.testing.assert_array_equal(hessian, [[0.0, 0.0], [0.0, 2.0]])
    assert f.create_sparse_hessian().nnz == 1


def test_triplet_buffer_grows_and_sums_duplicates():
    buffer = TripletBuffer(capacity=1)
    rows = np.array([0, 1, 0] * 10)
    cols = np.array([0, 1, 0] * 10)
    buffer.append(rows, cols, np.ones(30))
    assert buffer.size == 30
    assert buffer.capacity >= 30
    matrix = buffer.to_csr((2, 2)).toarray()
    np.testing.assert_array_equal(matrix, [[20.0, 0.0], [0.0, 10.0]])

"""Tests for finite-difference helpers."""

import numpy as np
import pytest

from termsum import ArityMismatch, DimensionMismatch, SquaredDistance, SumOfSquares
from termsum.diagnostics import approx_grad, approx_hessian, check_term_derivatives


def quadratic(x):
    return x[0] ** 2 + 3 * x[0] * x[1] + 2 * x[1] ** 2


def test_approx_grad_and_hessian():
    x = np.array([1.0, -1.0])
    np.testing.assert_allclose(approx_grad(quadratic, x), [2 - 3, 3 - 4], atol=1e-6)
    np.testing.assert_allclose(approx_hessian(quadratic, x), [[2, 3], [3, 4]], atol=1e-5)


def test_eps_must_be_positive():
    with pytest.raises(ValueError):
        approx_grad(quadratic, np.zeros(2), eps=0.0)
    with pytest.raises(ValueError):
        approx_hessian(quadratic, np.zeros(2), eps=-1.0)


class WrongGradient(SumOfSquares):
    def evaluate_gradient(self, variables, gradient):
        value = super().evaluate_gradient(variables, gradient)
        gradient[0][0] += 1.0
        return value


def test_check_detects_wrong_gradient():
    good = check_term_derivatives(SumOfSquares(2), np.array([1.0, 2.0]))
    assert good.ok()
    bad = check_term_derivatives(WrongGradient(2), np.array([1.0, 2.0]))
    assert not bad.ok()
    assert bad.gradient_error == pytest.approx(1.0, abs=1e-5)


def test_check_validates_arguments():
    with pytest.raises(ArityMismatch):
        check_term_derivatives(SquaredDistance(2), np.zeros(2))
    with pytest.raises(DimensionMismatch):
        check_term_derivatives(SumOfSquares(2), np.zeros(3))

"""Finite-difference checks for term derivatives.

These helpers are meant for tests and debugging of new term types; they
evaluate the term many times and are far too slow for production use.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List

import numpy as np

from termsum.core.term import Term
from termsum.exceptions import ArityMismatch, DimensionMismatch

Array = np.ndarray
Objective = Callable[[Array], float]


def approx_grad(fun: Objective, x: Array, eps: float = 1e-6) -> Array:
    """Central-difference gradient of ``fun`` at ``x``."""
    if eps <= 0:
        raise ValueError("eps must be positive")
    x = np.asarray(x, dtype=float).copy()
    grad = np.zeros_like(x)
    for i in range(x.size):
        ei = np.zeros_like(x)
        ei[i] = eps
        grad[i] = (fun(x + ei) - fun(x - ei)) / (2.0 * eps)
    return grad


def approx_hessian(fun: Objective, x: Array, eps: float = 1e-4) -> Array:
    """Second-order central-difference Hessian of ``fun`` at ``x``."""
    if eps <= 0:
        raise ValueError("eps must be positive")
    x = np.asarray(x, dtype=float)
    n = x.size
    hess = np.zeros((n, n))
    fx = fun(x)
    for i in range(n):
        ei = np.zeros_like(x)
        ei[i] = eps
        hess[i, i] = (fun(x + ei) - 2 * fx + fun(x - ei)) / eps**2
        for j in range(i + 1, n):
            ej = np.zeros_like(x)
            ej[j] = eps
            value = (
                fun(x + ei + ej) - fun(x + ei - ej) - fun(x - ei + ej) + fun(x - ei - ej)
            ) / (4 * eps**2)
            hess[i, j] = value
            hess[j, i] = value
    return hess


@dataclass
class DerivativeCheck:
    """Largest absolute differences between analytic and numeric derivatives."""

    value: float
    gradient_error: float
    hessian_error: float

    def ok(self, tol: float = 1e-5) -> bool:
        return self.gradient_error <= tol and self.hessian_error <= tol


def check_term_derivatives(
    term: Term, *arguments: Array, eps: float = 1e-6, hessian_eps: float = 1e-4
) -> DerivativeCheck:
    """
    Compare the analytic derivatives of ``term`` with finite differences.

    The term is evaluated at the concatenation of ``arguments``; the
    analytic gradient rows and Hessian blocks are flattened into the same
    layout before comparison.
    """
    dims = term.dimensions()
    if len(arguments) != len(dims):
        raise ArityMismatch(f"Term takes {len(dims)} variables, got {len(arguments)}")
    values = [np.array(a, dtype=float).ravel() for a in arguments]
    for position, (value, dim) in enumerate(zip(values, dims)):
        if value.size != dim:
            raise DimensionMismatch(
                f"Argument {position} has {value.size} scalars, term expects {dim}"
            )
    offsets = np.concatenate([[0], np.cumsum(dims)])

    def split(x: Array) -> List[Array]:
        return [x[offsets[i] : offsets[i + 1]].copy() for i in range(len(dims))]

    def fun(x: Array) -> float:
        return term.evaluate(split(x))

    x = np.concatenate(values)
    gradient = [np.zeros(d) for d in dims]
    hessian = [[np.zeros((di, dj)) for dj in dims] for di in dims]
    value = term.evaluate_hessian(split(x), gradient, hessian)

    analytic_grad = np.concatenate(gradient)
    analytic_hess = np.block(hessian)
    numeric_grad = approx_grad(fun, x, eps=eps)
    numeric_hess = approx_hessian(fun, x, eps=hessian_eps)
    return DerivativeCheck(
        value=float(value),
        gradient_error=float(np.max(np.abs(analytic_grad - numeric_grad))),
        hessian_error=float(np.max(np.abs(analytic_hess - numeric_hess))),
    )


__all__ = ["DerivativeCheck", "approx_grad", "approx_hessian", "check_term_derivatives"]

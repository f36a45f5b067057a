"""Expose a :class:`~termsum.Function` to ``scipy.optimize``."""

from __future__ import annotations

from typing import Any, Tuple

import numpy as np
from scipy import optimize

from termsum.function import Function
from termsum.function.core import HessianMatrix
from termsum.logging import get_logger

logger = get_logger(__name__)

# scipy methods that accept a ``hess`` callable.
HESSIAN_METHODS = frozenset(
    {"newton-cg", "dogleg", "trust-ncg", "trust-krylov", "trust-exact", "trust-constr"}
)
# Methods that need a dense Hessian.
DENSE_HESSIAN_METHODS = frozenset({"dogleg", "trust-exact"})


class FunctionObjective:
    """
    Objective callbacks over the global vector of a function's free scalars.

    Args:
        function: The function to expose.
        sparse: Return Hessians as ``scipy.sparse.csr_matrix``.
    """

    def __init__(self, function: Function, sparse: bool = False) -> None:
        self.function = function
        self.sparse = sparse

    def fun(self, x: np.ndarray) -> float:
        return self.function.evaluate(x)

    def jac(self, x: np.ndarray) -> np.ndarray:
        return self.function.evaluate_with_gradient(x)[1]

    def fun_and_jac(self, x: np.ndarray) -> Tuple[float, np.ndarray]:
        return self.function.evaluate_with_gradient(x)

    def hess(self, x: np.ndarray) -> HessianMatrix:
        return self.function.evaluate_with_hessian(x, sparse=self.sparse)[2]

    def x0(self) -> np.ndarray:
        """Current contents of user storage as a global vector."""
        return self.function.copy_user_to_global()

    def update_user(self, x: np.ndarray) -> None:
        self.function.copy_global_to_user(x)


def minimize(
    function: Function, method: str = "BFGS", sparse: bool = False, **kwargs: Any
) -> optimize.OptimizeResult:
    """
    Minimize ``function`` with :func:`scipy.optimize.minimize`.

    The search starts from the values in user storage and the solution is
    written back to user storage. Second-order methods are given the
    function's Hessian when it is enabled.

    Args:
        function: Function to minimize.
        method: Any method name accepted by ``scipy.optimize.minimize``.
        sparse: Pass sparse Hessians to methods that accept them.
        **kwargs: Forwarded to ``scipy.optimize.minimize``.

    Returns:
        The ``scipy.optimize.OptimizeResult``.
    """
    key = method.lower()
    objective = FunctionObjective(function, sparse=sparse and key not in DENSE_HESSIAN_METHODS)
    if key in HESSIAN_METHODS and function.hessian_enabled:
        kwargs.setdefault("hess", objective.hess)

    result = optimize.minimize(
        objective.fun_and_jac, objective.x0(), jac=True, method=method, **kwargs
    )
    objective.update_user(result.x)
    logger.info(
        "%s finished after %d iterations: f = %.6g (%s)",
        method,
        result.get("nit", -1),
        result.fun,
        result.message,
    )
    return result


__all__ = ["DENSE_HESSIAN_METHODS", "FunctionObjective", "HESSIAN_METHODS", "minimize"]

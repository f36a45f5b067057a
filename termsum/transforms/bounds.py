"""Changes of variables that keep a variable inside simple bounds."""

from __future__ import annotations

import numpy as np
from scipy.special import expit, logit

from termsum.core.change_of_variables import ChangeOfVariables


class GreaterThan(ChangeOfVariables):
    """
    ``x = bound + exp(t)``, so every component of ``x`` stays above ``bound``.

    Args:
        dimension: Number of scalars in the variable.
        bound: Strict lower bound shared by all components.
    """

    def __init__(self, dimension: int, bound: float = 0.0) -> None:
        if dimension < 1:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.dimension = int(dimension)
        self.bound = float(bound)

    def x_dimension(self) -> int:
        return self.dimension

    def t_dimension(self) -> int:
        return self.dimension

    def t_to_x(self, x: np.ndarray, t: np.ndarray) -> None:
        x[:] = self.bound + np.exp(t)

    def x_to_t(self, t: np.ndarray, x: np.ndarray) -> None:
        if np.any(x <= self.bound):
            raise ValueError(f"Values must be greater than {self.bound}")
        t[:] = np.log(x - self.bound)

    def update_gradient(
        self, t_gradient: np.ndarray, t: np.ndarray, x_gradient: np.ndarray
    ) -> None:
        t_gradient += np.exp(t) * x_gradient

    def __repr__(self) -> str:
        return f"GreaterThan(dimension={self.dimension}, bound={self.bound})"


class Box(ChangeOfVariables):
    """
    ``x = lower + (upper - lower) * expit(t)``, a smooth map onto ``(lower, upper)``.
    """

    def __init__(self, dimension: int, lower: float, upper: float) -> None:
        if dimension < 1:
            raise ValueError(f"dimension must be positive, got {dimension}")
        if not lower < upper:
            raise ValueError(f"lower must be below upper, got [{lower}, {upper}]")
        self.dimension = int(dimension)
        self.lower = float(lower)
        self.upper = float(upper)

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def x_dimension(self) -> int:
        return self.dimension

    def t_dimension(self) -> int:
        return self.dimension

    def t_to_x(self, x: np.ndarray, t: np.ndarray) -> None:
        x[:] = self.lower + self.width * expit(t)

    def x_to_t(self, t: np.ndarray, x: np.ndarray) -> None:
        if np.any(x <= self.lower) or np.any(x >= self.upper):
            raise ValueError(f"Values must lie strictly inside ({self.lower}, {self.upper})")
        t[:] = logit((x - self.lower) / self.width)

    def update_gradient(
        self, t_gradient: np.ndarray, t: np.ndarray, x_gradient: np.ndarray
    ) -> None:
        s = expit(t)
        t_gradient += self.width * s * (1.0 - s) * x_gradient

    def __repr__(self) -> str:
        return f"Box(dimension={self.dimension}, lower={self.lower}, upper={self.upper})"


__all__ = ["Box", "GreaterThan"]

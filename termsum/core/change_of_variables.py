"""Reparameterization between the term's space and the solver's space."""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np


class ChangeOfVariables(ABC):
    """
    Bijection ``x = g(t)`` between term space ("x") and solver space ("t").

    Terms always see ``x``; the optimizer manipulates ``t``. A variable
    registered with a change of variables has ``x_dimension()`` user scalars
    and occupies ``t_dimension()`` entries of the global coordinate vector.
    """

    @abstractmethod
    def x_dimension(self) -> int:
        """Dimension seen by terms."""

    @abstractmethod
    def t_dimension(self) -> int:
        """Dimension seen by the solver."""

    @abstractmethod
    def t_to_x(self, x: np.ndarray, t: np.ndarray) -> None:
        """Write ``g(t)`` into ``x``."""

    @abstractmethod
    def x_to_t(self, t: np.ndarray, x: np.ndarray) -> None:
        """Write ``g^{-1}(x)`` into ``t``."""

    @abstractmethod
    def update_gradient(
        self, t_gradient: np.ndarray, t: np.ndarray, x_gradient: np.ndarray
    ) -> None:
        """Add ``J_g(t)^T x_gradient`` to ``t_gradient`` in place."""


__all__ = ["ChangeOfVariables"]

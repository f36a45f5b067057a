"""Concrete terms, all registered with the default term factory."""

from .autodiff import AutoDiffTerm, functor_path, import_functor
from .builtin import LinearTerm, Rosenbrock, SquaredDistance, SumOfSquares

__all__ = [
    "AutoDiffTerm",
    "LinearTerm",
    "Rosenbrock",
    "SquaredDistance",
    "SumOfSquares",
    "functor_path",
    "import_functor",
]

"""Closed-form terms with analytic derivatives."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from termsum.core.factory import register_term
from termsum.core.term import Arguments, GradientRows, HessianBlocks, Term
from termsum.interval import Interval, interval_sum
from termsum.io.stream import TokenReader, TokenWriter


def _check_dimension(dimension: int) -> int:
    dimension = int(dimension)
    if dimension < 1:
        raise ValueError(f"dimension must be positive, got {dimension}")
    return dimension


def _set_identity(block: np.ndarray, value: float) -> None:
    block.fill(0.0)
    np.fill_diagonal(block, value)


@register_term
class SumOfSquares(Term):
    """``scale * sum_i x_i**2`` over one variable."""

    type_name = "SumOfSquares"

    def __init__(self, dimension: int, scale: float = 1.0) -> None:
        self.dimension = _check_dimension(dimension)
        self.scale = float(scale)

    def number_of_variables(self) -> int:
        return 1

    def variable_dimension(self, index: int) -> int:
        return self.dimension

    def evaluate(self, variables: Arguments) -> float:
        x = variables[0]
        return self.scale * float(np.dot(x, x))

    def evaluate_gradient(self, variables: Arguments, gradient: GradientRows) -> float:
        x = variables[0]
        gradient[0][:] = 2.0 * self.scale * x
        return self.scale * float(np.dot(x, x))

    def evaluate_hessian(
        self, variables: Arguments, gradient: GradientRows, hessian: HessianBlocks
    ) -> float:
        _set_identity(hessian[0][0], 2.0 * self.scale)
        return self.evaluate_gradient(variables, gradient)

    def evaluate_interval(self, variables: Sequence[Sequence[Interval]]) -> Interval:
        return self.scale * interval_sum(xi.square() for xi in variables[0])

    def write(self, writer: TokenWriter) -> None:
        writer.write_line(self.dimension, self.scale)

    @classmethod
    def read(cls, reader: TokenReader) -> "SumOfSquares":
        dimension = reader.read_int("SumOfSquares dimension")
        scale = reader.read_float("SumOfSquares scale")
        return cls(dimension, scale)


@register_term
class LinearTerm(Term):
    """``c . x`` for a fixed coefficient vector ``c``."""

    type_name = "LinearTerm"

    def __init__(self, coefficients: Sequence[float]) -> None:
        self.coefficients = np.array(coefficients, dtype=float).ravel()
        _check_dimension(self.coefficients.size)

    def number_of_variables(self) -> int:
        return 1

    def variable_dimension(self, index: int) -> int:
        return self.coefficients.size

    def evaluate(self, variables: Arguments) -> float:
        return float(np.dot(self.coefficients, variables[0]))

    def evaluate_gradient(self, variables: Arguments, gradient: GradientRows) -> float:
        gradient[0][:] = self.coefficients
        return self.evaluate(variables)

    def evaluate_hessian(
        self, variables: Arguments, gradient: GradientRows, hessian: HessianBlocks
    ) -> float:
        hessian[0][0].fill(0.0)
        return self.evaluate_gradient(variables, gradient)

    def evaluate_interval(self, variables: Sequence[Sequence[Interval]]) -> Interval:
        return interval_sum(c * xi for c, xi in zip(self.coefficients, variables[0]))

    def write(self, writer: TokenWriter) -> None:
        writer.write_line(self.coefficients.size)
        writer.write_values(self.coefficients)

    @classmethod
    def read(cls, reader: TokenReader) -> "LinearTerm":
        size = reader.read_int("LinearTerm size")
        return cls(reader.read_floats(size, "LinearTerm coefficient"))


@register_term
class SquaredDistance(Term):
    """``sum_i (x_i - y_i)**2`` between two variables of equal dimension."""

    type_name = "SquaredDistance"

    def __init__(self, dimension: int) -> None:
        self.dimension = _check_dimension(dimension)

    def number_of_variables(self) -> int:
        return 2

    def variable_dimension(self, index: int) -> int:
        return self.dimension

    def evaluate(self, variables: Arguments) -> float:
        diff = variables[0] - variables[1]
        return float(np.dot(diff, diff))

    def evaluate_gradient(self, variables: Arguments, gradient: GradientRows) -> float:
        diff = variables[0] - variables[1]
        gradient[0][:] = 2.0 * diff
        gradient[1][:] = -2.0 * diff
        return float(np.dot(diff, diff))

    def evaluate_hessian(
        self, variables: Arguments, gradient: GradientRows, hessian: HessianBlocks
    ) -> float:
        _set_identity(hessian[0][0], 2.0)
        _set_identity(hessian[0][1], -2.0)
        _set_identity(hessian[1][0], -2.0)
        _set_identity(hessian[1][1], 2.0)
        return self.evaluate_gradient(variables, gradient)

    def evaluate_interval(self, variables: Sequence[Sequence[Interval]]) -> Interval:
        return interval_sum((xi - yi).square() for xi, yi in zip(variables[0], variables[1]))

    def write(self, writer: TokenWriter) -> None:
        writer.write_line(self.dimension)

    @classmethod
    def read(cls, reader: TokenReader) -> "SquaredDistance":
        return cls(reader.read_int("SquaredDistance dimension"))


@register_term
class Rosenbrock(Term):
    """``(1 - x)**2 + 100 (y - x**2)**2`` over two scalar variables."""

    type_name = "Rosenbrock"

    def number_of_variables(self) -> int:
        return 2

    def variable_dimension(self, index: int) -> int:
        return 1

    def evaluate(self, variables: Arguments) -> float:
        x = float(variables[0][0])
        y = float(variables[1][0])
        return (1.0 - x) ** 2 + 100.0 * (y - x * x) ** 2

    def evaluate_gradient(self, variables: Arguments, gradient: GradientRows) -> float:
        x = float(variables[0][0])
        y = float(variables[1][0])
        gradient[0][0] = -2.0 * (1.0 - x) - 400.0 * x * (y - x * x)
        gradient[1][0] = 200.0 * (y - x * x)
        return (1.0 - x) ** 2 + 100.0 * (y - x * x) ** 2

    def evaluate_hessian(
        self, variables: Arguments, gradient: GradientRows, hessian: HessianBlocks
    ) -> float:
        x = float(variables[0][0])
        y = float(variables[1][0])
        hessian[0][0][0, 0] = 2.0 - 400.0 * y + 1200.0 * x * x
        hessian[0][1][0, 0] = -400.0 * x
        hessian[1][0][0, 0] = -400.0 * x
        hessian[1][1][0, 0] = 200.0
        return self.evaluate_gradient(variables, gradient)

    def evaluate_interval(self, variables: Sequence[Sequence[Interval]]) -> Interval:
        x = variables[0][0]
        y = variables[1][0]
        return (1.0 - x).square() + 100.0 * (y - x.square()).square()

    def write(self, writer: TokenWriter) -> None:
        pass

    @classmethod
    def read(cls, reader: TokenReader) -> "Rosenbrock":
        return cls()


__all__ = ["LinearTerm", "Rosenbrock", "SquaredDistance", "SumOfSquares"]

"""
Terms whose derivatives are computed by torch automatic differentiation.

The user writes only the value of the term as a Python callable ("functor")
taking one argument per variable. For derivatives the functor receives
one-dimensional ``torch.float64`` tensors and must return a scalar tensor;
gradients come from :func:`torch.autograd.grad` and Hessian blocks from
:func:`torch.autograd.functional.hessian`.

Functors written with indexing and arithmetic only, e.g.::

    def rosenbrock(x, y):
        return (1 - x[0]) ** 2 + 100 * (y[0] - x[0] ** 2) ** 2

also work for interval evaluation, where they receive lists of
:class:`~termsum.interval.Interval` instead of tensors.
"""

from __future__ import annotations

import importlib
from typing import Any, Callable, List, Sequence

import numpy as np
import torch

from termsum.core.factory import register_term
from termsum.core.term import Arguments, GradientRows, HessianBlocks, Term
from termsum.exceptions import FormatMismatch, UnsupportedOperation
from termsum.interval import Interval
from termsum.io.stream import TokenReader, TokenWriter

Functor = Callable[..., Any]


def functor_path(functor: Functor) -> str:
    """
    Return ``"module:qualname"`` for a module-level callable.

    Raises:
        UnsupportedOperation: If ``functor`` cannot be re-imported by name,
            e.g. lambdas and functions defined inside other functions.
    """
    module = getattr(functor, "__module__", None)
    qualname = getattr(functor, "__qualname__", None)
    if module is None or qualname is None or "<" in qualname:
        raise UnsupportedOperation(
            f"Functor {functor!r} is not importable by name and cannot be serialized"
        )
    return f"{module}:{qualname}"


def import_functor(path: str) -> Functor:
    """Inverse of :func:`functor_path`."""
    module_name, sep, qualname = path.partition(":")
    if not sep or not module_name or not qualname:
        raise FormatMismatch(f"Invalid functor path {path!r}")
    try:
        target: Any = importlib.import_module(module_name)
        for attribute in qualname.split("."):
            target = getattr(target, attribute)
    except (ImportError, AttributeError) as exc:
        raise FormatMismatch(f"Cannot import functor {path!r}: {exc}") from exc
    if not callable(target):
        raise FormatMismatch(f"Functor {path!r} is not callable")
    return target


def _as_scalar(value: Any) -> torch.Tensor:
    value = torch.as_tensor(value, dtype=torch.float64)
    if value.numel() != 1:
        raise ValueError(f"Functor must return a scalar, got shape {tuple(value.shape)}")
    return value.reshape(())


@register_term
class AutoDiffTerm(Term):
    """
    Term defined by a functor and the dimension of each of its variables.

    Args:
        functor: Callable ``functor(x0, x1, ...)`` returning the term value.
        *dimensions: Dimension of each variable, in argument order.

    Example:
        >>> term = AutoDiffTerm(rosenbrock, 1, 1)
        >>> function.add_term(term, x, y)
    """

    type_name = "AutoDiffTerm"

    def __init__(self, functor: Functor, *dimensions: int) -> None:
        if not callable(functor):
            raise TypeError(f"functor must be callable, got {type(functor).__name__}")
        if not dimensions:
            raise ValueError("AutoDiffTerm needs at least one variable")
        if any(int(d) < 1 for d in dimensions):
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self.functor = functor
        self._dimensions = tuple(int(d) for d in dimensions)

    def number_of_variables(self) -> int:
        return len(self._dimensions)

    def variable_dimension(self, index: int) -> int:
        return self._dimensions[index]

    def _inputs(self, variables: Arguments, requires_grad: bool) -> List[torch.Tensor]:
        return [
            torch.tensor(np.asarray(v), dtype=torch.float64, requires_grad=requires_grad)
            for v in variables
        ]

    def evaluate(self, variables: Arguments) -> float:
        with torch.no_grad():
            value = _as_scalar(self.functor(*self._inputs(variables, requires_grad=False)))
        return float(value)

    def _value_and_gradient(self, variables: Arguments, gradient: GradientRows) -> float:
        inputs = self._inputs(variables, requires_grad=True)
        value = _as_scalar(self.functor(*inputs))
        if value.requires_grad:
            grads = torch.autograd.grad(value, inputs, allow_unused=True)
        else:
            grads = (None,) * len(inputs)
        for row, grad in zip(gradient, grads):
            if grad is None:
                row.fill(0.0)
            else:
                row[:] = grad.detach().numpy()
        return float(value.detach())

    def evaluate_gradient(self, variables: Arguments, gradient: GradientRows) -> float:
        return self._value_and_gradient(variables, gradient)

    def evaluate_hessian(
        self, variables: Arguments, gradient: GradientRows, hessian: HessianBlocks
    ) -> float:
        value = self._value_and_gradient(variables, gradient)
        inputs = tuple(self._inputs(variables, requires_grad=False))

        def scalar_functor(*args: torch.Tensor) -> torch.Tensor:
            return _as_scalar(self.functor(*args))

        blocks = torch.autograd.functional.hessian(scalar_functor, inputs)
        for i, row in enumerate(blocks):
            for j, block in enumerate(row):
                hessian[i][j][:, :] = block.detach().numpy().reshape(hessian[i][j].shape)
        return value

    def evaluate_interval(self, variables: Sequence[Sequence[Interval]]) -> Interval:
        result = self.functor(*[list(v) for v in variables])
        if isinstance(result, Interval):
            return result
        return Interval.point(float(result))

    def write(self, writer: TokenWriter) -> None:
        writer.write_line(functor_path(self.functor))
        writer.write_line(len(self._dimensions), *self._dimensions)

    @classmethod
    def read(cls, reader: TokenReader) -> "AutoDiffTerm":
        functor = import_functor(reader.read_token("AutoDiffTerm functor"))
        count = reader.read_int("AutoDiffTerm arity")
        dimensions = reader.read_ints(count, "AutoDiffTerm dimension")
        return cls(functor, *dimensions)

    def __repr__(self) -> str:
        name = getattr(self.functor, "__qualname__", repr(self.functor))
        return f"AutoDiffTerm({name}, dimensions={self._dimensions})"


__all__ = ["AutoDiffTerm", "functor_path", "import_functor"]

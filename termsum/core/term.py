"""The polymorphic term contract consumed by :class:`termsum.Function`."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar, Optional, Sequence

import numpy as np

from termsum.exceptions import UnsupportedOperation
from termsum.interval import Interval

if TYPE_CHECKING:
    from termsum.io.stream import TokenReader, TokenWriter

Arguments = Sequence[np.ndarray]
GradientRows = Sequence[np.ndarray]
HessianBlocks = Sequence[Sequence[np.ndarray]]


class Term(ABC):
    """
    One summand of an objective function.

    A term depends on a fixed tuple of variables. The function hands it one
    one-dimensional ``float64`` array per variable; the term returns its value
    and, on request, writes derivatives into preallocated outputs:

    - ``gradient[i]`` has shape ``(variable_dimension(i),)``,
    - ``hessian[i][j]`` has shape ``(variable_dimension(i), variable_dimension(j))``.

    Implementations must overwrite every entry of the outputs they are given;
    the buffers are reused between calls and are not cleared by the caller.
    Terms are shared between functions and evaluated concurrently, so they
    must not mutate their own state while evaluating.

    Subclasses that support serialization override :meth:`write` and
    :meth:`read` and register themselves with a
    :class:`~termsum.core.factory.TermFactory` under :meth:`tag`.
    """

    type_name: ClassVar[Optional[str]] = None

    @classmethod
    def tag(cls) -> str:
        """Stable name identifying the term type in serialized streams."""
        return cls.type_name or cls.__name__

    @abstractmethod
    def number_of_variables(self) -> int:
        """Number of variables the term depends on."""

    @abstractmethod
    def variable_dimension(self, index: int) -> int:
        """Number of scalars in the variable at position ``index``."""

    def dimensions(self) -> tuple[int, ...]:
        return tuple(self.variable_dimension(i) for i in range(self.number_of_variables()))

    @abstractmethod
    def evaluate(self, variables: Arguments) -> float:
        """Return the value of the term."""

    @abstractmethod
    def evaluate_gradient(self, variables: Arguments, gradient: GradientRows) -> float:
        """Return the value and write the gradient rows."""

    @abstractmethod
    def evaluate_hessian(
        self,
        variables: Arguments,
        gradient: GradientRows,
        hessian: HessianBlocks,
    ) -> float:
        """Return the value and write the gradient rows and Hessian blocks."""

    def evaluate_interval(self, variables: Sequence[Sequence[Interval]]) -> Interval:
        """Return an interval enclosing the term over a box of arguments."""
        raise UnsupportedOperation(
            f"{type(self).__name__} does not support interval evaluation"
        )

    def write(self, writer: "TokenWriter") -> None:
        """Write the parameters needed by :meth:`read` to ``writer``."""
        raise UnsupportedOperation(f"{type(self).__name__} does not support serialization")

    @classmethod
    def read(cls, reader: "TokenReader") -> "Term":
        """Reconstruct a term from the tokens written by :meth:`write`."""
        raise UnsupportedOperation(f"{cls.__name__} does not support serialization")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dimensions={self.dimensions()})"


__all__ = ["Arguments", "GradientRows", "HessianBlocks", "Term"]

"""Term registry: terms bound to ordered tuples of variables."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

import numpy as np

from termsum.core.term import Term
from termsum.exceptions import ArityMismatch, DimensionMismatch, NotFound

from .variables import VariableHandle, VariableLike, VariableRegistry


@dataclass
class TermBinding:
    """One term attached to registry entries, plus its evaluation scratch.

    ``arguments`` and ``hessian`` are filled in by local-storage allocation:
    ``arguments[i]`` is the scratch buffer of the i-th bound variable and
    ``hessian[i][j]`` the block the term writes its second derivatives to.
    """

    term: Term
    variable_indices: tuple[int, ...]
    dimensions: tuple[int, ...]
    arguments: List[np.ndarray] = field(default_factory=list, repr=False)
    hessian: List[List[np.ndarray]] = field(default_factory=list, repr=False)

    @property
    def arity(self) -> int:
        return len(self.variable_indices)


class TermRegistry:
    """Ordered list of term bindings."""

    def __init__(self) -> None:
        self.bindings: List[TermBinding] = []

    def __len__(self) -> int:
        return len(self.bindings)

    def __iter__(self) -> Iterator[TermBinding]:
        return iter(self.bindings)

    def __getitem__(self, index: int) -> TermBinding:
        return self.bindings[index]

    def bind(
        self,
        term: Term,
        variables: Sequence[VariableLike],
        registry: VariableRegistry,
    ) -> TermBinding:
        """
        Attach ``term`` to ``variables``, registering unseen ones.

        The call is all-or-nothing: when it fails, variables registered on the
        way are removed again and no binding is added.

        Raises:
            ArityMismatch: If the number of variables differs from the term's.
            DimensionMismatch: If a known variable has another dimension than
                the term declares for its position.
            NotFound: If a handle refers to no registered variable.
        """
        if not isinstance(term, Term):
            raise TypeError(f"Expected a Term, got {type(term).__name__}")
        if len(variables) != term.number_of_variables():
            raise ArityMismatch(
                f"Incorrect number of arguments: term takes {term.number_of_variables()}, "
                f"got {len(variables)}."
            )
        dimensions = term.dimensions()

        checkpoint = len(registry)
        indices: List[int] = []
        try:
            for position, (variable, dimension) in enumerate(zip(variables, dimensions)):
                index = registry.find(variable)
                if index is None:
                    if isinstance(variable, VariableHandle):
                        raise NotFound("Variable not found.")
                    index = registry.resolve(registry.register(variable, dimension))
                elif registry[index].user_dimension != dimension:
                    raise DimensionMismatch(
                        f"Variable dimension does not match term at argument {position}: "
                        f"{registry[index].user_dimension} != {dimension}."
                    )
                indices.append(index)
        except Exception:
            registry.truncate(checkpoint)
            raise

        binding = TermBinding(term=term, variable_indices=tuple(indices), dimensions=dimensions)
        self.bindings.append(binding)
        return binding

    def max_arity(self) -> int:
        return max((binding.arity for binding in self.bindings), default=0)

    def truncate(self, length: int) -> None:
        """Forget every binding added after the first ``length``."""
        del self.bindings[length:]

    def clear(self) -> None:
        self.bindings = []


__all__ = ["TermBinding", "TermRegistry"]

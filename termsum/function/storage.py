"""Per-worker scratch and per-binding buffers derived from the registries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np

from termsum.logging import get_logger

from .hessian import BlockPlacement, block_placements
from .terms import TermRegistry
from .variables import VariableRegistry

logger = get_logger(__name__)


class WorkerScratch:
    """Buffers owned by exactly one worker during an evaluation."""

    def __init__(self, total_scalars: int, max_arity: int, max_dimension: int) -> None:
        self.gradient = np.zeros(total_scalars)
        self.rows = [np.zeros(max_dimension) for _ in range(max_arity)]
        self._row_views: Dict[tuple[int, ...], List[np.ndarray]] = {}

    def gradient_rows(self, dimensions: tuple[int, ...]) -> List[np.ndarray]:
        """Views of the scratch rows sized for a term with ``dimensions``."""
        views = self._row_views.get(dimensions)
        if views is None:
            views = [self.rows[i][:dim] for i, dim in enumerate(dimensions)]
            self._row_views[dimensions] = views
        return views


@dataclass
class LocalStorage:
    """
    Scratch derived from the variable and term registries.

    Valid only until the registries change; the owning function drops it on
    every mutation and allocates a new one on the next evaluation.
    """

    workers: List[WorkerScratch]
    placements: List[List[BlockPlacement]]
    has_free_change_of_variables: bool

    @classmethod
    def allocate(
        cls,
        variables: VariableRegistry,
        terms: TermRegistry,
        number_of_workers: int,
        hessian_enabled: bool,
    ) -> "LocalStorage":
        max_arity = max(terms.max_arity(), 1)
        max_dimension = max((added.user_dimension for added in variables), default=1)
        total_scalars = variables.number_of_scalars + variables.number_of_constants

        workers = [
            WorkerScratch(total_scalars, max_arity, max_dimension)
            for _ in range(number_of_workers)
        ]

        placements: List[List[BlockPlacement]] = []
        has_free_change_of_variables = False
        for binding in terms:
            bound = [variables[index] for index in binding.variable_indices]
            binding.arguments = [added.scratch for added in bound]
            if hessian_enabled:
                binding.hessian = [
                    [np.zeros((rows, cols)) for cols in binding.dimensions]
                    for rows in binding.dimensions
                ]
            else:
                binding.hessian = []
            placements.append(block_placements(binding, variables.variables))
            has_free_change_of_variables = has_free_change_of_variables or any(
                not added.is_constant and added.change_of_variables is not None
                for added in bound
            )

        logger.debug(
            "Allocated local storage: %d workers, %d terms, max arity %d, max dimension %d",
            number_of_workers,
            len(terms),
            max_arity,
            max_dimension,
        )
        return cls(
            workers=workers,
            placements=placements,
            has_free_change_of_variables=has_free_change_of_variables,
        )

    def zero_gradients(self) -> None:
        for worker in self.workers:
            worker.gradient.fill(0.0)

    def sum_gradients(self, number_of_scalars: int) -> np.ndarray:
        """Sum the free-scalar part of every worker's accumulator."""
        gradient = np.zeros(number_of_scalars)
        for worker in self.workers:
            gradient += worker.gradient[:number_of_scalars]
        return gradient


def partition(count: int, parts: int) -> Sequence[range]:
    """Split ``range(count)`` into at most ``parts`` contiguous, even chunks."""
    parts = max(min(parts, count), 1)
    base, extra = divmod(count, parts)
    chunks = []
    start = 0
    for part in range(parts):
        stop = start + base + (1 if part < extra else 0)
        chunks.append(range(start, stop))
        start = stop
    return chunks


__all__ = ["LocalStorage", "WorkerScratch", "partition"]

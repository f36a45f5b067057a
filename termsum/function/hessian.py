"""Placement of per-term Hessian blocks in the global Hessian."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np
from scipy import sparse

from .terms import TermBinding
from .variables import AddedVariable


@dataclass(frozen=True)
class BlockPlacement:
    """Where block ``hessian[first][second]`` of a binding lands globally."""

    first: int
    second: int
    rows: slice
    cols: slice
    row_indices: np.ndarray = field(repr=False)
    col_indices: np.ndarray = field(repr=False)


def block_placements(
    binding: TermBinding, variables: Sequence[AddedVariable]
) -> List[BlockPlacement]:
    """Placements of every block between two free arguments of ``binding``."""
    placements: List[BlockPlacement] = []
    for first, first_index in enumerate(binding.variable_indices):
        row_var = variables[first_index]
        if row_var.is_constant:
            continue
        rows = slice(row_var.global_index, row_var.global_index + row_var.user_dimension)
        row_range = np.arange(rows.start, rows.stop, dtype=np.int64)
        for second, second_index in enumerate(binding.variable_indices):
            col_var = variables[second_index]
            if col_var.is_constant:
                continue
            cols = slice(col_var.global_index, col_var.global_index + col_var.user_dimension)
            col_range = np.arange(cols.start, cols.stop, dtype=np.int64)
            placements.append(
                BlockPlacement(
                    first=first,
                    second=second,
                    rows=rows,
                    cols=cols,
                    row_indices=np.repeat(row_range, col_range.size),
                    col_indices=np.tile(col_range, row_range.size),
                )
            )
    return placements


def add_blocks_dense(
    hessian: np.ndarray, binding: TermBinding, placements: Sequence[BlockPlacement]
) -> None:
    for placement in placements:
        hessian[placement.rows, placement.cols] += binding.hessian[placement.first][placement.second]


class TripletBuffer:
    """Growable ``(row, col, value)`` arrays for sparse assembly.

    The initial capacity is a hint, usually the number of triplets produced by
    the previous assembly; the buffer doubles when it runs out.
    """

    def __init__(self, capacity: int = 0) -> None:
        capacity = max(int(capacity), 16)
        self.rows = np.empty(capacity, dtype=np.int64)
        self.cols = np.empty(capacity, dtype=np.int64)
        self.values = np.empty(capacity, dtype=float)
        self.size = 0

    @property
    def capacity(self) -> int:
        return self.rows.size

    def _reserve(self, needed: int) -> None:
        if needed <= self.capacity:
            return
        capacity = max(needed, 2 * self.capacity)
        self.rows = np.resize(self.rows, capacity)
        self.cols = np.resize(self.cols, capacity)
        self.values = np.resize(self.values, capacity)

    def append(self, rows: np.ndarray, cols: np.ndarray, values: np.ndarray | float) -> None:
        count = rows.size
        end = self.size + count
        self._reserve(end)
        self.rows[self.size:end] = rows
        self.cols[self.size:end] = cols
        self.values[self.size:end] = values
        self.size = end

    def append_placement(self, placement: BlockPlacement, block: np.ndarray) -> None:
        self.append(placement.row_indices, placement.col_indices, block.ravel())

    def to_csr(self, shape: tuple[int, int]) -> sparse.csr_matrix:
        """Coalesce into CSR format; entries at the same coordinate are summed."""
        coo = sparse.coo_matrix(
            (
                self.values[: self.size],
                (self.rows[: self.size], self.cols[: self.size]),
            ),
            shape=shape,
        )
        return coo.tocsr()


__all__ = ["BlockPlacement", "TripletBuffer", "add_blocks_dense", "block_placements"]

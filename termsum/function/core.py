"""The :class:`Function`: a sum of terms over caller-owned variables."""

from __future__ import annotations

from dataclasses import dataclass, fields
from numbers import Real
from time import perf_counter
from typing import TYPE_CHECKING, List, Optional, Sequence, TextIO, Tuple, Union

import numpy as np
from scipy import sparse as sp

from termsum.config import EngineConfig
from termsum.core.change_of_variables import ChangeOfVariables
from termsum.core.term import Term
from termsum.exceptions import DimensionMismatch, HessianDisabled, UnsupportedOperation
from termsum.interval import Interval
from termsum.logging import get_logger

from .hessian import TripletBuffer, add_blocks_dense
from .parallel import WorkerPool
from .storage import LocalStorage
from .terms import TermRegistry
from .variables import VariableHandle, VariableLike, VariableRegistry

if TYPE_CHECKING:
    from termsum.core.factory import TermFactory

logger = get_logger(__name__)

HessianMatrix = Union[np.ndarray, sp.csr_matrix]


@dataclass
class EvaluationStatistics:
    """Evaluation counters and cumulative wall-clock timings in seconds."""

    evaluations_without_gradient: int = 0
    evaluations_with_gradient: int = 0
    allocation_time: float = 0.0
    evaluate_time: float = 0.0
    evaluate_with_hessian_time: float = 0.0
    write_gradient_hessian_time: float = 0.0
    copy_time: float = 0.0

    def reset(self) -> None:
        for item in fields(self):
            setattr(self, item.name, item.default)


class Function:
    """
    Objective ``f(x) = constant + sum_k term_k(x_k)`` over caller-owned storage.

    Variables are one-dimensional ``float64`` numpy arrays owned by the caller
    and identified by the address of their first scalar. Terms are attached
    to ordered tuples of variables with :meth:`add_term`. Free variables are
    laid out contiguously in a global coordinate vector (registration order);
    constant variables are excluded from it and read from user storage.

    Example:
        >>> from termsum.terms import SumOfSquares
        >>> x = np.array([3.0, 4.0])
        >>> f = Function(number_of_threads=1)
        >>> f.add_term(SumOfSquares(2), x)
        >>> f.evaluate()
        25.0

    Args:
        config: Engine configuration. Defaults to :meth:`EngineConfig.from_env`.
        number_of_threads: Overrides ``config.number_of_threads``.
        hessian_enabled: Overrides ``config.hessian_enabled``.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        number_of_threads: Optional[int] = None,
        hessian_enabled: Optional[bool] = None,
    ) -> None:
        config = (config if config is not None else EngineConfig.from_env()).with_overrides(
            number_of_threads=number_of_threads, hessian_enabled=hessian_enabled
        )
        self._variables = VariableRegistry()
        self._terms = TermRegistry()
        self._number_of_threads = config.resolved_threads
        self._hessian_enabled = config.hessian_enabled
        self._pool = WorkerPool(self._number_of_threads)
        self._storage: Optional[LocalStorage] = None
        self.constant = 0.0
        self.number_of_hessian_elements = 0
        self.statistics = EvaluationStatistics()

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------
    def _invalidate(self) -> None:
        self._storage = None

    def add_variable(
        self,
        array: VariableLike,
        dimension: Optional[int] = None,
        change_of_variables: Optional[ChangeOfVariables] = None,
    ) -> VariableHandle:
        """
        Register caller-owned storage as a variable.

        Adding storage that is already registered is a no-op apart from
        replacing its change of variables.

        Returns:
            A handle that can be used wherever a variable is accepted.
        """
        handle = self._variables.register(array, dimension, change_of_variables)
        self._invalidate()
        return handle

    def add_term(self, term: Term, *variables: VariableLike) -> None:
        """
        Attach ``term`` to ``variables``, registering unseen ones.

        The variables may also be passed as a single list or tuple. On failure
        the function is left exactly as it was before the call.
        """
        if len(variables) == 1 and isinstance(variables[0], (list, tuple)):
            variables = tuple(variables[0])
        self._terms.bind(term, variables, self._variables)
        self._invalidate()

    def set_constant(self, variable: VariableLike, is_constant: bool = True) -> None:
        """Hold a variable fixed (or release it) and re-index the free scalars."""
        self._variables.set_constant(variable, is_constant)
        self._invalidate()

    def get_variable_global_index(self, variable: VariableLike) -> int:
        return self._variables[self._variables.resolve(variable)].global_index

    def get_number_of_variables(self) -> int:
        return len(self._variables)

    def get_number_of_terms(self) -> int:
        return len(self._terms)

    def get_number_of_scalars(self) -> int:
        """Number of free scalars, the length of the global vector."""
        return self._variables.number_of_scalars

    def get_number_of_constants(self) -> int:
        return self._variables.number_of_constants

    @property
    def variable_registry(self) -> VariableRegistry:
        return self._variables

    @property
    def term_registry(self) -> TermRegistry:
        return self._terms

    @property
    def number_of_threads(self) -> int:
        return self._number_of_threads

    def set_number_of_threads(self, number_of_threads: int) -> None:
        if number_of_threads <= 0:
            raise ValueError(f"number_of_threads must be positive, got {number_of_threads}")
        if number_of_threads == self._number_of_threads:
            return
        self._pool.close()
        self._number_of_threads = number_of_threads
        self._pool = WorkerPool(number_of_threads)
        self._invalidate()

    @property
    def hessian_enabled(self) -> bool:
        return self._hessian_enabled

    @hessian_enabled.setter
    def hessian_enabled(self, enabled: bool) -> None:
        enabled = bool(enabled)
        if enabled != self._hessian_enabled:
            self._hessian_enabled = enabled
            self._invalidate()

    def clear(self) -> None:
        """Remove every variable and term; thread count and Hessian flag are kept."""
        self._variables.clear()
        self._terms.clear()
        self.constant = 0.0
        self.number_of_hessian_elements = 0
        self.statistics.reset()
        self._invalidate()

    def allocate_local_storage(self) -> None:
        """Allocate evaluation scratch now instead of on the first evaluation."""
        self._ensure_storage()

    def _ensure_storage(self) -> LocalStorage:
        if self._storage is None:
            start = perf_counter()
            self._storage = LocalStorage.allocate(
                self._variables,
                self._terms,
                self._number_of_threads,
                self._hessian_enabled,
            )
            self.statistics.allocation_time += perf_counter() - start
        return self._storage

    # ------------------------------------------------------------------
    # Copying between user storage, global vectors and scratch
    # ------------------------------------------------------------------
    def _check_global(self, x: object) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        n = self.get_number_of_scalars()
        if x.ndim != 1 or x.size != n:
            raise DimensionMismatch(
                f"Global vector must have shape ({n},), got {x.shape}"
            )
        return x

    def copy_user_to_global(self) -> np.ndarray:
        """Return the free variables' user values as a global vector."""
        x = np.zeros(self.get_number_of_scalars())
        for added in self._variables:
            if added.is_constant:
                continue
            if added.change_of_variables is None:
                x[added.global_slice] = added.user_data
            else:
                added.change_of_variables.x_to_t(x[added.global_slice], added.user_data)
        return x

    def copy_global_to_user(self, x: object) -> None:
        """Write a global vector back into the free variables' user storage."""
        x = self._check_global(x)
        for added in self._variables:
            if added.is_constant:
                continue
            if added.change_of_variables is None:
                added.user_data[:] = x[added.global_slice]
            else:
                added.change_of_variables.t_to_x(added.user_data, x[added.global_slice])

    def _copy_user_to_local(self) -> None:
        for added in self._variables:
            added.scratch[:] = added.user_data

    def _copy_global_to_local(self, x: np.ndarray) -> None:
        for added in self._variables:
            if added.is_constant:
                added.scratch[:] = added.user_data
            elif added.change_of_variables is None:
                added.scratch[:] = x[added.global_slice]
            else:
                added.change_of_variables.t_to_x(added.scratch, x[added.global_slice])

    def _prepare(self, x: Optional[object]) -> Tuple[LocalStorage, Optional[np.ndarray]]:
        storage = self._ensure_storage()
        start = perf_counter()
        if x is None:
            self._copy_user_to_local()
        else:
            x = self._check_global(x)
            self._copy_global_to_local(x)
        self.statistics.copy_time += perf_counter() - start
        return storage, x

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def evaluate(self, x: Optional[object] = None) -> float:
        """
        Value of the function.

        Args:
            x: Global vector of free scalars. When omitted the current
                contents of user storage are used.
        """
        _, x = self._prepare(x)
        bindings = self._terms.bindings

        def sum_values(worker: int, chunk: range) -> float:
            total = 0.0
            for k in chunk:
                binding = bindings[k]
                total += binding.term.evaluate(binding.arguments)
            return total

        start = perf_counter()
        value = self.constant
        for partial in self._pool.run(sum_values, len(bindings)):
            value += partial
        self.statistics.evaluate_time += perf_counter() - start
        self.statistics.evaluations_without_gradient += 1
        return float(value)

    def _run_with_derivatives(
        self, storage: LocalStorage, x: np.ndarray, with_hessian: bool
    ) -> float:
        bindings = self._terms.bindings
        variables = self._variables.variables

        def accumulate(worker: int, chunk: range) -> float:
            scratch = storage.workers[worker]
            accumulator = scratch.gradient
            total = 0.0
            for k in chunk:
                binding = bindings[k]
                rows = scratch.gradient_rows(binding.dimensions)
                if with_hessian:
                    total += binding.term.evaluate_hessian(binding.arguments, rows, binding.hessian)
                else:
                    total += binding.term.evaluate_gradient(binding.arguments, rows)
                for position, index in enumerate(binding.variable_indices):
                    added = variables[index]
                    if added.is_constant:
                        continue
                    target = accumulator[added.global_slice]
                    if added.change_of_variables is None:
                        target += rows[position]
                    else:
                        added.change_of_variables.update_gradient(
                            target, x[added.global_slice], rows[position]
                        )
            return total

        storage.zero_gradients()
        start = perf_counter()
        value = self.constant
        for partial in self._pool.run(accumulate, len(bindings)):
            value += partial
        self.statistics.evaluate_with_hessian_time += perf_counter() - start
        self.statistics.evaluations_with_gradient += 1
        return float(value)

    def evaluate_with_gradient(self, x: Optional[object] = None) -> Tuple[float, np.ndarray]:
        """
        Value and gradient with respect to the global vector ``x``.

        When ``x`` is omitted the point is read from user storage.
        """
        if x is None:
            x = self.copy_user_to_global()
        storage, x = self._prepare(x)
        value = self._run_with_derivatives(storage, x, with_hessian=False)

        start = perf_counter()
        gradient = storage.sum_gradients(self.get_number_of_scalars())
        self.statistics.write_gradient_hessian_time += perf_counter() - start
        return value, gradient

    def _check_hessian_supported(self) -> LocalStorage:
        if not self._hessian_enabled:
            raise HessianDisabled("The Hessian is disabled for this function.")
        storage = self._ensure_storage()
        if storage.has_free_change_of_variables:
            raise UnsupportedOperation(
                "Hessian evaluation is not supported with a change of variables."
            )
        return storage

    def evaluate_with_hessian(
        self, x: Optional[object] = None, sparse: bool = False
    ) -> Tuple[float, np.ndarray, HessianMatrix]:
        """
        Value, gradient and Hessian with respect to the global vector ``x``.

        Args:
            x: Global vector of free scalars.
            sparse: Return the Hessian as a ``scipy.sparse.csr_matrix``
                instead of a dense array.

        Raises:
            HessianDisabled: If the function was built without Hessian storage.
            UnsupportedOperation: If a free variable used by a term has a
                change of variables.
        """
        self._check_hessian_supported()
        if x is None:
            x = self.copy_user_to_global()
        storage, x = self._prepare(x)
        value = self._run_with_derivatives(storage, x, with_hessian=True)

        start = perf_counter()
        n = self.get_number_of_scalars()
        gradient = storage.sum_gradients(n)
        if sparse:
            buffer = TripletBuffer(self.number_of_hessian_elements)
            for binding, placements in zip(self._terms, storage.placements):
                for placement in placements:
                    buffer.append_placement(
                        placement, binding.hessian[placement.first][placement.second]
                    )
            self.number_of_hessian_elements = buffer.size
            hessian: HessianMatrix = buffer.to_csr((n, n))
        else:
            hessian = np.zeros((n, n))
            for binding, placements in zip(self._terms, storage.placements):
                add_blocks_dense(hessian, binding, placements)
        self.statistics.write_gradient_hessian_time += perf_counter() - start
        return value, gradient, hessian

    def create_sparse_hessian(self) -> sp.csr_matrix:
        """
        Sparsity pattern of the Hessian without evaluating any term.

        Every block entry contributes 1.0 before coalescing, so a coordinate
        shared by several terms holds the number of terms touching it.

        Raises:
            UnsupportedOperation: If a free variable of a term has a change
                of variables.
        """
        storage = self._ensure_storage()
        if storage.has_free_change_of_variables:
            raise UnsupportedOperation(
                "The Hessian structure is not available with a change of variables."
            )
        n = self.get_number_of_scalars()
        buffer = TripletBuffer(self.number_of_hessian_elements)
        for placements in storage.placements:
            for placement in placements:
                buffer.append(placement.row_indices, placement.col_indices, 1.0)
        self.number_of_hessian_elements = buffer.size
        return buffer.to_csr((n, n))

    def evaluate_interval(self, intervals: Sequence[Interval]) -> Interval:
        """
        Enclosure of the function over a box of free scalars.

        Args:
            intervals: One :class:`Interval` per free scalar, in global order.
        """
        intervals = list(intervals)
        n = self.get_number_of_scalars()
        if len(intervals) != n:
            raise DimensionMismatch(f"Expected {n} intervals, got {len(intervals)}")
        if self._variables.has_change_of_variables():
            raise UnsupportedOperation(
                "Interval evaluation is not supported with a change of variables."
            )

        value = Interval.point(self.constant)
        for binding in self._terms:
            arguments: List[List[Interval]] = []
            for index in binding.variable_indices:
                added = self._variables[index]
                if added.is_constant:
                    arguments.append([Interval.point(v) for v in added.user_data])
                else:
                    arguments.append(intervals[added.global_slice])
            value = value + binding.term.evaluate_interval(arguments)
        self.statistics.evaluations_without_gradient += 1
        return value

    # ------------------------------------------------------------------
    # Copying and merging
    # ------------------------------------------------------------------
    def copy(self) -> "Function":
        """A new function over the same user storage, terms and layout."""
        other = Function(
            EngineConfig(
                number_of_threads=self._number_of_threads,
                hessian_enabled=self._hessian_enabled,
            )
        )
        other.constant = self.constant
        ordered = sorted(self._variables, key=lambda added: added.global_index)
        for added in ordered:
            other._variables.register(
                added.user_data, added.user_dimension, added.change_of_variables
            )
        for added in ordered:
            if added.is_constant:
                other._variables[other._variables.resolve(added.user_data)].is_constant = True
        other._variables.reindex()
        for binding in self._terms:
            other._terms.bind(
                binding.term,
                [self._variables[index].user_data for index in binding.variable_indices],
                other._variables,
            )
        return other

    __copy__ = copy

    def __iadd__(self, other: object) -> "Function":
        if isinstance(other, Function):
            self._merge(other)
            return self
        if isinstance(other, Real):
            self.constant += float(other)
            return self
        return NotImplemented

    def __add__(self, other: object) -> "Function":
        if not isinstance(other, (Function, Real)):
            return NotImplemented
        result = self.copy()
        result += other
        return result

    def _merge(self, other: "Function") -> None:
        if self._variables.has_change_of_variables() or other._variables.has_change_of_variables():
            raise UnsupportedOperation(
                "Adding functions with a change of variables is not supported."
            )
        constant = self.constant
        variable_checkpoint = len(self._variables)
        term_checkpoint = len(self._terms)
        self._invalidate()
        try:
            marked = False
            for added in sorted(other._variables, key=lambda item: item.global_index):
                known = self._variables.find(added.user_data) is not None
                handle = self._variables.register(added.user_data, added.user_dimension)
                if not known and added.is_constant:
                    self._variables[handle.index].is_constant = True
                    marked = True
            if marked:
                self._variables.reindex()

            for binding in list(other._terms):
                self._terms.bind(
                    binding.term,
                    [other._variables[index].user_data for index in binding.variable_indices],
                    self._variables,
                )
        except Exception:
            self._terms.truncate(term_checkpoint)
            self._variables.truncate(variable_checkpoint)
            raise
        self.constant = constant + other.constant

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def write_to_stream(self, stream: TextIO) -> None:
        from termsum.io.function_io import write_function

        write_function(self, stream)

    def read_from_stream(
        self, stream: TextIO, factory: Optional["TermFactory"] = None
    ) -> np.ndarray:
        """
        Replace this function by one read from ``stream``.

        Returns:
            The freshly allocated array backing every variable read.
        """
        from termsum.io.function_io import read_function

        _, user_space = read_function(stream, factory=factory, function=self)
        return user_space

    # ------------------------------------------------------------------
    # Reporting and lifecycle
    # ------------------------------------------------------------------
    def timing_report(self) -> str:
        stats = self.statistics
        total = (
            stats.allocation_time
            + stats.evaluate_time
            + stats.evaluate_with_hessian_time
            + stats.write_gradient_hessian_time
            + stats.copy_time
        )
        lines = [
            "Function evaluations without gradient: "
            f"{stats.evaluations_without_gradient}",
            f"Function evaluations with gradient:    {stats.evaluations_with_gradient}",
            f"Allocation time:            {stats.allocation_time:10.3f} s",
            f"Evaluate time:              {stats.evaluate_time:10.3f} s",
            f"Evaluate derivatives time:  {stats.evaluate_with_hessian_time:10.3f} s",
            f"Write gradient/Hessian time:{stats.write_gradient_hessian_time:10.3f} s",
            f"Copy time:                  {stats.copy_time:10.3f} s",
            f"Total time:                 {total:10.3f} s",
        ]
        return "\n".join(lines)

    def log_timing_information(self) -> None:
        for line in self.timing_report().splitlines():
            logger.info(line)

    def close(self) -> None:
        """Shut down the worker threads."""
        self._pool.close()

    def __enter__(self) -> "Function":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Function(variables={self.get_number_of_variables()}, "
            f"terms={self.get_number_of_terms()}, "
            f"scalars={self.get_number_of_scalars()}, "
            f"constants={self.get_number_of_constants()}, "
            f"threads={self._number_of_threads})"
        )


__all__ = ["EvaluationStatistics", "Function", "HessianMatrix"]

"""Variable registry: user storage to global coordinate bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

import numpy as np

from termsum.core.change_of_variables import ChangeOfVariables
from termsum.exceptions import DimensionMismatch, NotFound
from termsum.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VariableHandle:
    """Opaque reference to a registered variable.

    Handles stay valid until the owning function is cleared.
    """

    index: int
    owner: object = field(repr=False, compare=True)


VariableLike = Union[np.ndarray, VariableHandle]


@dataclass
class AddedVariable:
    """A block of caller-owned scalars known to the registry."""

    user_data: np.ndarray
    user_dimension: int
    solver_dimension: int
    global_index: int
    is_constant: bool = False
    change_of_variables: Optional[ChangeOfVariables] = None
    scratch: np.ndarray = field(default_factory=lambda: np.empty(0), repr=False)

    @property
    def global_slice(self) -> slice:
        return slice(self.global_index, self.global_index + self.solver_dimension)


def storage_address(array: np.ndarray) -> int:
    """Address of the first scalar of ``array``, which identifies a variable."""
    return int(array.__array_interface__["data"][0])


def as_user_storage(array: object, dimension: Optional[int]) -> np.ndarray:
    """
    Return a flat view of the first ``dimension`` scalars of ``array``.

    Raises:
        TypeError: If ``array`` cannot be aliased as contiguous float64 storage.
        DimensionMismatch: If ``array`` holds fewer than ``dimension`` scalars
            or ``dimension`` is not positive.
    """
    if not isinstance(array, np.ndarray):
        raise TypeError(
            f"Variables must be numpy arrays or VariableHandle, got {type(array).__name__}"
        )
    if array.dtype != np.float64:
        raise TypeError(f"Variable storage must have dtype float64, got {array.dtype}")
    if not array.flags.c_contiguous:
        raise TypeError("Variable storage must be C-contiguous")
    if dimension is None:
        dimension = array.size
    if dimension < 1:
        raise DimensionMismatch(f"Variable dimension must be positive, got {dimension}")
    if array.size < dimension:
        raise DimensionMismatch(
            f"Variable storage holds {array.size} scalars, dimension {dimension} requested"
        )
    return array.reshape(-1)[:dimension]


class VariableRegistry:
    """
    Owns every variable of a function and assigns global indices.

    Free variables occupy ``[0, number_of_scalars)`` of the global coordinate
    space in registration order; constant variables follow in
    ``[number_of_scalars, number_of_scalars + number_of_constants)``.
    """

    def __init__(self) -> None:
        self.variables: List[AddedVariable] = []
        self._by_address: dict[int, int] = {}
        self.number_of_scalars = 0
        self.number_of_constants = 0
        self._owner = object()

    def __len__(self) -> int:
        return len(self.variables)

    def __iter__(self) -> Iterator[AddedVariable]:
        return iter(self.variables)

    def __getitem__(self, index: int) -> AddedVariable:
        return self.variables[index]

    def handle(self, index: int) -> VariableHandle:
        return VariableHandle(index, self._owner)

    def find(self, variable: VariableLike) -> Optional[int]:
        """Registry index of ``variable`` or None when unknown."""
        if isinstance(variable, VariableHandle):
            if variable.owner is self._owner and 0 <= variable.index < len(self.variables):
                return variable.index
            return None
        if not isinstance(variable, np.ndarray):
            raise TypeError(
                f"Variables must be numpy arrays or VariableHandle, got {type(variable).__name__}"
            )
        return self._by_address.get(storage_address(variable))

    def resolve(self, variable: VariableLike) -> int:
        """
        Registry index of ``variable``.

        Raises:
            NotFound: If the variable has not been registered.
        """
        index = self.find(variable)
        if index is None:
            raise NotFound("Variable not found.")
        return index

    def register(
        self,
        array: VariableLike,
        dimension: Optional[int] = None,
        change_of_variables: Optional[ChangeOfVariables] = None,
    ) -> VariableHandle:
        """
        Add a variable, or update the transform of a known one.

        Args:
            array: Caller-owned float64 storage, or the handle of a known variable.
            dimension: Number of scalars the terms see. Defaults to the
                array size (or the known dimension for handles).
            change_of_variables: Optional reparameterization. For a known
                variable it replaces the current one when both its x and t
                dimensions are unchanged; None keeps the current one.

        Raises:
            DimensionMismatch: On any dimension conflict.
        """
        if isinstance(array, VariableHandle):
            index = self.resolve(array)
            self._update_known(self.variables[index], dimension, change_of_variables)
            return array

        user_data = as_user_storage(array, dimension)
        index = self._by_address.get(storage_address(user_data))
        if index is not None:
            self._update_known(self.variables[index], user_data.size, change_of_variables)
            return self.handle(index)

        user_dimension = user_data.size
        solver_dimension = user_dimension
        if change_of_variables is not None:
            if change_of_variables.x_dimension() != user_dimension:
                raise DimensionMismatch(
                    "Variable dimension does not match the change of variables: "
                    f"{user_dimension} != {change_of_variables.x_dimension()}"
                )
            solver_dimension = change_of_variables.t_dimension()

        added = AddedVariable(
            user_data=user_data,
            user_dimension=user_dimension,
            solver_dimension=solver_dimension,
            global_index=self.number_of_scalars,
            change_of_variables=change_of_variables,
            scratch=np.zeros(user_dimension),
        )
        self.variables.append(added)
        self._by_address[storage_address(user_data)] = len(self.variables) - 1
        self.number_of_scalars += solver_dimension
        if self.number_of_constants:
            # The new free block would overlap the constant block.
            self.reindex()
        return self.handle(len(self.variables) - 1)

    def _update_known(
        self,
        added: AddedVariable,
        dimension: Optional[int],
        change_of_variables: Optional[ChangeOfVariables],
    ) -> None:
        if dimension is not None and dimension != added.user_dimension:
            raise DimensionMismatch(
                "Dimension mismatch with previously added variable: "
                f"{dimension} != {added.user_dimension}"
            )
        if change_of_variables is None:
            return
        if change_of_variables.x_dimension() != added.user_dimension:
            raise DimensionMismatch("x_dimension of a change of variables can not change.")
        if change_of_variables.t_dimension() != added.solver_dimension:
            raise DimensionMismatch("t_dimension of a change of variables can not change.")
        added.change_of_variables = change_of_variables

    def set_constant(self, variable: VariableLike, is_constant: bool) -> None:
        """Mark a variable constant or free and recompute every global index."""
        index = self.resolve(variable)
        self.variables[index].is_constant = bool(is_constant)
        self.reindex()

    def reindex(self) -> None:
        """Assign contiguous global indices: free variables first, then constants."""
        number_of_scalars = 0
        for added in self.variables:
            if not added.is_constant:
                added.global_index = number_of_scalars
                number_of_scalars += added.solver_dimension

        number_of_constants = 0
        for added in self.variables:
            if added.is_constant:
                added.global_index = number_of_scalars + number_of_constants
                number_of_constants += added.solver_dimension

        self.number_of_scalars = number_of_scalars
        self.number_of_constants = number_of_constants
        logger.debug(
            "Re-indexed %d variables: %d free scalars, %d constant scalars",
            len(self.variables),
            number_of_scalars,
            number_of_constants,
        )

    def truncate(self, length: int) -> None:
        """Forget every variable registered after the first ``length``."""
        if length >= len(self.variables):
            return
        for added in self.variables[length:]:
            del self._by_address[storage_address(added.user_data)]
        del self.variables[length:]
        self.reindex()

    def has_change_of_variables(self) -> bool:
        return any(added.change_of_variables is not None for added in self.variables)

    def clear(self) -> None:
        self.variables = []
        self._by_address = {}
        self.number_of_scalars = 0
        self.number_of_constants = 0
        self._owner = object()


__all__ = [
    "AddedVariable",
    "VariableHandle",
    "VariableLike",
    "VariableRegistry",
    "as_user_storage",
    "storage_address",
]

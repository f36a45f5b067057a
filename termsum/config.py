"""Engine configuration and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

THREADS_ENV_VAR = "TERMSUM_NUM_THREADS"
HESSIAN_ENV_VAR = "TERMSUM_HESSIAN"

_FALSE_VALUES = ("0", "false", "no", "off")


def hardware_parallelism() -> int:
    """Return the number of logical CPUs, at least 1."""
    return max(os.cpu_count() or 1, 1)


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for a :class:`termsum.Function`.

    Args:
        number_of_threads: Worker count for evaluating terms. None selects the
            hardware parallelism of the machine.
        hessian_enabled: Whether Hessian blocks are allocated for each term.
            Functions that are only evaluated with gradients can turn this off
            to save memory.
    """

    number_of_threads: Optional[int] = None
    hessian_enabled: bool = True

    def __post_init__(self) -> None:
        if self.number_of_threads is not None and self.number_of_threads <= 0:
            raise ValueError(
                f"number_of_threads must be positive, got {self.number_of_threads}"
            )

    @property
    def resolved_threads(self) -> int:
        if self.number_of_threads is None:
            return hardware_parallelism()
        return self.number_of_threads

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Build a configuration from ``TERMSUM_NUM_THREADS`` and ``TERMSUM_HESSIAN``.

        Unset variables keep the defaults.

        Raises:
            ValueError: If ``TERMSUM_NUM_THREADS`` is not a positive integer.
        """
        threads_value = os.getenv(THREADS_ENV_VAR)
        number_of_threads = None
        if threads_value is not None and threads_value.strip():
            try:
                number_of_threads = int(threads_value)
            except ValueError:
                raise ValueError(
                    f"{THREADS_ENV_VAR} must be an integer, got {threads_value!r}"
                ) from None
        hessian_value = os.getenv(HESSIAN_ENV_VAR, "1").strip().lower()
        return cls(
            number_of_threads=number_of_threads,
            hessian_enabled=hessian_value not in _FALSE_VALUES,
        )

    def with_overrides(
        self,
        number_of_threads: Optional[int] = None,
        hessian_enabled: Optional[bool] = None,
    ) -> "EngineConfig":
        changes = {}
        if number_of_threads is not None:
            changes["number_of_threads"] = number_of_threads
        if hessian_enabled is not None:
            changes["hessian_enabled"] = bool(hessian_enabled)
        return replace(self, **changes)


__all__ = [
    "EngineConfig",
    "HESSIAN_ENV_VAR",
    "THREADS_ENV_VAR",
    "hardware_parallelism",
]

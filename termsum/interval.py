"""Closed real intervals with outward-rounded arithmetic.

Every bound produced by an arithmetic operation is pushed one ulp outwards
with :func:`numpy.nextafter`, so the exact result of the real operation is
always enclosed even though each bound is computed in floating point.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

import numpy as np

Number = Union[int, float, np.floating]


def _down(value: float) -> float:
    if math.isinf(value) or math.isnan(value):
        return value
    return float(np.nextafter(value, -np.inf))


def _up(value: float) -> float:
    if math.isinf(value) or math.isnan(value):
        return value
    return float(np.nextafter(value, np.inf))


@dataclass(frozen=True)
class Interval:
    """
    The closed interval ``[lower, upper]``.

    Supports ``+``, ``-``, ``*``, ``/`` and integer ``**`` with other intervals
    and with plain numbers, which are treated as degenerate intervals.
    """

    lower: float
    upper: float

    # Make numpy scalars defer to the reflected operators below.
    __array_ufunc__ = None

    def __post_init__(self) -> None:
        lower = float(self.lower)
        upper = float(self.upper)
        if math.isnan(lower) or math.isnan(upper):
            raise ValueError("Interval bounds must not be NaN")
        if lower > upper:
            raise ValueError(f"Interval lower bound {lower} exceeds upper bound {upper}")
        object.__setattr__(self, "lower", lower)
        object.__setattr__(self, "upper", upper)

    @classmethod
    def point(cls, value: Number) -> "Interval":
        return cls(float(value), float(value))

    @property
    def width(self) -> float:
        return self.upper - self.lower

    @property
    def midpoint(self) -> float:
        return 0.5 * (self.lower + self.upper)

    def contains(self, value: Union[Number, "Interval"]) -> bool:
        if isinstance(value, Interval):
            return self.lower <= value.lower and value.upper <= self.upper
        return self.lower <= float(value) <= self.upper

    def __contains__(self, value: Union[Number, "Interval"]) -> bool:
        return self.contains(value)

    def __add__(self, other: Union[Number, "Interval"]) -> "Interval":
        other = _as_interval(other)
        if other is NotImplemented:
            return NotImplemented
        return Interval(_down(self.lower + other.lower), _up(self.upper + other.upper))

    __radd__ = __add__

    def __neg__(self) -> "Interval":
        return Interval(-self.upper, -self.lower)

    def __pos__(self) -> "Interval":
        return self

    def __sub__(self, other: Union[Number, "Interval"]) -> "Interval":
        other = _as_interval(other)
        if other is NotImplemented:
            return NotImplemented
        return Interval(_down(self.lower - other.upper), _up(self.upper - other.lower))

    def __rsub__(self, other: Number) -> "Interval":
        other = _as_interval(other)
        if other is NotImplemented:
            return NotImplemented
        return other - self

    def __mul__(self, other: Union[Number, "Interval"]) -> "Interval":
        other = _as_interval(other)
        if other is NotImplemented:
            return NotImplemented
        products = (
            self.lower * other.lower,
            self.lower * other.upper,
            self.upper * other.lower,
            self.upper * other.upper,
        )
        # 0 * inf yields NaN; the corresponding product of the bounds is 0.
        products = tuple(0.0 if math.isnan(p) else p for p in products)
        return Interval(_down(min(products)), _up(max(products)))

    __rmul__ = __mul__

    def reciprocal(self) -> "Interval":
        if self.lower <= 0.0 <= self.upper:
            raise ZeroDivisionError(f"Interval {self} contains zero")
        return Interval(_down(1.0 / self.upper), _up(1.0 / self.lower))

    def __truediv__(self, other: Union[Number, "Interval"]) -> "Interval":
        other = _as_interval(other)
        if other is NotImplemented:
            return NotImplemented
        return self * other.reciprocal()

    def __rtruediv__(self, other: Number) -> "Interval":
        other = _as_interval(other)
        if other is NotImplemented:
            return NotImplemented
        return other * self.reciprocal()

    def square(self) -> "Interval":
        """Tight enclosure of ``{x*x : x in self}``, never negative."""
        lo_sq = self.lower * self.lower
        hi_sq = self.upper * self.upper
        if self.lower >= 0.0:
            return Interval(_down(lo_sq), _up(hi_sq))
        if self.upper <= 0.0:
            return Interval(_down(hi_sq), _up(lo_sq))
        return Interval(0.0, _up(max(lo_sq, hi_sq)))

    def __pow__(self, exponent: int) -> "Interval":
        if not isinstance(exponent, (int, np.integer)) or isinstance(exponent, bool):
            return NotImplemented
        exponent = int(exponent)
        if exponent < 0:
            return (self ** (-exponent)).reciprocal()
        if exponent == 0:
            return Interval(1.0, 1.0)
        if exponent % 2 == 0:
            return self.square() ** (exponent // 2)
        result = self
        for _ in range(exponent - 1):
            result = result * self
        return result

    def exp(self) -> "Interval":
        return Interval(max(_down(math.exp(self.lower)), 0.0), _up(math.exp(self.upper)))

    def __repr__(self) -> str:
        return f"Interval({self.lower!r}, {self.upper!r})"


def _as_interval(value: object) -> Interval:
    if isinstance(value, Interval):
        return value
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        return Interval.point(value)
    return NotImplemented


def interval_vector(lower: Sequence[Number], upper: Sequence[Number]) -> List[Interval]:
    """Build one interval per coordinate from two bound vectors.

    Raises:
        ValueError: If the vectors have different lengths.
    """
    lower_arr = np.asarray(lower, dtype=float).ravel()
    upper_arr = np.asarray(upper, dtype=float).ravel()
    if lower_arr.shape != upper_arr.shape:
        raise ValueError(
            f"Bound vectors differ in length: {lower_arr.size} and {upper_arr.size}"
        )
    return [Interval(lo, hi) for lo, hi in zip(lower_arr, upper_arr)]


def interval_sum(values: Iterable[Interval], start: Union[Number, Interval] = 0.0) -> Interval:
    total = _as_interval(start)
    for value in values:
        total = total + value
    return total


__all__ = ["Interval", "interval_sum", "interval_vector"]

"""Whitespace-separated token streams used by the function format.

Floats are written with ``repr`` which round-trips every ``float64`` exactly,
including ``inf`` and ``nan``.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, TextIO

import numpy as np

from termsum.exceptions import FormatMismatch


def _format_token(token: object) -> str:
    if isinstance(token, (bool, np.bool_)):
        return "1" if token else "0"
    if isinstance(token, (float, np.floating)):
        return repr(float(token))
    if isinstance(token, (int, np.integer)):
        return str(int(token))
    text = str(token)
    if not text or any(ch.isspace() for ch in text):
        raise ValueError(f"Token {text!r} is empty or contains whitespace")
    return text


class TokenWriter:
    """Writes tokens to a text stream, one record per line."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def write_line(self, *tokens: object) -> None:
        self.stream.write(" ".join(_format_token(token) for token in tokens))
        self.stream.write("\n")

    def write_values(self, values: np.ndarray) -> None:
        self.write_line(*(float(v) for v in np.asarray(values, dtype=float).ravel()))


class TokenReader:
    """Reads whitespace-separated tokens from a text stream.

    Every ``read_*`` method takes the name of the field being read so that a
    truncated or corrupt stream reports which field could not be parsed.
    """

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self._tokens: Iterator[str] = self._iter_tokens()

    def _iter_tokens(self) -> Iterator[str]:
        for line in self.stream:
            yield from line.split()

    def read_token(self, field: str) -> str:
        token: Optional[str] = next(self._tokens, None)
        if token is None:
            raise FormatMismatch(f"Reading {field} failed: unexpected end of stream.")
        return token

    def read_int(self, field: str) -> int:
        token = self.read_token(field)
        try:
            return int(token)
        except ValueError:
            raise FormatMismatch(f"Reading {field} failed: {token!r} is not an integer.") from None

    def read_float(self, field: str) -> float:
        token = self.read_token(field)
        try:
            return float(token)
        except ValueError:
            raise FormatMismatch(f"Reading {field} failed: {token!r} is not a number.") from None

    def read_ints(self, count: int, field: str) -> List[int]:
        return [self.read_int(field) for _ in range(count)]

    def read_floats(self, count: int, field: str) -> np.ndarray:
        return np.array([self.read_float(field) for _ in range(count)], dtype=float)


__all__ = ["TokenReader", "TokenWriter"]

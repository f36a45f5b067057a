"""Write and read a :class:`termsum.Function` as a text token stream.

See schema.py for the layout of the stream.
"""

from __future__ import annotations

import io
from typing import Dict, Optional, TextIO, Tuple

import numpy as np

from termsum.core.factory import TermFactory, default_factory
from termsum.exceptions import FormatMismatch, IncompatibleBuild, UnsupportedOperation
from termsum.function import Function
from termsum.logging import get_logger

from .schema import FORMAT_VERSION, MAGIC, build_fingerprint
from .stream import TokenReader, TokenWriter

logger = get_logger(__name__)


def write_function(function: Function, stream: TextIO) -> None:
    """
    Write ``function`` to a text stream.

    Parameters
    ----------
    function : Function
        Function to write. Every term must support ``Term.write``.
    stream : TextIO
        Destination opened in text mode.

    Raises
    ------
    UnsupportedOperation
        If a variable has a change of variables, or a term cannot be written.
    """
    variables = function.variable_registry
    terms = function.term_registry
    if variables.has_change_of_variables():
        raise UnsupportedOperation(
            "Writing a function with a change of variables is not supported."
        )

    writer = TokenWriter(stream)
    writer.write_line(MAGIC)
    writer.write_line(FORMAT_VERSION)
    writer.write_line(build_fingerprint())
    writer.write_line(len(terms))
    writer.write_line(len(variables))
    writer.write_line(variables.number_of_scalars)
    writer.write_line(variables.number_of_constants)
    writer.write_line(float(function.constant))

    ordered = sorted(variables, key=lambda added: added.global_index)
    writer.write_line(
        *[token for added in ordered for token in (added.global_index, added.user_dimension)]
    )
    if ordered:
        writer.write_values(np.concatenate([added.user_data for added in ordered]))
    else:
        writer.write_line()

    for binding in terms:
        writer.write_line(binding.term.tag())
        writer.write_line(binding.arity)
        writer.write_line(*[variables[index].global_index for index in binding.variable_indices])
        binding.term.write(writer)

    logger.info(
        "Wrote function with %d terms and %d variables (%d free, %d constant scalars)",
        len(terms),
        len(variables),
        variables.number_of_scalars,
        variables.number_of_constants,
    )


def _read_count(reader: TokenReader, field: str) -> int:
    value = reader.read_int(field)
    if value < 0:
        raise FormatMismatch(f"Reading {field} failed: {value} is negative.")
    return value


def read_function(
    stream: TextIO,
    factory: Optional[TermFactory] = None,
    function: Optional[Function] = None,
) -> Tuple[Function, np.ndarray]:
    """
    Read a function written by :func:`write_function`.

    Parameters
    ----------
    stream : TextIO
        Source opened in text mode.
    factory : TermFactory, optional
        Factory used to rebuild terms. Defaults to ``default_factory``.
    function : Function, optional
        Function to read into; it is cleared first. A new one is created
        when omitted.

    Returns
    -------
    tuple[Function, np.ndarray]
        The function and the freshly allocated array that backs every
        variable (free scalars first, then constant scalars).

    Raises
    ------
    FormatMismatch
        If the stream is not a function stream or is truncated or corrupt.
    IncompatibleBuild
        If the stream was written by a build with another float encoding.
    """
    factory = factory if factory is not None else default_factory
    function = function if function is not None else Function()
    function.clear()
    reader = TokenReader(stream)

    magic = reader.read_token("header")
    if magic != MAGIC:
        raise FormatMismatch(f"Not a function stream: header {magic!r}, expected {MAGIC!r}.")
    version = reader.read_int("format version")
    if version != FORMAT_VERSION:
        raise FormatMismatch(
            f"Unsupported format version {version}, expected {FORMAT_VERSION}."
        )
    fingerprint = reader.read_token("build fingerprint")
    if fingerprint != build_fingerprint():
        raise IncompatibleBuild(
            f"Stream written by an incompatible build: {fingerprint!r}, "
            f"this build is {build_fingerprint()!r}."
        )

    number_of_terms = _read_count(reader, "number of terms")
    number_of_variables = _read_count(reader, "number of variables")
    number_of_scalars = _read_count(reader, "number of scalars")
    number_of_constants = _read_count(reader, "number of constants")
    constant = reader.read_float("constant")
    total = number_of_scalars + number_of_constants

    user_space = np.zeros(total)
    views: Dict[int, np.ndarray] = {}
    offset = 0
    for _ in range(number_of_variables):
        global_index = reader.read_int("variable global index")
        dimension = reader.read_int("variable dimension")
        if global_index != offset:
            raise FormatMismatch(
                f"Variable offsets do not match: expected {offset}, got {global_index}."
            )
        if dimension < 1 or offset + dimension > total:
            raise FormatMismatch(f"Invalid variable dimension {dimension} at offset {offset}.")
        view = user_space[offset : offset + dimension]
        function.add_variable(view)
        views[offset] = view
        offset += dimension
    if offset != total:
        raise FormatMismatch(
            f"Variables cover {offset} scalars, the stream declares {total}."
        )
    user_space[:] = reader.read_floats(total, "scalar value")

    variables = function.variable_registry
    for added in variables:
        if added.global_index >= number_of_scalars:
            added.is_constant = True
    variables.reindex()
    if variables.number_of_scalars != number_of_scalars:
        raise FormatMismatch(
            "Constant block does not start at a variable boundary: "
            f"{variables.number_of_scalars} != {number_of_scalars}."
        )

    for _ in range(number_of_terms):
        type_name = reader.read_token("term type")
        arity = _read_count(reader, "term arity")
        offsets = reader.read_ints(arity, "term variable offset")
        arguments = []
        for term_offset in offsets:
            if term_offset not in views:
                raise FormatMismatch(f"Term refers to unknown variable offset {term_offset}.")
            arguments.append(views[term_offset])
        term = factory.create(type_name, reader)
        function.add_term(term, *arguments)

    function.constant = constant
    logger.info(
        "Read function with %d terms and %d variables (%d free, %d constant scalars)",
        number_of_terms,
        number_of_variables,
        number_of_scalars,
        number_of_constants,
    )
    return function, user_space


def dumps(function: Function) -> str:
    """Serialize ``function`` to a string."""
    buffer = io.StringIO()
    write_function(function, buffer)
    return buffer.getvalue()


def loads(text: str, factory: Optional[TermFactory] = None) -> Tuple[Function, np.ndarray]:
    """Read a function from a string produced by :func:`dumps`."""
    return read_function(io.StringIO(text), factory=factory)


def dump_function(function: Function, path: str) -> None:
    """Write ``function`` to a file."""
    with open(path, "w", encoding="utf-8") as f:
        write_function(function, f)


def load_function(
    path: str, factory: Optional[TermFactory] = None
) -> Tuple[Function, np.ndarray]:
    """
    Read a function from a file written by :func:`dump_function`.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    FormatMismatch
        If the file is not a valid function stream.
    """
    with open(path, "r", encoding="utf-8") as f:
        return read_function(f, factory=factory)


__all__ = [
    "dump_function",
    "dumps",
    "load_function",
    "loads",
    "read_function",
    "write_function",
]

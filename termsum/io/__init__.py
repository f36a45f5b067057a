"""Text serialization of functions."""

from .function_io import (
    dump_function,
    dumps,
    load_function,
    loads,
    read_function,
    write_function,
)
from .schema import FORMAT_VERSION, MAGIC, build_fingerprint
from .stream import TokenReader, TokenWriter

__all__ = [
    "FORMAT_VERSION",
    "MAGIC",
    "TokenReader",
    "TokenWriter",
    "build_fingerprint",
    "dump_function",
    "dumps",
    "load_function",
    "loads",
    "read_function",
    "write_function",
]

"""Layout of the text format used to persist a :class:`termsum.Function`.

Stream Structure (whitespace separated tokens, one record per line)::

    termsum::function
    <format version>
    <build fingerprint>
    <number of terms>
    <number of variables>
    <number of free scalars>
    <number of constant scalars>
    <constant>
    <global_index dimension> ...        # one pair per variable, global order
    <scalar> ...                        # free scalars, then constant scalars
    per term:
        <type name>
        <arity>
        <global scalar offset> ...      # one per argument
        <term parameters>               # written by Term.write

Variables occupy contiguous global ranges; constant variables come after
every free variable.
"""

from __future__ import annotations

import sys

import numpy as np

MAGIC = "termsum::function"
FORMAT_VERSION = 1


def build_fingerprint() -> str:
    """
    Identify the float encoding and byte order of this build.

    Streams written by a build with another fingerprint are rejected with
    :class:`~termsum.exceptions.IncompatibleBuild`.
    """
    info = np.finfo(np.float64)
    return f"float64-{info.nmant + 1}-{sys.byteorder}"


__all__ = ["FORMAT_VERSION", "MAGIC", "build_fingerprint"]

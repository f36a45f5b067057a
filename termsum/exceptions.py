"""Exception hierarchy raised by the function assembly engine."""

from __future__ import annotations


class TermsumError(Exception):
    """Base class for termsum-specific exceptions."""


class DimensionMismatch(TermsumError, ValueError):
    """A variable, term argument or global vector has the wrong size."""


class ArityMismatch(TermsumError, ValueError):
    """A term was bound to the wrong number of variables."""


class NotFound(TermsumError, LookupError):
    """A variable was referenced that has never been added."""


class UnsupportedOperation(TermsumError, RuntimeError):
    """The request cannot be served with the current configuration.

    Raised for a change of variables combined with Hessian assembly, interval
    evaluation or serialization, and for terms lacking an optional capability.
    """


class FormatMismatch(TermsumError, ValueError):
    """A serialized function stream is malformed or of the wrong version."""


class IncompatibleBuild(FormatMismatch):
    """A serialized function stream was written by an incompatible build."""


class HessianDisabled(TermsumError, RuntimeError):
    """A Hessian was requested from a function with Hessians disabled."""


__all__ = [
    "ArityMismatch",
    "DimensionMismatch",
    "FormatMismatch",
    "HessianDisabled",
    "IncompatibleBuild",
    "NotFound",
    "TermsumError",
    "UnsupportedOperation",
]

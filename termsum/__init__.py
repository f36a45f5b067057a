"""termsum - assemble objective functions from terms and evaluate them in parallel."""

__version__ = "0.1.0"

# Configuration and errors
from .config import EngineConfig
from .core import ChangeOfVariables, Term, TermFactory, default_factory, register_term

# Diagnostics
from .diagnostics import DerivativeCheck, approx_grad, approx_hessian, check_term_derivatives
from .exceptions import (
    ArityMismatch,
    DimensionMismatch,
    FormatMismatch,
    HessianDisabled,
    IncompatibleBuild,
    NotFound,
    TermsumError,
    UnsupportedOperation,
)

# Evaluation engine
from .function import Function, VariableHandle
from .interval import Interval, interval_sum, interval_vector

# Serialization
from .io import dump_function, dumps, load_function, loads, read_function, write_function
from .logging import configure_logging, get_logger, set_log_level
from .objective import FunctionObjective, minimize

# Terms and transforms
from .terms import AutoDiffTerm, LinearTerm, Rosenbrock, SquaredDistance, SumOfSquares
from .transforms import Box, GreaterThan

__all__ = [
    "__version__",
    "ArityMismatch",
    "AutoDiffTerm",
    "Box",
    "ChangeOfVariables",
    "DerivativeCheck",
    "DimensionMismatch",
    "EngineConfig",
    "FormatMismatch",
    "Function",
    "FunctionObjective",
    "GreaterThan",
    "HessianDisabled",
    "IncompatibleBuild",
    "Interval",
    "LinearTerm",
    "NotFound",
    "Rosenbrock",
    "SquaredDistance",
    "SumOfSquares",
    "Term",
    "TermFactory",
    "TermsumError",
    "UnsupportedOperation",
    "VariableHandle",
    "approx_grad",
    "approx_hessian",
    "check_term_derivatives",
    "configure_logging",
    "default_factory",
    "dump_function",
    "dumps",
    "get_logger",
    "interval_sum",
    "interval_vector",
    "load_function",
    "loads",
    "minimize",
    "read_function",
    "register_term",
    "set_log_level",
    "write_function",
]

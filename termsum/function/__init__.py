"""Function assembly and evaluation engine."""

from .core import EvaluationStatistics, Function
from .hessian import TripletBuffer
from .parallel import WorkerPool
from .storage import LocalStorage
from .terms import TermBinding, TermRegistry
from .variables import AddedVariable, VariableHandle, VariableRegistry

__all__ = [
    "AddedVariable",
    "EvaluationStatistics",
    "Function",
    "LocalStorage",
    "TermBinding",
    "TermRegistry",
    "TripletBuffer",
    "VariableHandle",
    "VariableRegistry",
    "WorkerPool",
]

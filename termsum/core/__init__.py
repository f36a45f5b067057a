"""Contracts consumed by the evaluation engine."""

from .change_of_variables import ChangeOfVariables
from .factory import TermFactory, default_factory, register_term
from .term import Term

__all__ = ["ChangeOfVariables", "Term", "TermFactory", "default_factory", "register_term"]

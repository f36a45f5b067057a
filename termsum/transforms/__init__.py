"""Concrete changes of variables."""

from .bounds import Box, GreaterThan

__all__ = ["Box", "GreaterThan"]

"""Registry reconstructing terms from serialized streams by type name."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

from termsum.core.term import Term
from termsum.exceptions import FormatMismatch

if TYPE_CHECKING:
    from termsum.io.stream import TokenReader

TermReader = Callable[["TokenReader"], Term]


class TermFactory:
    """Maps stable term type names to reader callables."""

    def __init__(self) -> None:
        self._readers: dict[str, TermReader] = {}

    def register(self, type_name: str, reader: TermReader) -> None:
        if not type_name or any(ch.isspace() for ch in type_name):
            raise ValueError(f"Invalid term type name {type_name!r}")
        self._readers[type_name] = reader

    def register_term(self, cls: type[Term]) -> type[Term]:
        """Class decorator registering ``cls.read`` under ``cls.tag()``."""
        self.register(cls.tag(), cls.read)
        return cls

    def create(self, type_name: str, reader: "TokenReader") -> Term:
        """
        Read one term of type ``type_name`` from ``reader``.

        Raises:
            FormatMismatch: If no reader is registered for ``type_name``.
        """
        term_reader = self._readers.get(type_name)
        if term_reader is None:
            raise FormatMismatch(f"Unknown term type {type_name!r} in stream")
        term = term_reader(reader)
        if not isinstance(term, Term):
            raise TypeError(
                f"Reader for {type_name!r} returned {type(term).__name__}, expected a Term"
            )
        return term

    def names(self) -> list[str]:
        return sorted(self._readers)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._readers


default_factory = TermFactory()


def register_term(cls: type[Term], factory: Optional[TermFactory] = None) -> type[Term]:
    """Register ``cls`` with ``factory`` (the default factory if omitted)."""
    return (factory or default_factory).register_term(cls)


__all__ = ["TermFactory", "TermReader", "default_factory", "register_term"]

#!/usr/bin/env python3
"""
Exceptions raised by the FFI binding generator.

Emission itself has no semantic validation path: a malformed class description
is a caller contract violation. The errors below cover what can still go wrong
while assembling the two artifacts. Sink failures are not wrapped; they surface
as the ``OSError`` raised by the sink.
"""

from __future__ import annotations

from typing import Iterable, Tuple


class BindingGeneratorError(Exception):
    pass


class SymbolEncodingError(BindingGeneratorError, ValueError):
    """Indicate that a name cannot be rendered as valid source text.

    Raised for namespace segments, class names, member names and variant names
    that are not plain ASCII identifiers, and for custom native type names that
    contain non-printable or non-ASCII characters.
    """

    def __init__(self, what: str, value: str):
        self._what = what
        self._value = value
        super().__init__(f"{what} {value!r} cannot be encoded as a symbol")

    @property
    def what(self) -> str:
        return self._what

    @property
    def value(self) -> str:
        return self._value


class DuplicateMemberError(BindingGeneratorError, KeyError):
    """Indicate that a method or constructor variant was registered twice."""

    def __init__(self, kind: str, name: str):
        self._kind = kind
        self._name = name
        super().__init__(f"{kind} {name!r} is already declared")

    def __str__(self) -> str:
        return self.args[0]

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def name(self) -> str:
        return self._name


class SymbolCollisionError(BindingGeneratorError):
    """Indicate that two members of one generation run share a linker symbol."""

    def __init__(self, symbol: str, owners: Iterable[str]):
        self._symbol = symbol
        self._owners: Tuple[str, ...] = tuple(owners)
        super().__init__(
            f"Linker symbol {symbol} is produced by more than one member: "
            + ", ".join(self._owners)
        )

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def owners(self) -> Tuple[str, ...]:
        return self._owners


class DescriptionError(BindingGeneratorError, ValueError):
    """Indicate that a declarative class description could not be loaded."""

    def __init__(self, location: str, message: str):
        self._location = location
        super().__init__(f"{location}: {message}")

    @property
    def location(self) -> str:
        return self._location


__all__ = [
    "BindingGeneratorError",
    "SymbolEncodingError",
    "DuplicateMemberError",
    "SymbolCollisionError",
    "DescriptionError",
]

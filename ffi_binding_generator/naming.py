#!/usr/bin/env python3
"""
Linker symbol naming for the generated trampolines.

Both artifacts get their symbol names from this module, so the native definition
and the foreign declaration always reference the same symbol.

Scheme (namespace ["crypto"], class "H256"):
- escaped path:     every "_" inside a segment is doubled, segments joined by "_"
                    (["foo_bar"] -> "foo__bar", ["foo", "bar"] -> "foo_bar")
- constructors:     new_crypto_H256, new_<variant>_crypto_H256
- copy constructor: cpy_crypto_H256
- destructor:       del_crypto_H256
- methods:          mth_crypto_H256_<method>
- call-site path:   crypto::H256 (source-level reference, never a linker symbol)

Method and variant names are appended unescaped. They sit at a fixed position, so
escaping them is not needed to keep namespace boundaries apart; collisions that
remain possible across classes are caught by check_symbol_collisions().
"""

from __future__ import annotations

import re
from collections import defaultdict
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, List, NamedTuple, Sequence

from .errors import SymbolCollisionError, SymbolEncodingError

if TYPE_CHECKING:
    from .models import NamespacedClass

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")


class SymbolRole(Enum):
    CONSTRUCTOR = "constructor"
    COPY = "copy"
    DESTRUCTOR = "destructor"
    METHOD = "method"


class MemberSymbol(NamedTuple):
    role: SymbolRole
    member: str  # method name or constructor variant name; "" otherwise
    symbol: str


def validate_identifier(what: str, name: str) -> str:
    """
    Return ``name`` if it is a plain ASCII C identifier, else raise SymbolEncodingError.
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise SymbolEncodingError(what, name)
    return name


def escape_segment(segment: str) -> str:
    return segment.replace("_", "__")


def escaped_path(namespace: Sequence[str], name: str) -> str:
    """
    Join namespace segments and the class name into a flat symbol fragment,
    doubling underscores inside each segment first.
    """
    parts = [validate_identifier("namespace segment", s) for s in namespace]
    parts.append(validate_identifier("class name", name))
    return "_".join(escape_segment(p) for p in parts)


def native_path(namespace: Sequence[str], name: str) -> str:
    """
    Source-level path of the wrapped type (``a::b::Name``); not a linker symbol.
    """
    return "::".join(list(namespace) + [name])


def constructor_symbol(namespace: Sequence[str], name: str, variant: str = "") -> str:
    path = escaped_path(namespace, name)
    if not variant:
        return f"new_{path}"
    return f"new_{validate_identifier('constructor variant', variant)}_{path}"


def copy_symbol(namespace: Sequence[str], name: str) -> str:
    return f"cpy_{escaped_path(namespace, name)}"


def destructor_symbol(namespace: Sequence[str], name: str) -> str:
    return f"del_{escaped_path(namespace, name)}"


def method_symbol(namespace: Sequence[str], name: str, method: str) -> str:
    return f"mth_{escaped_path(namespace, name)}_{validate_identifier('method name', method)}"


def member_symbol(namespace: Sequence[str], name: str, member: str, role: SymbolRole) -> str:
    if role == SymbolRole.CONSTRUCTOR:
        return constructor_symbol(namespace, name, member)
    if role == SymbolRole.COPY:
        return copy_symbol(namespace, name)
    if role == SymbolRole.DESTRUCTOR:
        return destructor_symbol(namespace, name)
    return method_symbol(namespace, name, member)


def symbol_table(cls: NamespacedClass) -> List[MemberSymbol]:
    """
    All symbols of one class in emission order: constructors by variant name,
    copy constructor, destructor, then methods by name.
    """
    ns, name = cls.namespace, cls.name
    table: List[MemberSymbol] = []
    for variant, _ in cls.spec.sorted_constructors():
        table.append(MemberSymbol(SymbolRole.CONSTRUCTOR, variant, constructor_symbol(ns, name, variant)))
    if cls.spec.copyable:
        table.append(MemberSymbol(SymbolRole.COPY, "", copy_symbol(ns, name)))
    table.append(MemberSymbol(SymbolRole.DESTRUCTOR, "", destructor_symbol(ns, name)))
    for method, _ in cls.spec.sorted_methods():
        table.append(MemberSymbol(SymbolRole.METHOD, method, method_symbol(ns, name, method)))
    return table


def _describe(cls: NamespacedClass, entry: MemberSymbol) -> str:
    if entry.role == SymbolRole.METHOD:
        return f"{cls.qualified_name}::{entry.member}"
    if entry.role == SymbolRole.CONSTRUCTOR and entry.member:
        return f"{cls.qualified_name} constructor {entry.member!r}"
    return f"{cls.qualified_name} {entry.role.value}"


def check_symbol_collisions(classes: Iterable[NamespacedClass]) -> None:
    """
    Raise SymbolCollisionError if two members of the given classes would be
    emitted under the same linker symbol.
    """
    owners: Dict[str, List[str]] = defaultdict(list)
    for cls in classes:
        for entry in symbol_table(cls):
            owners[entry.symbol].append(_describe(cls, entry))
    for symbol in sorted(owners):
        if len(owners[symbol]) > 1:
            raise SymbolCollisionError(symbol, owners[symbol])


__all__ = [
    "SymbolRole",
    "MemberSymbol",
    "validate_identifier",
    "escape_segment",
    "escaped_path",
    "native_path",
    "constructor_symbol",
    "copy_symbol",
    "destructor_symbol",
    "method_symbol",
    "member_symbol",
    "symbol_table",
    "check_symbol_collisions",
]

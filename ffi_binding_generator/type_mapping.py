#!/usr/bin/env python3
"""
Type mapping for the two emitted artifacts.

This module turns the type model (from `models.py`) into text, once for each
target:

- native spelling:  the C++ type used by the extern "C" trampolines
- foreign spelling: the Rust type used by the `extern "C"` declarations

and renders parameter lists the three ways the emitter needs them:

- native declaration:  "unsigned char const* arg0, size_t arg1"
- foreign declaration: "arg0: *const c_uchar, arg1: size_t"
- native forwarding:   "arg0, *arg1" (reference parameters are declared as
                       pointers, so the call site dereferences them once)

Design notes:
- References and pointers are spelled identically on the native side: the
  C-linkage boundary has no reference type, both cross as pointers.
- Custom types keep their native name on the native side only. The foreign side
  sees the opaque pointee type and never needs the native layout or name.
- Every rendering walks the parameters in declared order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import re

from .errors import SymbolEncodingError
from .models import BasicType, PrimitiveKind, PrimitiveType, Qualifier


# Printable ASCII, no line breaks; anything else cannot be pasted into source text.
_CUSTOM_NAME_RE = re.compile(r"[\x20-\x7e]+\Z")

NATIVE_PRIMITIVES: Dict[PrimitiveKind, str] = {
    PrimitiveKind.VOID: "void",
    PrimitiveKind.UNSIGNED_CHAR: "unsigned char",
    PrimitiveKind.UNSIGNED_INT: "unsigned int",
    PrimitiveKind.SIZE_T: "size_t",
    PrimitiveKind.LONG: "long",
}

FOREIGN_PRIMITIVES: Dict[PrimitiveKind, str] = {
    PrimitiveKind.VOID: "c_void",
    PrimitiveKind.UNSIGNED_CHAR: "c_uchar",
    PrimitiveKind.UNSIGNED_INT: "c_uint",
    PrimitiveKind.SIZE_T: "size_t",
    PrimitiveKind.LONG: "c_long",
    PrimitiveKind.CUSTOM: "c_void",
}


def argument_name(index: int) -> str:
    return f"arg{index}"


@dataclass
class MappingConfig:
    """
    Settings for the foreign side of the mapping.

    The defaults follow the `libc` crate. Override entries in ``foreign_names``
    to target another set of C type aliases (e.g. ``core::ffi``).
    """
    foreign_names: Dict[PrimitiveKind, str] = field(default_factory=lambda: dict(FOREIGN_PRIMITIVES))
    mut_pointer_prefix: str = "*mut "
    const_pointer_prefix: str = "*const "


class TypeMapper:
    """
    Spells BasicTypes and parameter lists in both target languages.
    """

    def __init__(self, config: Optional[MappingConfig] = None) -> None:
        self.config = config or MappingConfig()

    # ---- Single types ----

    def native_primitive(self, primitive: PrimitiveType) -> str:
        if primitive.kind == PrimitiveKind.CUSTOM:
            if not _CUSTOM_NAME_RE.match(primitive.name or "") or not primitive.name.strip():
                raise SymbolEncodingError("custom type name", primitive.name)
            return primitive.name
        return NATIVE_PRIMITIVES[primitive.kind]

    def foreign_primitive(self, primitive: PrimitiveType) -> str:
        return self.config.foreign_names[primitive.kind]

    def native(self, t: BasicType) -> str:
        base = self.native_primitive(t.primitive)
        if t.qualifier == Qualifier.VALUE:
            return base
        if t.is_const:
            return f"{base} const*"
        return f"{base}*"

    def foreign(self, t: BasicType) -> str:
        base = self.foreign_primitive(t.primitive)
        if t.qualifier == Qualifier.VALUE:
            return base
        if t.is_const:
            return f"{self.config.const_pointer_prefix}{base}"
        return f"{self.config.mut_pointer_prefix}{base}"

    def foreign_instance_pointer(self, is_const: bool) -> str:
        """The opaque instance pointer as seen by the foreign side."""
        opaque = self.config.foreign_names[PrimitiveKind.CUSTOM]
        prefix = self.config.const_pointer_prefix if is_const else self.config.mut_pointer_prefix
        return f"{prefix}{opaque}"

    # ---- Parameter lists ----

    def native_params(self, params: Sequence[BasicType]) -> List[str]:
        return [f"{self.native(p)} {argument_name(i)}" for i, p in enumerate(params)]

    def foreign_params(self, params: Sequence[BasicType]) -> List[str]:
        return [f"{argument_name(i)}: {self.foreign(p)}" for i, p in enumerate(params)]

    def forward_args(self, params: Sequence[BasicType]) -> List[str]:
        return [f"*{argument_name(i)}" if p.is_reference else argument_name(i) for i, p in enumerate(params)]

    def native_param_list(self, params: Sequence[BasicType]) -> str:
        return ", ".join(self.native_params(params))

    def foreign_param_list(self, params: Sequence[BasicType]) -> str:
        return ", ".join(self.foreign_params(params))

    def forward_arg_list(self, params: Sequence[BasicType]) -> str:
        return ", ".join(self.forward_args(params))

    # ---- Prologue helpers ----

    def foreign_imports(self) -> List[str]:
        """
        Sorted, de-duplicated foreign type names that a declaration module may
        refer to (for a `use libc::{...};` line).
        """
        names = {n for n in self.config.foreign_names.values() if "::" not in n}
        return sorted(names)


__all__ = [
    "NATIVE_PRIMITIVES",
    "FOREIGN_PRIMITIVES",
    "MappingConfig",
    "TypeMapper",
    "argument_name",
]

#!/usr/bin/env python3
"""
Data models for the FFI binding generator.

This module provides the in-memory description that drives emission:
- Primitive types and the qualifiers applicable to them
- Function signatures (return type + ordered parameters)
- Methods and constructor variants
- Classes (a builder collecting members) and namespaced, frozen classes
- The emission context (two independent output sinks) and the CLI generation context

The models are designed to be consumed by:
- The builder API, the JSON loader and the libclang importer (to populate instances)
- The dual emitter and its Jinja2 templates (to render both artifacts)
- The manifest writer (via the to_dict helpers)

Nothing in here knows how a type is spelled in either target language; that lives
in type_mapping.py. Symbol names live in naming.py.
"""

from __future__ import annotations

import io
import logging
from dataclasses import FrozenInstanceError, dataclass, field
from enum import Enum, auto
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, TextIO, Tuple, Union

from .errors import DuplicateMemberError
from .naming import native_path

logger = logging.getLogger(__name__)

# --------------------------
# Type model
# --------------------------

class PrimitiveKind(Enum):
    VOID = auto()
    UNSIGNED_CHAR = auto()
    UNSIGNED_INT = auto()
    SIZE_T = auto()
    LONG = auto()
    CUSTOM = auto()


@dataclass(frozen=True)
class PrimitiveType:
    """
    One of the representable primitive types.

    ``name`` is only meaningful for CUSTOM: it is the native type name, used
    verbatim on the native side and never shown to the foreign side.
    """
    kind: PrimitiveKind
    name: str = ""

    @staticmethod
    def custom(name: str) -> PrimitiveType:
        return PrimitiveType(PrimitiveKind.CUSTOM, name)

    @property
    def is_void(self) -> bool:
        return self.kind == PrimitiveKind.VOID

    @property
    def is_custom(self) -> bool:
        return self.kind == PrimitiveKind.CUSTOM

    def to_dict(self) -> Dict:
        if self.is_custom:
            return {"kind": self.kind.name, "name": self.name}
        return {"kind": self.kind.name}


VOID = PrimitiveType(PrimitiveKind.VOID)
UCHAR = PrimitiveType(PrimitiveKind.UNSIGNED_CHAR)
UINT = PrimitiveType(PrimitiveKind.UNSIGNED_INT)
SIZE_T = PrimitiveType(PrimitiveKind.SIZE_T)
LONG = PrimitiveType(PrimitiveKind.LONG)

# Spellings accepted by BasicType.from_spelling for the non-custom primitives.
_PRIMITIVE_SPELLINGS: Dict[str, PrimitiveType] = {
    "void": VOID,
    "unsigned char": UCHAR,
    "uchar": UCHAR,
    "unsigned int": UINT,
    "unsigned": UINT,
    "uint": UINT,
    "size_t": SIZE_T,
    "std::size_t": SIZE_T,
    "long": LONG,
    "long int": LONG,
    "signed long": LONG,
    "signed long int": LONG,
}


class Qualifier(Enum):
    VALUE = auto()
    MUTABLE_POINTER = auto()
    CONST_POINTER = auto()
    MUTABLE_REFERENCE = auto()
    CONST_REFERENCE = auto()


@dataclass(frozen=True)
class BasicType:
    """
    A primitive tagged with exactly one qualifier.

    References only make sense as parameters: the C-linkage convention cannot
    return by reference, and on the native side both pointers and references
    cross the boundary as pointers.
    """
    primitive: PrimitiveType
    qualifier: Qualifier = Qualifier.VALUE

    @property
    def is_void(self) -> bool:
        """True only for a bare ``void`` (a ``void*`` is a real value)."""
        return self.qualifier == Qualifier.VALUE and self.primitive.is_void

    @property
    def is_reference(self) -> bool:
        return self.qualifier in (Qualifier.MUTABLE_REFERENCE, Qualifier.CONST_REFERENCE)

    @property
    def is_pointer(self) -> bool:
        return self.qualifier in (Qualifier.MUTABLE_POINTER, Qualifier.CONST_POINTER)

    @property
    def is_const(self) -> bool:
        return self.qualifier in (Qualifier.CONST_POINTER, Qualifier.CONST_REFERENCE)

    @staticmethod
    def from_spelling(spelling: str) -> BasicType:
        """
        Parse a C++ type spelling such as ``"unsigned char const*"``,
        ``"const unsigned char*"``, ``"size_t"`` or ``"crypto::Block const&"``.

        A ``const`` that follows the ``*`` qualifies the pointer itself and is
        ignored. Unknown base names become custom types. Raises ValueError for
        empty spellings and for more than one level of indirection.
        """
        text = (spelling or "").replace("*", " * ").replace("&", " & ")
        tokens = text.split()
        indirections = [i for i, tok in enumerate(tokens) if tok in ("*", "&")]
        if len(indirections) > 1:
            raise ValueError(f"Type {spelling!r} has more than one level of indirection")

        cut = indirections[0] if indirections else len(tokens)
        pointee = tokens[:cut]
        is_const = "const" in pointee
        base = " ".join(tok for tok in pointee if tok not in ("const", "volatile", "struct", "class"))
        if not base:
            raise ValueError(f"Type {spelling!r} has no base type")

        primitive = _PRIMITIVE_SPELLINGS.get(base) or PrimitiveType.custom(base)
        if not indirections:
            return BasicType(primitive, Qualifier.VALUE)
        if tokens[cut] == "*":
            return BasicType(primitive, Qualifier.CONST_POINTER if is_const else Qualifier.MUTABLE_POINTER)
        return BasicType(primitive, Qualifier.CONST_REFERENCE if is_const else Qualifier.MUTABLE_REFERENCE)

    def to_dict(self) -> Dict:
        return {
            "primitive": self.primitive.to_dict(),
            "qualifier": self.qualifier.name,
        }


def value(primitive: PrimitiveType) -> BasicType:
    return BasicType(primitive, Qualifier.VALUE)

def void() -> BasicType:
    return BasicType(VOID, Qualifier.VALUE)

def mut_ptr(primitive: PrimitiveType) -> BasicType:
    return BasicType(primitive, Qualifier.MUTABLE_POINTER)

def const_ptr(primitive: PrimitiveType) -> BasicType:
    return BasicType(primitive, Qualifier.CONST_POINTER)

def mut_ref(primitive: PrimitiveType) -> BasicType:
    return BasicType(primitive, Qualifier.MUTABLE_REFERENCE)

def const_ref(primitive: PrimitiveType) -> BasicType:
    return BasicType(primitive, Qualifier.CONST_REFERENCE)

def custom(name: str) -> PrimitiveType:
    return PrimitiveType.custom(name)


# --------------------------
# Signature/member models
# --------------------------

@dataclass(frozen=True)
class Signature:
    """
    One return type plus an ordered parameter sequence of any length.
    The order is significant and never changed by the generator.
    """
    return_type: BasicType
    parameters: Tuple[BasicType, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", tuple(self.parameters))

    @property
    def arity(self) -> int:
        return len(self.parameters)

    def to_dict(self) -> Dict:
        return {
            "return_type": self.return_type.to_dict(),
            "parameters": [p.to_dict() for p in self.parameters],
        }


@dataclass(frozen=True)
class MethodSpec:
    signature: Signature
    is_const: bool = False

    def to_dict(self) -> Dict:
        return {
            "is_const": self.is_const,
            "signature": self.signature.to_dict(),
        }


@dataclass(frozen=True)
class ConstructorSpec:
    """
    A constructor variant. There is no return type: construction always yields
    a heap-allocated instance of the class, handed out as a pointer.
    """
    parameters: Tuple[BasicType, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", tuple(self.parameters))

    @property
    def arity(self) -> int:
        return len(self.parameters)

    def to_dict(self) -> Dict:
        return {"parameters": [p.to_dict() for p in self.parameters]}


# --------------------------
# Class model
# --------------------------

@dataclass
class ClassSpec:
    """
    Collects the constructors and methods of one native type.

    Members are keyed by name; the empty constructor variant name is the default
    constructor. Registering a name twice raises DuplicateMemberError unless
    ``replace=True`` is passed. Iteration order is irrelevant: emitters use the
    sorted_* accessors.
    """
    methods: Mapping[str, MethodSpec] = field(default_factory=dict)
    constructors: Mapping[str, ConstructorSpec] = field(default_factory=dict)
    copyable: bool = False

    def __setattr__(self, attr: str, val) -> None:
        if self.__dict__.get("_frozen"):
            raise FrozenInstanceError(f"cannot assign to field {attr!r} of a frozen ClassSpec")
        super().__setattr__(attr, val)

    def add_method(self, name: str, signature: Signature, is_const: bool = False, *, replace: bool = False) -> None:
        if name in self.methods:
            if not replace:
                raise DuplicateMemberError("method", name)
            logger.warning("Replacing previously declared method %r", name)
        self.methods[name] = MethodSpec(signature=signature, is_const=is_const)  # type: ignore[index]

    def add_constructor(self, variant: str = "", parameters: Iterable[BasicType] = (), *, replace: bool = False) -> None:
        if variant in self.constructors:
            if not replace:
                raise DuplicateMemberError("constructor", variant or "<default>")
            logger.warning("Replacing previously declared constructor %r", variant or "<default>")
        self.constructors[variant] = ConstructorSpec(parameters=tuple(parameters))  # type: ignore[index]

    # ---- Fluent helpers ----

    def method(self, name: str, return_type: BasicType, *parameters: BasicType) -> ClassSpec:
        self.add_method(name, Signature(return_type, parameters), is_const=False)
        return self

    def const_method(self, name: str, return_type: BasicType, *parameters: BasicType) -> ClassSpec:
        self.add_method(name, Signature(return_type, parameters), is_const=True)
        return self

    def constructor(self, *parameters: BasicType, variant: str = "") -> ClassSpec:
        self.add_constructor(variant, parameters)
        return self

    def with_copy(self, copyable: bool = True) -> ClassSpec:
        self.copyable = copyable
        return self

    # ---- Deterministic views ----

    def sorted_methods(self) -> List[Tuple[str, MethodSpec]]:
        return sorted(self.methods.items(), key=lambda item: item[0])

    def sorted_constructors(self) -> List[Tuple[str, ConstructorSpec]]:
        return sorted(self.constructors.items(), key=lambda item: item[0])

    def frozen(self) -> ClassSpec:
        """
        Return a read-only snapshot. Later changes to self do not leak into it,
        and assigning to its fields raises FrozenInstanceError.
        """
        snapshot = ClassSpec(
            methods=MappingProxyType(dict(self.methods)),
            constructors=MappingProxyType(dict(self.constructors)),
            copyable=self.copyable,
        )
        object.__setattr__(snapshot, "_frozen", True)
        return snapshot

    def to_dict(self) -> Dict:
        return {
            "copyable": self.copyable,
            "constructors": {k: c.to_dict() for k, c in self.sorted_constructors()},
            "methods": {k: m.to_dict() for k, m in self.sorted_methods()},
        }


@dataclass(frozen=True, eq=False)
class NamespacedClass:
    """
    A class description placed at a namespace path. Immutable once built: the
    ClassSpec passed in is snapshotted, so the builder can be reused afterwards.
    """
    namespace: Tuple[str, ...]
    name: str
    spec: ClassSpec

    def __post_init__(self) -> None:
        object.__setattr__(self, "namespace", tuple(self.namespace))
        object.__setattr__(self, "spec", self.spec.frozen())

    @property
    def qualified_name(self) -> str:
        return native_path(self.namespace, self.name)

    def to_dict(self) -> Dict:
        return {
            "namespace": list(self.namespace),
            "name": self.name,
            "qualified_name": self.qualified_name,
            "spec": self.spec.to_dict(),
        }


# --------------------------
# Emission context
# --------------------------

@dataclass
class EmissionContext:
    """
    Two independent output sinks: ``glue`` receives the native C-linkage
    trampolines, ``extern`` the foreign declarations. There is no state shared
    between them; a failure writing one does not touch the other.

    Use as a context manager to close the sinks when they are owned by the
    context (in_memory()/open()). Read in-memory results with getvalue()
    before leaving the block.
    """
    glue: TextIO
    extern: TextIO
    owns_sinks: bool = False

    @classmethod
    def in_memory(cls) -> EmissionContext:
        return cls(glue=io.StringIO(), extern=io.StringIO(), owns_sinks=True)

    @classmethod
    def open(cls, glue_path: Union[str, Path], extern_path: Union[str, Path], encoding: str = "utf-8") -> EmissionContext:
        glue = open(glue_path, "w", encoding=encoding, newline="\n")
        try:
            extern = open(extern_path, "w", encoding=encoding, newline="\n")
        except OSError:
            glue.close()
            raise
        return cls(glue=glue, extern=extern, owns_sinks=True)

    def getvalue(self) -> Tuple[str, str]:
        """Return (glue, extern) text; only valid for StringIO-backed sinks."""
        return self.glue.getvalue(), self.extern.getvalue()  # type: ignore[attr-defined]

    def flush(self) -> None:
        self.glue.flush()
        self.extern.flush()

    def close(self) -> None:
        if not self.owns_sinks:
            self.flush()
            return
        try:
            self.glue.close()
        finally:
            self.extern.close()

    def __enter__(self) -> EmissionContext:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# --------------------------
# Generation context
# --------------------------

@dataclass
class GenerationContext:
    """
    Parameters for a single CLI generation run.

    Paths are absolute. The CLI renders into an in-memory EmissionContext and
    then writes both artifacts atomically to these paths.
    """
    output_dir: Path
    templates_dir: Optional[Path]
    glue_name: str = "bindings.cpp"
    extern_name: str = "bindings.rs"
    dry_run: bool = False

    @property
    def glue_path(self) -> Path:
        return self.output_dir / self.glue_name

    @property
    def extern_path(self) -> Path:
        return self.output_dir / self.extern_name

    def to_dict(self) -> Dict:
        return {
            "output_dir": str(self.output_dir),
            "templates_dir": str(self.templates_dir) if self.templates_dir else None,
            "glue_path": str(self.glue_path),
            "extern_path": str(self.extern_path),
            "dry_run": self.dry_run,
        }


__all__ = [
    "PrimitiveKind",
    "PrimitiveType",
    "Qualifier",
    "BasicType",
    "VOID",
    "UCHAR",
    "UINT",
    "SIZE_T",
    "LONG",
    "value",
    "void",
    "mut_ptr",
    "const_ptr",
    "mut_ref",
    "const_ref",
    "custom",
    "Signature",
    "MethodSpec",
    "ConstructorSpec",
    "ClassSpec",
    "NamespacedClass",
    "EmissionContext",
    "GenerationContext",
]

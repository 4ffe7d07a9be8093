#!/usr/bin/env python3
"""
Dual emitter: one class description in, two ABI-compatible artifacts out.

For every NamespacedClass this module renders

- into the glue sink: extern "C" C++ trampolines (constructors, optional copy
  constructor, destructor, one function per method) written against the
  wrapped type itself;
- into the extern sink: a Rust `extern "C" { ... }` block declaring exactly
  the same functions.

Both sides are built from the same member records, computed once per class:
symbols come from naming.py, type spellings and parameter renderings from
type_mapping.py. Templates only lay the records out. Members are always
visited in the sorted order given by the class model, so repeated runs over an
unchanged description reproduce both artifacts byte for byte.

Failure semantics:
- SymbolEncodingError is raised while building the records, before anything is
  written to either sink.
- OSError from a sink (or ValueError for a closed stream) propagates unchanged. A failing glue sink does not stop the
  extern sink from being written (and vice versa); the first error is re-raised
  after both attempts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, TextIO, Tuple
import logging

from ..models import EmissionContext, NamespacedClass
from ..naming import (
    check_symbol_collisions,
    constructor_symbol,
    copy_symbol,
    destructor_symbol,
    method_symbol,
)
from ..type_mapping import TypeMapper
from ..utils import TemplateRenderer

logger = logging.getLogger(__name__)

INSTANCE_ARG = "ctx"


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class EmitterConfig:
    """
    Configuration for the dual emitter.

    Template names can be overridden to use custom ones from a templates
    directory (see utils.TemplateRenderer for loader layering).
    """
    glue_prologue_template: str = "glue_prologue.cpp.j2"
    glue_class_template: str = "glue_class.cpp.j2"
    extern_prologue_template: str = "extern_prologue.rs.j2"
    extern_block_template: str = "extern_block.rs.j2"
    # Native headers declaring the wrapped types ("crypto/h256.h", "<cryptopp/sha3.h>")
    includes: Tuple[str, ...] = ()
    # Emits #[link(name = "...")] on every extern block when set
    link_name: str = ""
    # Emits `use libc::{...};` in the extern prologue
    libc_import: bool = True


# --------------------------
# Emitter
# --------------------------

class DualEmitter:
    """
    Emit the native trampolines and the foreign declarations of classes.

    Usage:
        emitter = DualEmitter()
        with EmissionContext.in_memory() as ctx:
            emitter.emit(cls, ctx)
            glue_text, extern_text = ctx.getvalue()

    The emitter keeps no per-run state; one instance can serve any number of
    contexts.
    """

    def __init__(
        self,
        renderer: Optional[TemplateRenderer] = None,
        config: Optional[EmitterConfig] = None,
        mapper: Optional[TypeMapper] = None,
    ) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.config = config or EmitterConfig()
        self.mapper = mapper or TypeMapper()

    # ---- Public API ----

    def emit(self, cls: NamespacedClass, ctx: EmissionContext) -> None:
        """
        Write the trampolines of ``cls`` to ctx.glue and its extern block to ctx.extern.
        """
        glue_text = self.render_glue(cls)
        extern_text = self.render_extern(cls)
        _write_pair(ctx, glue_text, extern_text)
        logger.debug("Emitted %s", cls.qualified_name)

    def emit_glue(self, cls: NamespacedClass, sink: TextIO) -> None:
        sink.write(self.render_glue(cls))

    def emit_extern(self, cls: NamespacedClass, sink: TextIO) -> None:
        sink.write(self.render_extern(cls))

    def emit_prologue(self, ctx: EmissionContext) -> None:
        """
        Write the per-file preamble: includes on the glue side, the libc import on the extern side.
        """
        _write_pair(ctx, self.render_glue_prologue(), self.render_extern_prologue())

    def emit_all(self, classes: Sequence[NamespacedClass], ctx: EmissionContext) -> None:
        """
        Emit a complete pair of artifacts: prologues, then every class in the given order.
        Raises SymbolCollisionError before writing anything if two members share a symbol.
        """
        check_symbol_collisions(classes)
        glue_parts = [self.render_glue_prologue()]
        extern_parts = [self.render_extern_prologue()]
        for cls in classes:
            glue_parts.append(self.render_glue(cls))
            extern_parts.append(self.render_extern(cls))
        _write_pair(ctx, "\n".join(glue_parts), "\n".join(extern_parts))
        logger.info("Emitted %d class(es)", len(classes))

    # ---- Rendering ----

    def render_glue(self, cls: NamespacedClass) -> str:
        context = self.glue_context(cls)
        return _terminated(self.renderer.render(self.config.glue_class_template, context))

    def render_extern(self, cls: NamespacedClass) -> str:
        context = self.extern_context(cls)
        return _terminated(self.renderer.render(self.config.extern_block_template, context))

    def render_glue_prologue(self) -> str:
        context = {"includes": list(self.config.includes)}
        return _terminated(self.renderer.render(self.config.glue_prologue_template, context))

    def render_extern_prologue(self) -> str:
        use_line = ""
        if self.config.libc_import:
            use_line = "use libc::{" + ", ".join(self.mapper.foreign_imports()) + "};"
        context = {"use_line": use_line}
        return _terminated(self.renderer.render(self.config.extern_prologue_template, context))

    # ---- Member records ----

    def glue_context(self, cls: NamespacedClass) -> Dict[str, Any]:
        """
        Template context for the native side. Symbols are computed first so that
        invalid identifiers fail before any type is spelled.
        """
        ns, name = cls.namespace, cls.name
        mapper = self.mapper
        destructor = destructor_symbol(ns, name)
        qname = cls.qualified_name

        constructors: List[Dict[str, Any]] = []
        for variant, ctor in cls.spec.sorted_constructors():
            constructors.append({
                "variant": variant,
                "symbol": constructor_symbol(ns, name, variant),
                "params": mapper.native_params(ctor.parameters),
                "args": mapper.forward_args(ctor.parameters),
            })

        copy: Optional[Dict[str, Any]] = None
        if cls.spec.copyable:
            copy = {
                "symbol": copy_symbol(ns, name),
                "params": [f"{qname} const* {INSTANCE_ARG}"],
            }

        methods: List[Dict[str, Any]] = []
        for method_name, method in cls.spec.sorted_methods():
            sig = method.signature
            instance = f"{qname} const* {INSTANCE_ARG}" if method.is_const else f"{qname}* {INSTANCE_ARG}"
            call = f"{INSTANCE_ARG}->{method_name}({mapper.forward_arg_list(sig.parameters)})"
            methods.append({
                "name": method_name,
                "symbol": method_symbol(ns, name, method_name),
                "return_type": mapper.native(sig.return_type),
                "returns": not sig.return_type.is_void,
                "params": [instance] + mapper.native_params(sig.parameters),
                "call": call,
                "is_const": method.is_const,
            })
            logger.debug("glue: %s::%s (%d parameter(s))", qname, method_name, sig.arity)

        return {
            "cls": {"qualified_name": qname, "name": name, "namespace": list(ns)},
            "constructors": constructors,
            "copy": copy,
            "destructor": {
                "symbol": destructor,
                "params": [f"{qname}* {INSTANCE_ARG}"],
            },
            "methods": methods,
        }

    def extern_context(self, cls: NamespacedClass) -> Dict[str, Any]:
        """
        Template context for the foreign side: one record per extern function, in
        the same order as the native side.
        """
        ns, name = cls.namespace, cls.name
        mapper = self.mapper
        mut_instance = mapper.foreign_instance_pointer(is_const=False)
        const_instance = mapper.foreign_instance_pointer(is_const=True)

        functions: List[Dict[str, Any]] = []
        for variant, ctor in cls.spec.sorted_constructors():
            functions.append({
                "symbol": constructor_symbol(ns, name, variant),
                "params": mapper.foreign_params(ctor.parameters),
                "return_type": mut_instance,
            })
        if cls.spec.copyable:
            functions.append({
                "symbol": copy_symbol(ns, name),
                "params": [f"{INSTANCE_ARG}: {const_instance}"],
                "return_type": mut_instance,
            })
        functions.append({
            "symbol": destructor_symbol(ns, name),
            "params": [f"{INSTANCE_ARG}: {mut_instance}"],
            "return_type": "",
        })
        for method_name, method in cls.spec.sorted_methods():
            sig = method.signature
            instance = const_instance if method.is_const else mut_instance
            functions.append({
                "symbol": method_symbol(ns, name, method_name),
                "params": [f"{INSTANCE_ARG}: {instance}"] + mapper.foreign_params(sig.parameters),
                "return_type": "" if sig.return_type.is_void else mapper.foreign(sig.return_type),
            })

        return {
            "cls": {"qualified_name": cls.qualified_name, "name": name, "namespace": list(ns)},
            "functions": functions,
            "link_name": self.config.link_name,
        }


# --------------------------
# Helpers
# --------------------------

def _terminated(text: str) -> str:
    """Exactly one trailing newline, whatever the template's ending."""
    return text.rstrip("\n") + "\n"


def _write_pair(ctx: EmissionContext, glue_text: str, extern_text: str) -> None:
    """
    Write both texts; a failing sink does not prevent the other one from being
    written. The first failure is re-raised afterwards.
    """
    errors: List[Exception] = []
    for label, sink, text in (("glue", ctx.glue, glue_text), ("extern", ctx.extern, extern_text)):
        try:
            sink.write(text)
        except (OSError, ValueError) as ex:
            # ValueError: write to a closed stream
            logger.debug("Writing the %s artifact failed: %s", label, ex)
            errors.append(ex)
    if errors:
        raise errors[0]


def emit_classes(
    classes: Iterable[NamespacedClass],
    ctx: EmissionContext,
    config: Optional[EmitterConfig] = None,
    renderer: Optional[TemplateRenderer] = None,
) -> None:
    """Shortcut for DualEmitter(renderer, config).emit_all(list(classes), ctx)."""
    DualEmitter(renderer=renderer, config=config).emit_all(list(classes), ctx)


__all__ = [
    "EmitterConfig",
    "DualEmitter",
    "emit_classes",
    "INSTANCE_ARG",
]

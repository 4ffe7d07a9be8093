#!/usr/bin/env python3
"""
Clang-based import of class descriptions from C++ headers.

This module traverses C++ headers using libclang and produces NamespacedClass
descriptions ready for the dual emitter, so a binding can be generated from
the header that defines the wrapped type instead of a hand-written description.

What gets imported, per class definition:
- Public constructors: arity 0 becomes the default variant, others are named
  after their parameter types (``Integer(long)`` -> variant ``from_long``).
  Copy and move constructors are not imported as variants. A class declaring
  no constructor gets the implicit default one; copyability follows the
  (possibly implicit) copy constructor being public and not deleted.
- Public, non-static, non-operator, non-template instance methods.
- Only members whose types fit the generator's type model are kept
  (void, unsigned char, unsigned int, size_t, long, class/struct types; by value,
  one pointer or one lvalue reference; references never as return types).
  Everything else is skipped with a log message.
- Overloaded methods keep their first declaration.

Requirements:
- Python clang bindings with a loadable libclang (pip install libclang)
- LIBCLANG_PATH may point at a libclang shared library or the directory holding it
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

try:
    from clang import cindex  # type: ignore
except ImportError:  # pragma: no cover
    cindex = None  # Lazy error on use

from ..models import (
    BasicType,
    ClassSpec,
    NamespacedClass,
    PrimitiveKind,
    PrimitiveType,
    Qualifier,
    Signature,
)


# --------------------------
# libclang setup
# --------------------------

def ensure_libclang_loaded() -> None:
    """
    Ensure clang.cindex is importable and honour LIBCLANG_PATH before the
    library is loaded for the first time.
    """
    if cindex is None:
        raise RuntimeError(
            "libclang (clang.cindex) is not available. Install clang Python bindings "
            "(e.g., pip install libclang) and ensure libclang is discoverable."
        )
    libclang_path = os.environ.get("LIBCLANG_PATH")
    if libclang_path and not cindex.Config.loaded:
        if os.path.isfile(libclang_path):
            cindex.Config.set_library_file(libclang_path)
        elif os.path.isdir(libclang_path):
            cindex.Config.set_library_path(libclang_path)
        else:
            logger.warning("LIBCLANG_PATH=%s is not a file or directory; ignoring it", libclang_path)


def _create_index():
    ensure_libclang_loaded()
    return cindex.Index.create()


def parse_translation_unit(header: Path, clang_args: List[str]):
    """
    Parse a single header into a TranslationUnit with options suited to
    declaration-only traversal.
    """
    idx = _create_index()
    args = list(clang_args)
    if "-x" not in args:
        args[:0] = ["-x", "c++"]
    # Silence warnings from system headers
    if not any(a.startswith("-W") for a in args):
        args.append("-Wno-everything")
    tu = idx.parse(
        str(header),
        args=args,
        options=(
            cindex.TranslationUnit.PARSE_SKIP_FUNCTION_BODIES
            | cindex.TranslationUnit.PARSE_INCOMPLETE
        ),
    )
    return tu


# --------------------------
# Helpers
# --------------------------

_SYSTEM_DIR_PREFIXES: Tuple[str, ...] = ("/usr/include", "/usr/local/include")

_SCOPE_KINDS = ("NAMESPACE", "CLASS_DECL", "STRUCT_DECL", "CLASS_TEMPLATE")

# Canonical clang type kinds accepted for each non-custom primitive. size_t is
# recognised by its typedef spelling, its canonical kind depends on the target.
_CANONICAL_KINDS: Dict[PrimitiveKind, Tuple[str, ...]] = {
    PrimitiveKind.VOID: ("VOID",),
    PrimitiveKind.UNSIGNED_CHAR: ("UCHAR", "CHAR_U"),
    PrimitiveKind.UNSIGNED_INT: ("UINT",),
    PrimitiveKind.LONG: ("LONG",),
    PrimitiveKind.SIZE_T: ("UINT", "ULONG", "ULONGLONG"),
}

_VARIANT_TOKENS: Dict[PrimitiveKind, str] = {
    PrimitiveKind.VOID: "void",
    PrimitiveKind.UNSIGNED_CHAR: "uchar",
    PrimitiveKind.UNSIGNED_INT: "uint",
    PrimitiveKind.SIZE_T: "size",
    PrimitiveKind.LONG: "long",
}


def _kind_name(obj: Any) -> str:
    return getattr(getattr(obj, "kind", None), "name", "")


def _is_system_location(loc: Any) -> bool:
    f = getattr(loc, "file", None)
    if f is None:
        return True
    return str(f.name).startswith(_SYSTEM_DIR_PREFIXES)


def _should_consider_location(node: Any, include_filters: Optional[List[str]]) -> bool:
    """
    If filters are provided, only accept nodes whose file path starts with any filter.
    Otherwise, exclude system header locations.
    """
    loc = getattr(node, "location", None)
    if loc is None or loc.file is None:
        return _kind_name(node) in ("NAMESPACE", "TRANSLATION_UNIT")
    fpath = str(Path(str(loc.file.name)).resolve())
    if include_filters:
        return any(fpath.startswith(f) for f in include_filters)
    return not _is_system_location(loc)


def _collect_namespace(cursor: Any) -> List[str]:
    """
    Collect namespaces for a declaration cursor by walking semantic parents.
    """
    ns: List[str] = []
    cur = getattr(cursor, "semantic_parent", None)
    while cur is not None and _kind_name(cur) in _SCOPE_KINDS:
        if _kind_name(cur) == "NAMESPACE" and cur.spelling:
            ns.append(cur.spelling)
        cur = cur.semantic_parent
    ns.reverse()
    return ns


def _qualified_name_from_cursor(decl: Any) -> str:
    """
    Fully qualified name (namespaces and enclosing classes) of a declaration cursor.
    """
    base = getattr(decl, "spelling", None) or ""
    if not base:
        return ""
    parts: List[str] = []
    parent = getattr(decl, "semantic_parent", None)
    while parent is not None and _kind_name(parent) in _SCOPE_KINDS:
        if parent.spelling:
            parts.append(parent.spelling)
        parent = parent.semantic_parent
    parts.reverse()
    return "::".join(parts + [base])


def _is_public(node: Any) -> bool:
    acc = getattr(node, "access_specifier", None)
    return getattr(acc, "name", "") == "PUBLIC"


def _is_deleted(node: Any) -> bool:
    check = getattr(node, "is_deleted_method", None)
    return bool(check()) if callable(check) else False


def basic_type_from_clang_type(tp: Any) -> Optional[BasicType]:
    """
    Map a clang Type onto the generator's type model, or None when it does not fit.

    The spelling decides the shape (qualifier, size_t typedef); the canonical
    type confirms the primitive, so typedefs of unsupported types are rejected.
    """
    try:
        parsed = BasicType.from_spelling(tp.spelling)
    except ValueError:
        return None

    canonical = tp.get_canonical()
    ckind = _kind_name(canonical)
    if ckind in ("POINTER", "LVALUEREFERENCE"):
        base = canonical.get_pointee()
        if parsed.qualifier == Qualifier.VALUE:
            # Pointer hidden behind a typedef: take the shape from the canonical type
            const = base.is_const_qualified()
            if ckind == "POINTER":
                qualifier = Qualifier.CONST_POINTER if const else Qualifier.MUTABLE_POINTER
            else:
                qualifier = Qualifier.CONST_REFERENCE if const else Qualifier.MUTABLE_REFERENCE
            try:
                parsed = BasicType(BasicType.from_spelling(base.spelling).primitive, qualifier)
            except ValueError:
                return None
    elif ckind in ("RVALUEREFERENCE", "MEMBERPOINTER", "CONSTANTARRAY", "INCOMPLETEARRAY"):
        return None
    else:
        base = canonical

    base_kind = _kind_name(base)
    primitive = parsed.primitive
    if primitive.kind == PrimitiveKind.CUSTOM:
        if base_kind != "RECORD":
            return None
        qualified = _qualified_name_from_cursor(base.get_declaration())
        if not qualified:
            return None
        return BasicType(PrimitiveType.custom(qualified), parsed.qualifier)
    if base_kind not in _CANONICAL_KINDS[primitive.kind]:
        return None
    return parsed


def _variant_token(t: BasicType) -> str:
    if t.primitive.kind == PrimitiveKind.CUSTOM:
        token = re.sub(r"\W", "_", t.primitive.name.split("::")[-1]).lower()
    else:
        token = _VARIANT_TOKENS[t.primitive.kind]
    if t.is_pointer:
        token += "_ptr"
    elif t.is_reference:
        token += "_ref"
    return token


def constructor_variant_name(params: List[BasicType]) -> str:
    """
    '' for the default constructor, 'from_<tokens>' otherwise
    (long -> from_long, (unsigned char const*, size_t) -> from_uchar_ptr_size).
    """
    if not params:
        return ""
    return "from_" + "_".join(_variant_token(p) for p in params)


def _map_parameters(node: Any) -> Optional[List[BasicType]]:
    params: List[BasicType] = []
    for arg in node.get_arguments():
        bt = basic_type_from_clang_type(arg.type)
        if bt is None or bt.is_void:
            logger.debug("Unsupported parameter type '%s' in %s", arg.type.spelling, node.displayname)
            return None
        params.append(bt)
    return params


def _import_constructor(node: Any, spec: ClassSpec, class_qname: str) -> None:
    if getattr(node, "is_move_constructor", lambda: False)() or node.is_copy_constructor():
        return
    params = _map_parameters(node)
    if params is None:
        logger.info("Skipping constructor %s::%s (unsupported parameter types)", class_qname, node.displayname)
        return
    base = constructor_variant_name(params)
    variant = base
    suffix = 2
    while variant in spec.constructors:
        variant = f"{base}_{suffix}"
        suffix += 1
    if variant != base:
        logger.warning("Constructor variant %r of %s already taken; using %r", base, class_qname, variant)
    spec.add_constructor(variant, params)


def _is_move_assignment(node: Any) -> bool:
    if node.spelling != "operator=":
        return False
    args = list(node.get_arguments())
    return len(args) == 1 and _kind_name(args[0].type) == "RVALUEREFERENCE"


def _import_method(node: Any, spec: ClassSpec, class_qname: str) -> None:
    name = node.spelling or ""
    if name.startswith("operator") or node.is_static_method():
        logger.debug("Skipping %s::%s (operator or static method)", class_qname, name)
        return
    if name in spec.methods:
        logger.warning("Skipping overload %s::%s; only the first declaration is bound", class_qname, node.displayname)
        return

    ret = basic_type_from_clang_type(node.result_type)
    if ret is None or ret.is_reference:
        logger.info("Skipping %s::%s (unsupported return type '%s')", class_qname, name, node.result_type.spelling)
        return
    params = _map_parameters(node)
    if params is None:
        logger.info("Skipping %s::%s (unsupported parameter types)", class_qname, node.displayname)
        return
    spec.add_method(name, Signature(ret, params), is_const=bool(node.is_const_method()))


def _import_class(node: Any) -> NamespacedClass:
    """
    Compiler-generated members are not in the AST: without any declared
    constructor the class still gets the default variant, and the implicit copy
    constructor counts unless a declared copy constructor is hidden or deleted,
    or a move constructor or move assignment is declared.
    """
    namespace = _collect_namespace(node)
    qname = "::".join(namespace + [node.spelling])
    spec = ClassSpec()
    abstract = bool(getattr(node, "is_abstract_record", lambda: False)())

    declared_ctor = False
    declared_copy = False
    copy_usable = True
    for child in node.get_children():
        ck = _kind_name(child)
        if ck == "CONSTRUCTOR":
            declared_ctor = True
            if child.is_copy_constructor():
                declared_copy = True
                copy_usable = _is_public(child) and not _is_deleted(child)
            elif getattr(child, "is_move_constructor", lambda: False)():
                copy_usable = copy_usable and declared_copy
        elif ck == "CXX_METHOD" and _is_move_assignment(child):
            copy_usable = copy_usable and declared_copy
        if ck not in ("CONSTRUCTOR", "CXX_METHOD"):
            continue
        if not _is_public(child) or _is_deleted(child):
            continue
        if ck == "CONSTRUCTOR":
            if abstract:
                continue
            _import_constructor(child, spec, qname)
        else:
            _import_method(child, spec, qname)

    if abstract:
        logger.info("%s is abstract; no constructors imported", qname)
        return NamespacedClass(namespace=tuple(namespace), name=node.spelling, spec=spec)

    if not declared_ctor:
        logger.debug("%s declares no constructor; binding the implicit default constructor", qname)
        spec.add_constructor("")
    spec.copyable = copy_usable
    return NamespacedClass(namespace=tuple(namespace), name=node.spelling, spec=spec)


def _collect_class_decls(
    tu: Any,
    include_filters: Optional[List[str]],
    exclude_class_regex: Optional[re.Pattern],
) -> Dict[str, NamespacedClass]:
    """
    Traverse the TU and import every eligible class definition, keyed by qualified name.
    """
    found: Dict[str, NamespacedClass] = {}

    def visit(node: Any) -> None:
        if not _should_consider_location(node, include_filters):
            return

        kind_name = _kind_name(node)
        if kind_name in ("CLASS_DECL", "STRUCT_DECL"):
            if not node.is_definition() or not node.spelling:
                return
            if _kind_name(node.semantic_parent) not in ("NAMESPACE", "TRANSLATION_UNIT"):
                # Nested types cannot be addressed by a namespace path
                logger.info("Skipping nested %s '%s'", kind_name.lower(), node.spelling)
                return
            if exclude_class_regex is not None and exclude_class_regex.search(node.spelling):
                logger.warning("Excluding class '%s' due to exclude regex", node.spelling)
                return
            cls = _import_class(node)
            if cls.qualified_name not in found:
                found[cls.qualified_name] = cls
            return

        for c in node.get_children():
            visit(c)

    visit(tu.cursor)
    return found


# --------------------------
# Public API
# --------------------------

def collect_classes_from_headers(
    headers: Iterable[Path],
    clang_args: List[str],
    include_filters: Optional[List[str]] = None,
    exclude_class_regex: Optional[re.Pattern] = None,
    emit_diagnostics: bool = True,
) -> List[NamespacedClass]:
    """
    Parse headers and return the importable classes, sorted by (namespace, name).

    Parameters:
    - headers: header files to parse (directories must be expanded by the caller).
    - clang_args: command line arguments for clang (include paths, defines, -std, etc.).
    - include_filters: if provided, only classes defined under one of these path prefixes are imported.
    - exclude_class_regex: compiled regular expression excluding classes by name.
    - emit_diagnostics: whether to log clang diagnostics as warnings.
    """
    ensure_libclang_loaded()

    filters = [str(Path(f).resolve()) for f in (include_filters or [])]
    classes: Dict[str, NamespacedClass] = {}

    for header in headers:
        tu = parse_translation_unit(Path(header), clang_args)
        if emit_diagnostics:
            for diag in tu.diagnostics:
                logger.warning("[clang] %s", diag)

        for qname, cls in _collect_class_decls(tu, filters or None, exclude_class_regex).items():
            # A class seen through several headers keeps its first import
            classes.setdefault(qname, cls)

    return sorted(classes.values(), key=lambda c: (c.namespace, c.name))


__all__ = [
    "collect_classes_from_headers",
    "parse_translation_unit",
    "ensure_libclang_loaded",
    "basic_type_from_clang_type",
    "constructor_variant_name",
]

#!/usr/bin/env python3
"""
Load class descriptions from JSON data literals.

Example document:

    {
      "classes": [
        {
          "namespace": ["crypto"],
          "name": "H256",
          "copyable": false,
          "constructors": {"": [], "from_long": ["long"]},
          "methods": {
            "digest_size": {"returns": "unsigned int", "const": true},
            "update": {"params": ["unsigned char const*", "size_t"]}
          }
        }
      ]
    }

"returns" defaults to "void", "params" to [] and "const" to false. Type
spellings are parsed with BasicType.from_spelling; built-in scalars other than
the supported primitives (int, double, uint32_t, ...) are rejected rather than
taken for custom classes.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from .errors import DescriptionError
from .models import BasicType, ClassSpec, NamespacedClass, Signature

logger = logging.getLogger(__name__)


class _DuplicateKey(Exception):
    pass


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    # Member names must be unique; json.loads would silently keep the last one.
    out: Dict[str, Any] = {}
    for key, val in pairs:
        if key in out:
            raise _DuplicateKey(key)
        out[key] = val
    return out


def _expect(location: str, value: Any, kind: type, what: str) -> Any:
    if not isinstance(value, kind):
        raise DescriptionError(location, f"expected {what}, got {type(value).__name__}")
    return value


# Names that can only spell a built-in scalar, never a class passed by value.
_SCALAR_KEYWORDS = frozenset(
    ("bool", "char", "char8_t", "char16_t", "char32_t", "wchar_t", "short", "int",
     "long", "signed", "unsigned", "float", "double")
)
_FIXED_WIDTH = re.compile(r"^(std::)?u?int(8|16|32|64|ptr|max)_t$|^(std::)?(ptrdiff_t|ssize_t)$")


def _parse_type(location: str, spelling: Any) -> BasicType:
    _expect(location, spelling, str, "a type spelling")
    try:
        parsed = BasicType.from_spelling(spelling)
    except ValueError as ex:
        raise DescriptionError(location, str(ex)) from ex
    name = parsed.primitive.name
    if parsed.primitive.is_custom and (_SCALAR_KEYWORDS.intersection(name.split()) or _FIXED_WIDTH.match(name)):
        raise DescriptionError(location, f"built-in type {name!r} is not supported")
    return parsed


def _parse_types(location: str, spellings: Any) -> List[BasicType]:
    _expect(location, spellings, list, "a list of type spellings")
    return [_parse_type(f"{location}[{i}]", s) for i, s in enumerate(spellings)]


def class_from_dict(data: Dict[str, Any], location: str = "class") -> NamespacedClass:
    """
    Build a NamespacedClass from one "classes" entry.
    """
    _expect(location, data, dict, "an object")
    name = _expect(f"{location}.name", data.get("name"), str, "a class name")
    namespace = _expect(f"{location}.namespace", data.get("namespace", []), list, "a list of segments")
    for i, segment in enumerate(namespace):
        _expect(f"{location}.namespace[{i}]", segment, str, "a namespace segment")

    copyable = _expect(f"{location}.copyable", data.get("copyable", False), bool, "a boolean")
    spec = ClassSpec(copyable=copyable)

    ctors = _expect(f"{location}.constructors", data.get("constructors", {}), dict, "an object")
    for variant, params in ctors.items():
        where = f"{location}.constructors[{variant!r}]"
        spec.add_constructor(variant, _parse_types(where, params))

    methods = _expect(f"{location}.methods", data.get("methods", {}), dict, "an object")
    for method_name, desc in methods.items():
        where = f"{location}.methods[{method_name!r}]"
        _expect(where, desc, dict, "an object")
        unknown = set(desc) - {"returns", "params", "const"}
        if unknown:
            raise DescriptionError(where, f"unknown key(s): {', '.join(sorted(unknown))}")
        ret = _parse_type(f"{where}.returns", desc.get("returns", "void"))
        if ret.is_reference:
            raise DescriptionError(f"{where}.returns", "references cannot be returned across the C boundary")
        params = _parse_types(f"{where}.params", desc.get("params", []))
        is_const = _expect(f"{where}.const", desc.get("const", False), bool, "a boolean")
        spec.add_method(method_name, Signature(ret, params), is_const=is_const)

    logger.debug("Loaded %s (%d constructor(s), %d method(s))", name, len(spec.constructors), len(spec.methods))
    return NamespacedClass(namespace=tuple(namespace), name=name, spec=spec)


def classes_from_dict(document: Dict[str, Any], source: str = "<description>") -> List[NamespacedClass]:
    _expect(source, document, dict, "an object")
    entries = _expect(f"{source}: classes", document.get("classes"), list, "a list of classes")
    return [class_from_dict(entry, f"{source}: classes[{i}]") for i, entry in enumerate(entries)]


def load_description(path: Union[str, Path]) -> List[NamespacedClass]:
    """
    Read a JSON description file. Raises DescriptionError for malformed content;
    OSError from reading the file propagates.
    """
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    try:
        document = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
    except json.JSONDecodeError as ex:
        raise DescriptionError(str(p), f"invalid JSON: {ex}") from ex
    except _DuplicateKey as ex:
        raise DescriptionError(str(p), f"duplicate key {ex.args[0]!r}") from ex
    classes = classes_from_dict(document, str(p))
    logger.info("Loaded %d class(es) from %s", len(classes), p)
    return classes


__all__ = [
    "class_from_dict",
    "classes_from_dict",
    "load_description",
]

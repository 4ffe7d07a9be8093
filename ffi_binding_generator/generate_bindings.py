#!/usr/bin/env python3
"""
FFI binding generator for C++ classes

This entrypoint wires together:
- Input collection: JSON class descriptions and/or C++ headers (libclang-based)
- Emitting (Jinja2-based): extern "C" C++ trampolines plus the matching Rust
  extern block, generated from the same class descriptions

Outputs:
- <output_dir>/bindings.cpp  (compile and link into the wrapped library)
- <output_dir>/bindings.rs   (include in the consuming crate)
- <optional> <output_dir>/manifest.json (for introspection)

Usage (example):
  python -m ffi_binding_generator.generate_bindings \
    --description crypto.json \
    --include crypto/h256.h \
    --link-name crypto \
    --output-dir src/generated

  python -m ffi_binding_generator.generate_bindings \
    --headers path/to/include/crypto \
    --clang-args "-Ipath/to/include -std=c++17" \
    --include crypto/h256.h \
    --output-dir src/generated

Notes:
- Importing from headers needs libclang (pip install libclang); LIBCLANG_PATH
  may point at a specific shared library.
"""

from __future__ import annotations

import argparse
import re
import sys
import shlex
from pathlib import Path
from typing import List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)

# Local modules
from .errors import DescriptionError, SymbolCollisionError, SymbolEncodingError
from .loader import load_description
from .models import EmissionContext, GenerationContext, NamespacedClass
from .utils import TemplateRenderer, configure_logging, resolve_log_level, write_text
from .manifest import emit_manifest
from .emitters.dual_emitter import DualEmitter, EmitterConfig

EXIT_OK = 0
EXIT_NOTHING_TO_GENERATE = 2
EXIT_COLLECTION_FAILED = 3
EXIT_SYMBOL_COLLISION = 4
EXIT_EMISSION_FAILED = 5
EXIT_MANIFEST_FAILED = 6

HEADER_SUFFIXES = (".h", ".hpp", ".hh", ".hxx")


# --------------------------
# Helpers
# --------------------------

def discover_header_files(paths: List[str]) -> List[Path]:
    """
    Expand files and directories into a unique list of header files, in the order given.
    """
    results: List[Path] = []
    for p in paths:
        pp = Path(p)
        if pp.is_file() and pp.suffix.lower() in HEADER_SUFFIXES:
            results.append(pp.resolve())
        elif pp.is_dir():
            results.extend(sorted(f for f in pp.rglob("*") if f.suffix.lower() in HEADER_SUFFIXES))
        else:
            logger.warning("Skipping non-existent path: %s", p)

    # De-duplicate preserving order
    seen: set = set()
    unique: List[Path] = []
    for f in results:
        s = str(f.resolve())
        if s in seen:
            continue
        seen.add(s)
        unique.append(Path(s))
    return unique


def split_clang_args(raw: str) -> List[str]:
    try:
        return shlex.split(raw) if raw else []
    except ValueError as ex:
        # Unbalanced quotes
        logger.warning("Falling back to naive clang args split due to parsing error: %s", ex)
        return [a for a in raw.split(" ") if a.strip()]


def collect_classes(ns: argparse.Namespace) -> List[NamespacedClass]:
    """
    Description files first (in the order given), then classes imported from headers.
    A class defined by a description file wins over a header import of the same name.
    """
    classes: List[NamespacedClass] = []
    for path in ns.description:
        classes.extend(load_description(path))

    if ns.headers:
        headers = discover_header_files(ns.headers)
        if not headers:
            logger.warning("No headers found under %s", ", ".join(ns.headers))
        else:
            # libclang is only needed when headers are given
            from .parsing.clang_parser import collect_classes_from_headers

            exclude_re = re.compile(ns.exclude_regex) if ns.exclude_regex else None
            imported = collect_classes_from_headers(
                headers=headers,
                clang_args=split_clang_args(ns.clang_args),
                include_filters=ns.include_filter or None,
                exclude_class_regex=exclude_re,
            )
            described = {c.qualified_name for c in classes}
            for cls in imported:
                if cls.qualified_name in described:
                    logger.info("Using the description of %s instead of the header import", cls.qualified_name)
                    continue
                classes.append(cls)
    return classes


# --------------------------
# CLI
# --------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Generate extern \"C\" C++ trampolines and matching Rust declarations for C++ classes",
    )

    # Inputs
    p.add_argument(
        "--description",
        action="append",
        default=[],
        help="JSON class description file (repeatable).",
    )
    p.add_argument(
        "--headers",
        action="append",
        default=[],
        help="Header file or directory to import classes from (repeatable). Directories are searched for .h/.hpp/.hh/.hxx files.",
    )
    p.add_argument(
        "--clang-args",
        default="",
        help="Additional clang arguments (e.g., -I/path/include -DDEFINE=1 -std=c++17)",
    )
    p.add_argument(
        "--exclude-regex",
        default="",
        help="Regex to exclude imported classes by name (spelling).",
    )
    p.add_argument(
        "--include-filter",
        action="append",
        default=[],
        help="Only import classes whose definition file path starts with any of these prefixes. Repeatable.",
    )

    # Outputs
    p.add_argument(
        "--output-dir",
        default="generated",
        help="Output directory for the generated artifacts.",
    )
    p.add_argument(
        "--glue-name",
        default="bindings.cpp",
        help="File name of the C++ trampolines artifact.",
    )
    p.add_argument(
        "--extern-name",
        default="bindings.rs",
        help="File name of the Rust declarations artifact.",
    )
    p.add_argument(
        "--templates-dir",
        default=None,
        help="Optional templates directory overriding the package templates.",
    )
    p.add_argument(
        "--include",
        action="append",
        default=[],
        help="Header declaring the wrapped classes, emitted as #include in the trampolines (repeatable).",
    )
    p.add_argument(
        "--link-name",
        default="",
        help="Library name for #[link(name = ...)] on the extern blocks.",
    )
    p.add_argument(
        "--no-libc-import",
        action="store_true",
        help="Do not emit the `use libc::{...};` line.",
    )
    p.add_argument(
        "--no-manifest",
        action="store_true",
        help="Do not emit the JSON manifest alongside generated sources.",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Collect and render everything without writing files.",
    )

    # Logging
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for DEBUG)."
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease verbosity (-q for WARNING, -qq for ERROR)."
    )
    p.add_argument(
        "--log-level",
        type=str.upper,
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"],
        default=None,
        help="Explicit log level (overrides -v/-q)."
    )
    p.add_argument(
        "--log-format",
        default="%(levelname)s: %(message)s",
        help="Logging format string."
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Optional file to write logs to."
    )

    return p.parse_args(argv)


def _log_level(ns: argparse.Namespace) -> int:
    if ns.log_level:
        return resolve_log_level(ns.log_level)
    if ns.verbose >= 1:
        return logging.DEBUG
    if ns.quiet >= 2:
        return logging.ERROR
    if ns.quiet == 1:
        return logging.WARNING
    return logging.INFO


# --------------------------
# Main
# --------------------------

def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = parse_args(argv)

    # Configure logging as early as possible
    configure_logging(level=_log_level(ns), to_file=ns.log_file, fmt=ns.log_format)

    ctx = GenerationContext(
        output_dir=Path(ns.output_dir).resolve(),
        templates_dir=Path(ns.templates_dir).resolve() if ns.templates_dir else None,
        glue_name=ns.glue_name,
        extern_name=ns.extern_name,
        dry_run=ns.dry_run,
    )

    if not ns.description and not ns.headers:
        logger.error("Nothing to generate. Provide --description and/or --headers.")
        return EXIT_NOTHING_TO_GENERATE

    # Collect class descriptions
    try:
        classes = collect_classes(ns)
    except (DescriptionError, OSError, RuntimeError, re.error) as ex:
        logger.error("Failed to collect classes: %s", ex)
        return EXIT_COLLECTION_FAILED
    except Exception:
        logger.exception("Failed to collect classes")
        return EXIT_COLLECTION_FAILED

    if not classes:
        logger.error("No classes found to bind.")
        return EXIT_NOTHING_TO_GENERATE

    logger.info("Collected %d class(es)", len(classes))
    for c in classes:
        logger.debug(
            "Class %s: constructors=%d, methods=%d, copyable=%s",
            c.qualified_name, len(c.spec.constructors), len(c.spec.methods), c.spec.copyable,
        )

    # Render both artifacts in memory, then write them
    emitter = DualEmitter(
        renderer=TemplateRenderer(ctx.templates_dir),
        config=EmitterConfig(
            includes=tuple(ns.include),
            link_name=ns.link_name,
            libc_import=not ns.no_libc_import,
        ),
    )
    try:
        with EmissionContext.in_memory() as sinks:
            emitter.emit_all(classes, sinks)
            glue_text, extern_text = sinks.getvalue()
    except SymbolCollisionError as ex:
        logger.error("%s", ex)
        return EXIT_SYMBOL_COLLISION
    except SymbolEncodingError as ex:
        logger.error("Failed to generate bindings: %s", ex)
        return EXIT_EMISSION_FAILED
    except Exception:
        logger.exception("Failed to generate bindings")
        return EXIT_EMISSION_FAILED

    try:
        write_text(ctx.glue_path, glue_text, dry_run=ctx.dry_run)
        write_text(ctx.extern_path, extern_text, dry_run=ctx.dry_run)
    except OSError:
        logger.exception("Failed to write generated files")
        return EXIT_EMISSION_FAILED

    # Optional: emit a JSON manifest of the generation data for debugging/inspection.
    if not ns.no_manifest:
        try:
            emit_manifest(ctx, classes)
        except OSError:
            logger.exception("Failed to emit generation manifest")
            return EXIT_MANIFEST_FAILED

    if ctx.dry_run:
        logger.info("Dry-run complete (no files written).")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

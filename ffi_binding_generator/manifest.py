
import sys
import os
import platform
import shlex
from datetime import datetime, timezone
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import json
from .models import GenerationContext, NamespacedClass
from .naming import symbol_table
from .utils import write_text

import logging
logger = logging.getLogger(__name__)

GENERATOR_NAME = "ffi-binding-generator"
MANIFEST_NAME = "manifest.json"


def _generator_version() -> str:
    try:
        return importlib_metadata.version(GENERATOR_NAME)
    except importlib_metadata.PackageNotFoundError:
        # Running from a source checkout
        return "unknown"


def _class_entry(cls: NamespacedClass) -> Dict[str, Any]:
    entry = cls.to_dict()
    entry["symbols"] = [
        {"role": s.role.value, "member": s.member, "symbol": s.symbol}
        for s in symbol_table(cls)
    ]
    return entry


def build_manifest(
    ctx: GenerationContext,
    classes: Sequence[NamespacedClass],
    argv: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """
    Collect generator metadata, invocation, environment and the symbol table of
    every emitted class into a JSON-serializable dict.
    """
    argv = list(sys.argv if argv is None else argv)
    command_line = " ".join(shlex.quote(a) for a in argv) if argv else ""

    env_info = {
        "python_version": sys.version,
        "python_executable": sys.executable,
        "platform": platform.platform(),
        "system": platform.system(),
        "machine": platform.machine(),
        "cwd": os.getcwd(),
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }

    return {
        # Generator metadata
        "generator": {
            "name": GENERATOR_NAME,
            "version": _generator_version(),
        },

        # Invocation and environment details
        "invocation": {
            "argv": argv,
            "command_line": command_line,
        },
        "environment": env_info,

        # Main configuration snapshot
        "generation": ctx.to_dict(),
        "class_count": len(classes),
        "classes": [_class_entry(c) for c in classes],
    }


def emit_manifest(
    ctx: GenerationContext,
    classes: Sequence[NamespacedClass],
    argv: Optional[Sequence[str]] = None,
) -> Path:
    """
    Write manifest.json next to the generated artifacts. Useful for debugging
    and for build scripts that need the list of exported symbols.
    OSError from writing propagates.
    """
    manifest = build_manifest(ctx, classes, argv)
    manifest_path = ctx.output_dir / MANIFEST_NAME
    content = json.dumps(manifest, indent=2) + "\n"
    write_text(manifest_path, content, dry_run=ctx.dry_run)
    return manifest_path

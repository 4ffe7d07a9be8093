#!/usr/bin/env python3
"""
Shared plumbing: logging setup, the Jinja2 renderer for the artifact templates,
and reproducible file output.

Artifacts are written with Unix newlines, atomically (temp file + rename in the
target directory), and only when their content changed, so build systems that
watch modification times do not rebuild the glue needlessly.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union, TextIO
import logging

from jinja2 import (
    BaseLoader,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateNotFound,
)

logger = logging.getLogger(__name__)

PACKAGE_NAME = "ffi_binding_generator"
DEFAULT_LOG_FORMAT = "%(levelname)s: %(message)s"


def resolve_log_level(level: Optional[Union[int, str]]) -> int:
    """'debug', 'INFO', 10 or None (-> INFO) to a numeric logging level."""
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: Optional[Union[int, str]] = None,
    *,
    to_file: Optional[Union[str, Path]] = None,
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Route all log records to ``stream`` (stderr by default) and, optionally,
    to ``to_file``, replacing whatever handlers the root logger had.
    """
    numeric = resolve_log_level(level)
    formatter = logging.Formatter(fmt or DEFAULT_LOG_FORMAT)

    sinks: List[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if to_file:
        sinks.append(logging.FileHandler(str(to_file), mode="w", encoding="utf-8"))

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    for handler in sinks:
        handler.setFormatter(formatter)
        handler.setLevel(numeric)
        root.addHandler(handler)
    root.setLevel(numeric)
    logging.getLogger(PACKAGE_NAME).setLevel(numeric)


# ----------------------------------------
# Templates
# ----------------------------------------

def _package_templates_loader() -> BaseLoader:
    try:
        return PackageLoader(PACKAGE_NAME, "templates")
    except ValueError:
        # No importable package on the path (e.g. running from a source tree)
        return FileSystemLoader(str(Path(__file__).with_name("templates")))


class TemplateRenderer:
    """
    Renders the artifact templates. A ``templates_dir`` given by the user is
    searched first, so single templates can be overridden by file name.
    """

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        search: List[BaseLoader] = []
        if templates_dir is not None:
            if Path(templates_dir).is_dir():
                search.append(FileSystemLoader(str(templates_dir)))
            else:
                logger.warning("Templates directory %s does not exist; using package templates", templates_dir)
        search.append(_package_templates_loader())

        self.env = Environment(
            loader=ChoiceLoader(search),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )
        self.env.filters.update(
            statement=_filter_statement,
            return_clause=_filter_return_clause,
            include_spec=_filter_include_spec,
        )

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as ex:
            raise RuntimeError(f"Template not found: {template_name}") from ex
        return template.render(**context)


def _filter_statement(expr: str, returns: bool) -> str:
    """
    'return ctx->size();' when a value is returned, 'ctx->reset();' otherwise.
    """
    return f"return {expr};" if returns else f"{expr};"


def _filter_return_clause(foreign_type: str) -> str:
    return f" -> {foreign_type}" if foreign_type else ""


def _filter_include_spec(header: str) -> str:
    """'<vector>' and '"a.h"' are kept as given; bare paths are quoted."""
    header = header.strip()
    return header if header[:1] in ("<", '"') else f'"{header}"'


# ----------------------------------------
# Output files
# ----------------------------------------

def unix_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _unchanged(path: Path, content: str, encoding: str) -> bool:
    if not path.is_file():
        return False
    with open(path, encoding=encoding, newline="") as f:
        return unix_newlines(f.read()) == content


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8", log: bool = True) -> bool:
    """
    Replace ``path`` with ``content`` in one rename. Parent directories are
    created. Returns False, without touching the file, when the content is
    already there.
    """
    path = Path(path)
    content = unix_newlines(content)
    path.parent.mkdir(parents=True, exist_ok=True)
    if _unchanged(path, content, encoding):
        if log:
            logger.debug("[skip] %s (unchanged)", path)
        return False

    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as tmp:
            tmp.write(content)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
    if log:
        logger.info("[write] %s", path)
    return True


def write_text(
    path: Path,
    content: str,
    encoding: str = "utf-8",
    dry_run: bool = False,
    log: bool = True,
) -> bool:
    """atomic_write_text, or only a log line in dry-run mode."""
    if dry_run:
        if log:
            logger.info("[dry-run] write %s", path)
        return False
    return atomic_write_text(Path(path), content, encoding=encoding, log=log)


__all__ = [
    "TemplateRenderer",
    "configure_logging",
    "resolve_log_level",
    "unix_newlines",
    "atomic_write_text",
    "write_text",
]

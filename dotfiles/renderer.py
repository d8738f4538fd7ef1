"""
renderer.py

Responsibility: Scaffold a new package from files already living in the home directory.

Rules:
- The bundled `templates/package/` directory is walked in sorted order.
- Files containing Jinja2 markers are rendered with the package context; others are copied.
- The adopted home files are copied next to the makefile under their home-relative path.

This module does not know about git or the CLI.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError

from dotfiles.errors import RenderError

PACKAGE_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates" / "package"


@dataclass(frozen=True)
class ScaffoldResult:
    package_dir: Path
    rendered_files: int
    adopted_files: list[str]


def _iter_template_files(template_dir: Path) -> list[Path]:
    files: list[Path] = []
    for root, _dirs, filenames in os.walk(template_dir):
        root_path = Path(root)
        for name in filenames:
            files.append(root_path / name)
    files.sort(key=lambda p: str(p.relative_to(template_dir)).replace(os.sep, "/"))
    return files


def render_template_dir(
    *,
    template_dir: str | Path,
    destination_dir: str | Path,
    context: dict[str, Any],
) -> int:
    """
    Render/copy a template directory into destination_dir and return the number of files written.
    """
    tpl_dir = Path(template_dir).resolve()
    dst_dir = Path(destination_dir).resolve()
    if not tpl_dir.is_dir():
        raise RenderError(f"Template directory not found: {tpl_dir}")

    env = Environment(autoescape=False, undefined=StrictUndefined, keep_trailing_newline=True)

    written = 0
    for src_path in _iter_template_files(tpl_dir):
        rel = src_path.relative_to(tpl_dir)
        dst_path = dst_dir / rel
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        text = src_path.read_text(encoding="utf-8")
        if ("{{" in text) or ("{%" in text) or ("{#" in text):
            try:
                out = env.from_string(text).render(**context)
            except TemplateError as e:
                raise RenderError(f"Failed rendering template file: {rel}") from e
            dst_path.write_text(out, encoding="utf-8", newline="\n")
            shutil.copymode(src_path, dst_path)
        else:
            shutil.copy2(src_path, dst_path)
        written += 1
    return written


def home_relative(path: str | Path, home: Path) -> str:
    """
    Normalize a user-supplied path to a home-relative POSIX string.

    Relative paths are taken relative to the home directory, not the current directory.
    """
    text = str(path)
    if text == "~" or text.startswith("~/"):
        text = str(home) + text[1:]
    p = Path(text)
    if not p.is_absolute():
        p = home / p
    p = Path(os.path.normpath(p))
    try:
        rel = p.relative_to(home)
    except ValueError:
        raise RenderError(f"Not inside the home directory {home}: {path}") from None
    if not rel.parts:
        raise RenderError(f"Refusing to adopt the home directory itself: {path}")
    return rel.as_posix()


def scaffold_package(
    *,
    name: str,
    package_dir: str | Path,
    home: str | Path,
    paths: list[str],
    overwrite: bool = False,
    template_dir: str | Path = PACKAGE_TEMPLATE_DIR,
) -> ScaffoldResult:
    """
    Create a package directory holding copies of `paths` and a rendered makefile installing them.
    """
    home_dir = Path(home)
    pkg_dir = Path(package_dir)

    files: list[str] = []
    for raw in paths:
        rel = home_relative(raw, home_dir)
        src = home_dir / rel
        if not src.is_file():
            raise RenderError(f"Not a regular file: {src}")
        if rel not in files:
            files.append(rel)
    if not files:
        raise RenderError("A new package needs at least one file.")

    pkg_dir.mkdir(parents=True, exist_ok=True)
    if not overwrite and any(pkg_dir.iterdir()):
        raise RenderError(f"Package directory is not empty: {pkg_dir} (use --overwrite to allow)")

    for rel in files:
        dst = pkg_dir / rel
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(home_dir / rel, dst)

    rendered = render_template_dir(
        template_dir=template_dir,
        destination_dir=pkg_dir,
        context={"package": name, "files": files},
    )
    return ScaffoldResult(package_dir=pkg_dir, rendered_files=rendered, adopted_files=files)

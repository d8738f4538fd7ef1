"""
packages.py

Responsibility: Find packages in the dotfiles directory and drive make for them.

A package is a subdirectory holding a makefile whose `install` goal copies the
package's files into the home directory. The files a package owns are never
declared anywhere else: they are read back from a dry run of that goal.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from dotfiles.errors import PackageError

logger = logging.getLogger(__name__)

MAKEFILE_NAMES = ("GNUmakefile", "makefile", "Makefile")
INSTALL_GOAL = "install"

# GNU make >= 4.3 quotes as 'x', older releases as `x'.
_REMAKE_RE = re.compile(r"Must remake target [`'](?P<target>.+)'\.\s*$")


@dataclass(frozen=True)
class Package:
    name: str
    path: Path


def _has_makefile(path: Path) -> bool:
    return any((path / name).is_file() for name in MAKEFILE_NAMES)


def _is_real_dir(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()


def discover_packages(dotfiles_dir: str | Path) -> list[Package]:
    """Return every package under dotfiles_dir, sorted by name."""
    root = Path(dotfiles_dir)
    if not root.is_dir():
        return []
    return [
        Package(name=child.name, path=child)
        for child in sorted(root.iterdir(), key=lambda p: p.name)
        if child.is_dir() and not child.name.startswith(".") and _has_makefile(child)
    ]


def package_path(dotfiles_dir: str | Path, name: str) -> Path:
    """Path of package `name`, which must be a single plain path component."""
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise PackageError(f"Invalid package name: {name!r}")
    return Path(dotfiles_dir) / name


def resolve_package(dotfiles_dir: str | Path, name: str) -> Package:
    path = package_path(dotfiles_dir, name)
    if not path.is_dir() or not _has_makefile(path):
        raise PackageError(f"Unknown package: {name} (no makefile in {path})")
    return Package(name=name, path=path)


def parse_remade_targets(output: str, home: Path) -> list[str]:
    """
    Extract home-relative paths from make's `--debug=b` output.

    Targets outside the home directory, relative targets and phony goals are dropped,
    as are directories that hold another listed target (order-only `mkdir` goals).
    Order follows make's output; duplicates are removed.
    """
    seen: dict[str, None] = {}
    for line in output.splitlines():
        m = _REMAKE_RE.search(line)
        if not m:
            continue
        raw = m.group("target")
        if not os.path.isabs(raw):
            continue
        try:
            rel = Path(os.path.normpath(raw)).relative_to(home)
        except ValueError:
            continue
        if rel.parts:
            seen.setdefault(rel.as_posix(), None)
    parents = {parent.as_posix() for p in seen for parent in Path(p).parents}
    return [p for p in seen if p not in parents]


class Builder:
    def __init__(self, home: str | Path, make: str = "make") -> None:
        self.home = Path(home)
        self._make = make

    def _cmd(self, package: Package, *extra: str) -> list[str]:
        return [self._make, "-C", str(package.path), f"HOME={self.home}", *extra]

    def list_files(self, package: Package) -> list[str]:
        """
        Return the home-relative paths the package's install goal would write.
        """
        cmd = self._cmd(package, "--dry-run", "--always-make", "--debug=b", INSTALL_GOAL)
        logger.debug("running %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
        except FileNotFoundError as e:
            raise PackageError(f"make executable not found: {self._make}", exit_code=127) from e
        if proc.returncode != 0:
            raise PackageError(
                f"Listing files of {package.name} failed: {' '.join(cmd)}\n\n{proc.stdout}",
                exit_code=proc.returncode,
            )
        files = [f for f in parse_remade_targets(proc.stdout, self.home) if not _is_real_dir(self.home / f)]
        logger.debug("package %s owns %d file(s)", package.name, len(files))
        return files

    def install(self, package: Package) -> int:
        """
        Run the install goal with inherited stdio and return make's exit code.

        Every target is rebuilt, so files newer than the package copy are overwritten too.
        """
        cmd = self._cmd(package, "--always-make", INSTALL_GOAL)
        logger.info("installing %s", package.name)
        logger.debug("running %s", " ".join(cmd))
        try:
            return subprocess.run(cmd).returncode
        except FileNotFoundError as e:
            raise PackageError(f"make executable not found: {self._make}", exit_code=127) from e

"""
dotfiles package

A small dotfiles manager: the home directory is the work tree of a bare git
repository, and per-package makefiles install files into it.

Key responsibilities are split across modules:
- `config.py`: resolve home, package and repository locations (defaults, YAML file, env, CLI)
- `repo.py`: git commands against the bare repository
- `packages.py`: package lookup and the make wrapper (file listing, install)
- `renderer.py`: scaffold a package makefile from the bundled Jinja2 template
- `github_client.py`: GitHub REST API interactions for `publish`
- `cli.py`: CLI entrypoint and command dispatch
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"

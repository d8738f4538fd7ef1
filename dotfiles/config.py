"""
config.py

Responsibility: Resolve where the home directory, the package directory and the
bare repository live, plus the external tools to call.

Sources, lowest precedence first:
- built-in defaults derived from the home directory
- an optional YAML config file (`DOTFILES_CONFIG` or ~/.config/dotfiles/config.yaml)
- environment variables (`DOTFILES_HOME`, `DOTFILES_DIR`, `DOTFILES_GIT_DIR`)
- CLI overrides

The rest of the package treats the resulting `Config` as the single source of truth.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from dotfiles.errors import ConfigError

ENV_HOME = "DOTFILES_HOME"
ENV_DIR = "DOTFILES_DIR"
ENV_GIT_DIR = "DOTFILES_GIT_DIR"
ENV_CONFIG = "DOTFILES_CONFIG"

DEFAULT_CONFIG_PATH = Path(".config") / "dotfiles" / "config.yaml"


@dataclass(frozen=True)
class GitHubConfig:
    """Where `publish` creates the remote repository."""

    owner: str | None = None
    private: bool = True
    repo_name: str = "dotfiles"


@dataclass(frozen=True)
class Config:
    home: Path
    dotfiles_dir: Path
    git_dir: Path
    git: str = "git"
    make: str = "make"
    github: GitHubConfig = field(default_factory=GitHubConfig)


def _resolve_path(raw: Any, *, home: Path, base: Path | None = None) -> Path:
    text = str(raw).strip()
    if not text:
        raise ConfigError("Empty path in configuration.")
    if text == "~" or text.startswith("~/"):
        text = str(home) + text[1:]
    path = Path(text)
    if not path.is_absolute():
        path = (base or home) / path
    return path.resolve()


def _default_home(env: Mapping[str, str]) -> Path:
    raw = env.get(ENV_HOME) or env.get("HOME")
    if raw:
        return Path(raw).expanduser().resolve()
    return Path.home().resolve()


def load_config_file(path: str | Path) -> dict[str, Any]:
    """
    Read a YAML config file. A missing file yields an empty mapping.
    """
    p = Path(path)
    if not p.exists():
        return {}
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {p} must be a mapping at the top level.")
    return data


def load_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, str | None] | None = None,
) -> Config:
    """
    Build a `Config` from defaults, the config file, the environment and CLI overrides.

    `overrides` accepts the keys `home`, `dotfiles_dir` and `git_dir`; None values are ignored.
    """
    env = os.environ if env is None else env
    cli = {k: v for k, v in (overrides or {}).items() if v}

    home = _resolve_path(cli["home"], home=Path.cwd()) if "home" in cli else _default_home(env)

    if config_path is not None:
        config_file = _resolve_path(config_path, home=home, base=Path.cwd())
    else:
        config_file = _resolve_path(env.get(ENV_CONFIG) or home / DEFAULT_CONFIG_PATH, home=home)
    data = load_config_file(config_file)

    gh_raw = data.get("github") or {}
    if not isinstance(gh_raw, dict):
        raise ConfigError("`github` must be a mapping when provided.")
    owner = gh_raw.get("owner")
    if owner is not None:
        owner = str(owner).strip() or None
    private = gh_raw.get("private", True)
    if not isinstance(private, bool):
        raise ConfigError(f"`github.private` must be true or false, not {private!r}.")
    github = GitHubConfig(
        owner=owner,
        private=private,
        repo_name=str(gh_raw.get("repo_name") or "dotfiles").strip(),
    )

    def pick(key: str, env_key: str, default: Path) -> Path:
        raw = cli.get(key) or env.get(env_key) or data.get(key)
        return _resolve_path(raw, home=home) if raw else default

    return Config(
        home=home,
        dotfiles_dir=pick("dotfiles_dir", ENV_DIR, home / ".dotfiles"),
        git_dir=pick("git_dir", ENV_GIT_DIR, home / ".dotfiles.git"),
        git=str(data.get("git") or "git"),
        make=str(data.get("make") or "make"),
        github=github,
    )

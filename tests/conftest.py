import shutil
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
requires_make = pytest.mark.skipif(shutil.which("make") is None, reason="make not installed")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    for key in ("DOTFILES_HOME", "DOTFILES_DIR", "DOTFILES_GIT_DIR", "DOTFILES_CONFIG", "GITHUB_TOKEN"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "dotfiles-tests")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "dotfiles-tests@example.invalid")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "dotfiles-tests")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "dotfiles-tests@example.invalid")
    yield


@pytest.fixture
def home(tmp_path: Path) -> Path:
    return (tmp_path / "home").resolve()


def write_package(home: Path, name: str, files: dict[str, str]) -> Path:
    """Create ~/.dotfiles/<name> with the given files and a makefile installing them."""
    pkg = home / ".dotfiles" / name
    pkg.mkdir(parents=True)
    for rel, content in files.items():
        (pkg / rel).parent.mkdir(parents=True, exist_ok=True)
        (pkg / rel).write_text(content, encoding="utf-8")
    targets = " ".join(f"$(HOME)/{rel}" for rel in files)
    (pkg / "Makefile").write_text(
        "MAKEFLAGS += --no-builtin-rules\n"
        ".SUFFIXES:\n"
        ".PHONY: install\n"
        f"install: {targets}\n"
        "$(HOME)/%: %\n"
        "\t@mkdir -p $(@D)\n"
        "\tcp $< $@\n",
        encoding="utf-8",
    )
    return pkg

"""
repo.py

Responsibility: Every git invocation against the bare dotfiles repository.

The repository has no working tree of its own; each command runs as
`git --git-dir=<git_dir> --work-tree=<home> ...` from inside the home directory,
with paths given as home-relative pathspecs.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Iterable
from pathlib import Path

from dotfiles.errors import RepoError

logger = logging.getLogger(__name__)

UNTRACKED = "untracked"
MODIFIED = "modified"

_URL_CREDENTIALS_RE = re.compile(r"(https?://)[^/\s@]+@")


def _redact(text: str) -> str:
    """Hide credentials embedded in remote URLs."""
    return _URL_CREDENTIALS_RE.sub(r"\1***@", text)


class DotfilesRepo:
    def __init__(self, git_dir: str | Path, work_tree: str | Path, git: str = "git") -> None:
        self.git_dir = Path(git_dir)
        self.work_tree = Path(work_tree)
        self._git = git

    def _cmd(self, args: Iterable[str]) -> list[str]:
        return [self._git, f"--git-dir={self.git_dir}", f"--work-tree={self.work_tree}", *args]

    def _run(self, args: Iterable[str], *, ok_codes: tuple[int, ...] = (0,)) -> subprocess.CompletedProcess[str]:
        """
        Run a git command with captured output, raising a RepoError on an unexpected exit code.
        """
        cmd = self._cmd(args)
        shown = _redact(" ".join(cmd))
        logger.debug("running %s", shown)
        try:
            proc = subprocess.run(cmd, cwd=str(self.work_tree), stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        except FileNotFoundError as e:
            raise RepoError(f"git executable not found: {self._git}", exit_code=127) from e
        if proc.returncode not in ok_codes:
            raise RepoError(
                f"Command failed: {shown}\n\n{_redact(proc.stderr or proc.stdout)}",
                exit_code=proc.returncode,
            )
        return proc

    def exists(self) -> bool:
        return (self.git_dir / "HEAD").is_file()

    def require(self) -> None:
        if not self.exists():
            raise RepoError(f"No dotfiles repository at {self.git_dir} (run `dotfiles init` first)")

    def init(self) -> None:
        """
        Create (or re-initialize) the bare repository.

        Untracked files are hidden from `status`, otherwise the whole home directory shows up.
        """
        cmd = [self._git, "init", "--bare", str(self.git_dir)]
        logger.debug("running %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
        except FileNotFoundError as e:
            raise RepoError(f"git executable not found: {self._git}", exit_code=127) from e
        if proc.returncode != 0:
            raise RepoError(f"Command failed: {' '.join(cmd)}\n\n{proc.stdout}", exit_code=proc.returncode)
        self._run(["config", "status.showUntrackedFiles", "no"])
        logger.info("initialized dotfiles repository at %s", self.git_dir)

    def passthrough(self, args: Iterable[str]) -> int:
        """Run git with inherited stdio and return its exit code."""
        cmd = self._cmd(args)
        logger.debug("running %s", " ".join(cmd))
        try:
            return subprocess.run(cmd, cwd=str(self.work_tree)).returncode
        except FileNotFoundError as e:
            raise RepoError(f"git executable not found: {self._git}", exit_code=127) from e

    def _ls_files(self, flags: list[str], paths: list[str]) -> set[str]:
        if not paths:
            return set()
        out = self._run(["ls-files", "-z", *flags, "--", *paths]).stdout
        return {p for p in out.split("\0") if p}

    def tracked_files(self, paths: list[str]) -> set[str]:
        return self._ls_files([], paths)

    def modified_files(self, paths: list[str]) -> set[str]:
        """Tracked paths whose work tree copy differs from the index."""
        return self._ls_files(["-m"], paths)

    def conflicts(self, paths: list[str]) -> dict[str, str]:
        """
        Map each path that an install would overwrite without a way back to the reason.

        A path conflicts when it exists in the home directory and git either does not
        track it or tracks it with unstaged changes. Missing paths never conflict.
        """
        present = [p for p in paths if os.path.lexists(self.work_tree / p)]
        tracked = self.tracked_files(present)
        modified = self.modified_files(present)
        out: dict[str, str] = {}
        for p in present:
            if p not in tracked:
                out[p] = UNTRACKED
            elif p in modified:
                out[p] = MODIFIED
        return out

    def add(self, paths: list[str]) -> None:
        if paths:
            self._run(["add", "--", *paths])

    def has_staged_changes(self, paths: list[str]) -> bool:
        if not paths:
            return False
        proc = self._run(["diff", "--cached", "--quiet", "--", *paths], ok_codes=(0, 1))
        return proc.returncode == 1

    def commit(self, message: str) -> None:
        self._run(["commit", "-m", message])

    def current_branch(self) -> str:
        return self._run(["symbolic-ref", "--short", "HEAD"]).stdout.strip()

    def remotes(self) -> list[str]:
        return [line for line in self._run(["remote"]).stdout.splitlines() if line]

    def set_remote(self, name: str, url: str) -> None:
        if name in self.remotes():
            self._run(["remote", "set-url", name, url])
        else:
            self._run(["remote", "add", name, url])

    def push(self, url: str, branch: str) -> None:
        self._run(["push", url, f"HEAD:refs/heads/{branch}"])

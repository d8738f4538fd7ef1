"""Exception hierarchy shared by the dotfiles modules.

Each module raises its own subclass; the CLI catches `DotfilesError` and turns
it into a message on stderr plus a non-zero exit code.
"""

from __future__ import annotations


class DotfilesError(RuntimeError):
    """Base exception for all dotfiles errors."""

    def __init__(self, message: str = "", *, exit_code: int = 1) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class ConfigError(DotfilesError):
    """Invalid configuration file or settings."""


class RepoError(DotfilesError):
    """A git command against the dotfiles repository failed."""


class PackageError(DotfilesError):
    """Unknown package or a failing make invocation."""


class RenderError(DotfilesError):
    """Package scaffolding could not be rendered."""


class GitHubError(DotfilesError):
    """GitHub REST API request failed."""

    def __init__(self, message: str = "", *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction used by `dotfiles publish`.

This module is the only place that builds api.github.com endpoints and reads their
error payloads. Pushing is git's job and lives in `repo.py`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests

from dotfiles.errors import GitHubError

USER_AGENT = "dotfiles"


@dataclass(frozen=True)
class RepoInfo:
    owner: str
    name: str
    html_url: str
    clone_url: str
    default_branch: str
    created: bool = False


class GitHubClient:
    def __init__(self, token: str, api_base: str = "https://api.github.com", timeout: float = 30) -> None:
        if not token.strip():
            raise GitHubError("GitHub token is required (use --github-token or set GITHUB_TOKEN).")
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._viewer: str | None = None

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }

    def _request(self, method: str, path: str, *, json_body: dict[str, Any] | None = None) -> Any:
        url = f"{self._api_base}{path}"
        try:
            r = requests.request(method, url, headers=self._headers(), json=json_body, timeout=self._timeout)
        except requests.RequestException as e:
            raise GitHubError(f"GitHub API request failed {method} {path}: {e}") from e
        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            raise GitHubError(
                f"GitHub API error {r.status_code} {method} {path}: {payload.get('message', payload)}",
                status_code=r.status_code,
            )
        if r.status_code == 204:
            return None
        return r.json()

    @staticmethod
    def _repo_info(owner: str, name: str, data: dict[str, Any], *, created: bool) -> RepoInfo:
        return RepoInfo(
            owner=owner,
            name=name,
            html_url=data["html_url"],
            clone_url=data["clone_url"],
            default_branch=data.get("default_branch") or "main",
            created=created,
        )

    def viewer_login(self) -> str:
        """Login of the account the token belongs to."""
        if self._viewer is None:
            viewer = self._request("GET", "/user")
            self._viewer = str(viewer.get("login") or "")
            if not self._viewer:
                raise GitHubError("Could not determine the authenticated GitHub user.")
        return self._viewer

    def get_repo(self, owner: str, name: str) -> RepoInfo | None:
        """
        Return RepoInfo if the repo exists and is accessible; otherwise None.
        """
        try:
            data = self._request("GET", f"/repos/{owner}/{name}")
        except GitHubError as e:
            if e.status_code == 404:
                return None
            raise
        return self._repo_info(owner, name, data, created=False)

    def create_repo(self, *, owner: str, name: str, private: bool, description: str = "") -> RepoInfo:
        """
        Create a repository under the authenticated user when `owner` is that user,
        otherwise under the organization `owner`.
        """
        body = {
            "name": name,
            "private": private,
            "description": description,
            "auto_init": False,
            "has_issues": False,
            "has_projects": False,
            "has_wiki": False,
        }
        if owner == self.viewer_login():
            data = self._request("POST", "/user/repos", json_body=body)
        else:
            data = self._request("POST", f"/orgs/{owner}/repos", json_body=body)
        return self._repo_info(owner, name, data, created=True)

    def ensure_repo(self, *, owner: str | None, name: str, private: bool, description: str = "") -> RepoInfo:
        """Look the repository up and create it when missing. `owner` defaults to the token's user."""
        owner = owner or self.viewer_login()
        existing = self.get_repo(owner, name)
        if existing is not None:
            return existing
        return self.create_repo(owner=owner, name=name, private=private, description=description)


def tokenized_https_remote(clone_url: str, token: str) -> str:
    """
    Turn https://github.com/owner/name.git into a URL carrying the token.

    Used only for the push itself; the stored `origin` keeps the plain clone URL.
    """
    return clone_url.replace("https://", f"https://x-access-token:{token}@", 1)

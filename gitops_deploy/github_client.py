"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints
- Sends HTTP requests to api.github.com
- Interprets GitHub API responses / error payloads

Everything else (key lifetime, git commands, orchestration) should use this client.
"""

from __future__ import annotations

import threading
from typing import Any

import requests

from gitops_deploy.errors import RemoteError
from gitops_deploy.logging import get_logger

logger = get_logger(__name__)

DEPLOY_KEY_TITLE = "Bitrise CI GitOps Integration"

_URL_PREFIX = "git@github.com:"
_URL_SUFFIX = ".git"


def github_owner_repo(url: str) -> tuple[str, str]:
    """
    Split `git@github.com:<owner>/<repo>.git` into (owner, repo).

    Only the SSH form is supported since git talks to the remote with a deploy key.
    """
    if not url.startswith(_URL_PREFIX):
        raise RemoteError(f"must start with {_URL_PREFIX!r}")
    rest = url[len(_URL_PREFIX) :]
    if not rest.endswith(_URL_SUFFIX):
        raise RemoteError(f"must end with {_URL_SUFFIX!r}")
    rest = rest[: -len(_URL_SUFFIX)]

    parts = rest.split("/")
    if len(parts) != 2 or not all(parts):
        raise RemoteError("must separate owner from repo with one /")
    return parts[0], parts[1]


class GitHubClient:
    def __init__(
        self,
        repo_url: str,
        token: str,
        *,
        api_base: str = "https://api.github.com",
        session: requests.Session | None = None,
        cancel_event: threading.Event | None = None,
        timeout: float = 30,
    ) -> None:
        if not token.strip():
            raise RemoteError("GitHub token is required.")
        try:
            self.owner, self.repo_name = github_owner_repo(repo_url)
        except RemoteError as e:
            raise RemoteError(f"owner and repo from url ({repo_url!r})") from e
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._session = session or requests.Session()
        self._cancel_event = cancel_event or threading.Event()
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "gitops-deploy",
        }

    def _repo_path(self, suffix: str) -> str:
        return f"/repos/{self.owner}/{self.repo_name}{suffix}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        honour_cancel: bool = True,
    ) -> Any:
        if honour_cancel and self._cancel_event.is_set():
            raise RemoteError(f"GitHub API request cancelled: {method} {path}")
        url = f"{self._api_base}{path}"
        try:
            r = self._session.request(
                method, url, headers=self._headers(), json=json_body, timeout=self._timeout
            )
        except requests.RequestException as e:
            raise RemoteError(f"GitHub API request failed {method} {path}") from e
        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            message = payload.get("message", payload) if isinstance(payload, dict) else payload
            raise RemoteError(
                f"GitHub API error {r.status_code} {method} {path}: {message}",
                status_code=r.status_code,
            )
        if r.status_code == 204:
            return None
        return r.json()

    def add_deploy_key(self, public_key: str) -> int:
        """
        Register `public_key` (authorized_keys line) as a read/write deploy key.
        """
        try:
            data = self._request(
                "POST",
                self._repo_path("/keys"),
                json_body={"title": DEPLOY_KEY_TITLE, "key": public_key, "read_only": False},
            )
        except RemoteError as e:
            raise RemoteError("create deploy key") from e
        key_id = int(data["id"])
        logger.info("Added deploy key %d to %s/%s", key_id, self.owner, self.repo_name)
        return key_id

    def delete_deploy_key(self, key_id: int) -> None:
        """
        Remove a deploy key. A key that no longer exists counts as deleted.

        Runs on teardown, so it is sent even after the client was cancelled.
        """
        try:
            self._request("DELETE", self._repo_path(f"/keys/{key_id}"), honour_cancel=False)
        except RemoteError as e:
            if e.status_code == 404:
                logger.debug("Deploy key %d was already deleted", key_id)
                return
            raise RemoteError(f"delete deploy key ({key_id})") from e
        logger.info("Deleted deploy key %d from %s/%s", key_id, self.owner, self.repo_name)

    def open_pull_request(self, *, title: str, body: str, head: str, base: str) -> str:
        """
        Open a pull request from `head` into `base` and return its HTML URL.
        """
        # Title is required by GitHub. Generate one if it's omitted.
        if not title:
            title = f"Merge {head}"
        try:
            data = self._request(
                "POST",
                self._repo_path("/pulls"),
                json_body={"title": title, "body": body, "head": head, "base": base},
            )
        except RemoteError as e:
            raise RemoteError("create pull request") from e
        html_url = str(data["html_url"])
        logger.info("Opened pull request %s", html_url)
        return html_url

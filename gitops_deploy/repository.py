"""
repository.py

Responsibility: A temporary local clone of the GitOps repository.

All git commands run inside the clone (per-process `cwd`) and authenticate with the
ephemeral deploy key only. The clone owns its working tree and closes the SSH key
when it is closed itself.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import datetime

from gitops_deploy.errors import GitError, TeardownError
from gitops_deploy.github_client import GitHubClient
from gitops_deploy.logging import get_logger
from gitops_deploy.ssh_key import SSHKey

logger = get_logger(__name__)

CLEAN_STATUS_MARKER = "nothing to commit, working tree clean"
BRANCH_NAME_FORMAT = "ci-%Y-%m-%dT%H-%M-%S"


@dataclass(frozen=True)
class RemoteConfig:
    """A git remote and the branch to track."""

    url: str
    branch: str


def new_branch_name(now: datetime | None = None) -> str:
    """Branch name for pull-request mode, based on the local time."""
    return (now or datetime.now()).strftime(BRANCH_NAME_FORMAT)


class Repository:
    def __init__(
        self,
        *,
        github: GitHubClient,
        ssh_key: SSHKey,
        remote: RemoteConfig,
        local_path: str,
    ) -> None:
        self._github = github
        self._ssh_key = ssh_key
        self.remote = remote
        self.local_path = local_path
        self._closed = False

    @classmethod
    def clone(cls, *, github: GitHubClient, ssh_key: SSHKey, remote: RemoteConfig) -> Repository:
        """
        Clone the configured branch of `remote` into a new temporary directory.

        The temporary directory is removed again if cloning fails. The SSH key is
        left to the caller in that case.
        """
        local_path = tempfile.mkdtemp(prefix="gitops-deploy-repo-")
        repo = cls(github=github, ssh_key=ssh_key, remote=remote, local_path=local_path)
        try:
            repo.git("clone", "--branch", remote.branch, "--single-branch", remote.url, ".")
        except BaseException:
            try:
                shutil.rmtree(local_path)
            except OSError as e:
                logger.warning("remove temporary repository (%s): %s", local_path, e)
            raise
        logger.info("Cloned %s (branch %s)", remote.url, remote.branch)
        return repo

    def _git_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["GIT_SSH_COMMAND"] = f"ssh -i {self._ssh_key.private_key_path} -o IdentitiesOnly=yes"
        # Status parsing relies on untranslated git output.
        env["LC_ALL"] = "C"
        return env

    def git(self, *args: str) -> str:
        """
        Run a git subcommand inside the clone and return its combined stdout/stderr.
        """
        cmd = ["git", *args]
        logger.debug("Running %s in %s", cmd, self.local_path)
        try:
            completed = subprocess.run(
                cmd,
                cwd=self.local_path,
                env=self._git_env(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise GitError(list(args), -1, str(e)) from e
        if completed.returncode != 0:
            raise GitError(list(args), completed.returncode, completed.stdout)
        return completed.stdout

    def working_tree_clean(self) -> bool:
        return CLEAN_STATUS_MARKER in self.git("status")

    def checkout_new_branch(self) -> str:
        branch = new_branch_name()
        self.git("checkout", "-b", branch)
        logger.info("Checked out new branch %s", branch)
        return branch

    def commit_and_push(self, message: str) -> None:
        """
        Stage all changes, commit them to the current branch and push to the remote.
        """
        for args in (
            ("add", "--all"),
            ("commit", "-m", message),
            ("push", "--all", "-u"),
        ):
            self.git(*args)
        logger.info("Pushed changes to %s", self.remote.url)

    def current_branch(self) -> str:
        return self.git("rev-parse", "--abbrev-ref", "HEAD").strip()

    def open_pull_request(self, title: str, body: str) -> str:
        """
        Open a pull request from the current branch into the configured branch.
        """
        head = self.current_branch()
        return self._github.open_pull_request(
            title=title,
            body=body,
            head=head,
            base=self.remote.branch,
        )

    def close(self) -> list[Exception]:
        """
        Remove the local clone, then close the SSH key. Every failure is returned.
        """
        if self._closed:
            return []
        self._closed = True

        errors: list[Exception] = []
        try:
            shutil.rmtree(self.local_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            errors.append(TeardownError(f"remove temporary repository ({self.local_path!r})", e))

        errors.extend(self._ssh_key.close())
        return errors

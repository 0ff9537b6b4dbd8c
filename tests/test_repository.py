"""Tests for the local clone, driven against a real upstream repository on disk."""

from __future__ import annotations

import os
import re
import subprocess
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from gitops_deploy.errors import GitError, TeardownError
from gitops_deploy.repository import RemoteConfig, Repository, new_branch_name
from tests._fixtures.fakes import FakeGitHub, FakeSSHKey, git, local_upstream_repo, requires_git

pytestmark = [requires_git, pytest.mark.usefixtures("git_identity")]


def _clone(tmp_path: Path, branch: str) -> tuple[Repository, FakeGitHub, FakeSSHKey, Path]:
    upstream = local_upstream_repo(tmp_path, branch)
    github = FakeGitHub(pr_url="https://example.invalid/pr/15")
    ssh_key = FakeSSHKey(private_key_path=str(tmp_path / "id_rsa"))
    repo = Repository.clone(
        github=github,  # type: ignore[arg-type]
        ssh_key=ssh_key,  # type: ignore[arg-type]
        remote=RemoteConfig(url=str(upstream), branch=branch),
    )
    return repo, github, ssh_key, upstream


@pytest.mark.parametrize("branch", ["master", "staging"])
def test_repository_lifecycle(tmp_path: Path, branch: str) -> None:
    repo, github, ssh_key, upstream = _clone(tmp_path, branch)

    # The repository is clean if there weren't any changes.
    assert repo.working_tree_clean() is True
    assert repo.current_branch() == branch

    # It's dirty after making some changes.
    Path(repo.local_path, "empty.yaml").write_text("empty: true\n", encoding="utf-8")
    assert repo.working_tree_clean() is False

    # Commit and push changes to the upstream repository.
    repo.commit_and_push("test commit")
    assert repo.working_tree_clean() is True
    assert "test commit" in git(upstream, "log", "-1", "--format=%s", branch)

    # Create a new branch, push it and open a pull request from it.
    new_branch = repo.checkout_new_branch()
    Path(repo.local_path, "another.yaml").write_text("another: true\n", encoding="utf-8")
    repo.commit_and_push("another commit")
    assert "another commit" in git(upstream, "log", "-1", "--format=%s", new_branch)

    pr_url = repo.open_pull_request("", "")
    assert pr_url == "https://example.invalid/pr/15"
    [pr] = github.pull_requests
    assert pr["base"] == branch
    assert pr["head"] == new_branch == repo.current_branch()
    assert pr["head"] != pr["base"]

    # Closing the repository closes the key as well.
    assert ssh_key.closed is False
    assert repo.close() == []
    assert ssh_key.closed is True
    assert not os.path.exists(repo.local_path)


def test_new_branch_name_is_zero_padded_local_time() -> None:
    assert new_branch_name(datetime(2021, 3, 4, 5, 6, 7)) == "ci-2021-03-04T05-06-07"
    assert re.fullmatch(r"ci-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}", new_branch_name())


def test_git_commands_use_the_ephemeral_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    repo, _github, _ssh_key, _upstream = _clone(tmp_path, "main")
    seen: dict[str, object] = {}

    original_run = subprocess.run

    def recording_run(cmd, **kwargs):  # type: ignore[no-untyped-def]
        seen["cmd"] = cmd
        seen["cwd"] = kwargs.get("cwd")
        seen["ssh"] = kwargs["env"]["GIT_SSH_COMMAND"]
        return original_run(cmd, **kwargs)

    monkeypatch.setattr("gitops_deploy.repository.subprocess.run", recording_run)
    try:
        repo.git("status")
    finally:
        repo.close()

    assert seen["cmd"] == ["git", "status"]
    assert seen["cwd"] == repo.local_path
    assert seen["ssh"] == f"ssh -i {tmp_path / 'id_rsa'} -o IdentitiesOnly=yes"


def test_git_error_carries_command_output(tmp_path: Path) -> None:
    repo, _github, _ssh_key, _upstream = _clone(tmp_path, "main")
    try:
        with pytest.raises(GitError) as excinfo:
            repo.git("checkout", "does-not-exist")
    finally:
        repo.close()

    assert excinfo.value.git_args == ["checkout", "does-not-exist"]
    assert excinfo.value.returncode != 0
    assert "does-not-exist" in excinfo.value.output
    assert "does-not-exist" in str(excinfo.value)


def test_commit_without_changes_fails(tmp_path: Path) -> None:
    repo, _github, _ssh_key, _upstream = _clone(tmp_path, "main")
    try:
        with pytest.raises(GitError) as excinfo:
            repo.commit_and_push("nothing here")
    finally:
        repo.close()

    assert excinfo.value.git_args[0] == "commit"


def test_failed_clone_removes_temporary_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[str] = []
    original_mkdtemp = tempfile.mkdtemp

    def recording_mkdtemp(*args, **kwargs):  # type: ignore[no-untyped-def]
        path = original_mkdtemp(*args, **kwargs)
        created.append(path)
        return path

    monkeypatch.setattr(tempfile, "mkdtemp", recording_mkdtemp)
    ssh_key = FakeSSHKey()

    with pytest.raises(GitError):
        Repository.clone(
            github=FakeGitHub(),  # type: ignore[arg-type]
            ssh_key=ssh_key,  # type: ignore[arg-type]
            remote=RemoteConfig(url=str(tmp_path / "no-such-upstream"), branch="main"),
        )

    assert len(created) == 1
    assert not os.path.exists(created[0])
    # Releasing the key is left to the caller.
    assert ssh_key.closed is False


def test_close_accumulates_key_errors(tmp_path: Path) -> None:
    key_error = TeardownError("delete github key (1)")
    upstream = local_upstream_repo(tmp_path, "main")
    ssh_key = FakeSSHKey(errors=[key_error])
    repo = Repository.clone(
        github=FakeGitHub(),  # type: ignore[arg-type]
        ssh_key=ssh_key,  # type: ignore[arg-type]
        remote=RemoteConfig(url=str(upstream), branch="main"),
    )

    assert repo.close() == [key_error]
    assert not os.path.exists(repo.local_path)
    assert repo.close() == []

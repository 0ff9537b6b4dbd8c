"""
update_files.py

Responsibility: Update the files of a GitOps repository from rendered templates.

Changes are either pushed to the configured branch directly or pushed to a new
branch and opened as a pull request for manual approval. In the latter case the
pull request URL is exported as PR_URL. Closing the repository is the caller's job.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from gitops_deploy.env_exporter import EnvExporter
from gitops_deploy.errors import UpdateFilesError
from gitops_deploy.logging import get_logger

if TYPE_CHECKING:
    from gitops_deploy.renderer import TemplatesRenderer
    from gitops_deploy.repository import Repository

logger = get_logger(__name__)

PR_URL_ENV = "PR_URL"


def update_files(
    *,
    repo: Repository,
    export_env: EnvExporter,
    renderer: TemplatesRenderer,
    pull_request: bool,
    pull_request_title: str = "",
    pull_request_body: str = "",
    commit_message: str,
) -> str | None:
    """
    Render templates into `repo` and publish the changes.

    Returns the pull request URL in pull-request mode, otherwise None.
    """
    try:
        renderer.render_all_files()
    except Exception as e:
        raise UpdateFilesError("render all files") from e

    # If rendering the templates didn't cause any changes, we are done here.
    try:
        clean = repo.working_tree_clean()
    except Exception as e:
        raise UpdateFilesError("check if working tree is clean") from e
    if clean:
        logger.info("Deployment configuration didn't change, nothing to push.")
        return None

    if pull_request:
        # Changes go to a new branch in pull-request mode.
        try:
            repo.checkout_new_branch()
        except Exception as e:
            raise UpdateFilesError("checkout new branch") from e

    try:
        repo.commit_and_push(commit_message)
    except Exception as e:
        raise UpdateFilesError("git push") from e

    if not pull_request:
        return None

    try:
        pr_url = repo.open_pull_request(pull_request_title, pull_request_body)
    except Exception as e:
        raise UpdateFilesError("open pull request") from e

    try:
        export_env(PR_URL_ENV, pr_url)
    except Exception as e:
        raise UpdateFilesError(f"export {PR_URL_ENV} env var") from e
    return pr_url

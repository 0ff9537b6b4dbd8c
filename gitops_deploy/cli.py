"""
cli.py

Responsibility: CLI entrypoint for the GitOps deploy step.

High-level flow (single invocation per CI run):
1) Read config from environment variables -> `Config`
2) Create GitHub client and upload a temporary deploy key
3) Clone the deploy branch into a temporary directory
4) Render templates into the clone, then push or open a pull request
5) Always delete the clone and the deploy key, whatever happened before

This module should orchestrate behavior but keep concerns isolated:
- Config: `config.py`
- GitHub API: `github_client.py`
- Key lifetime: `ssh_key.py`
- Git commands: `repository.py`
- Rendering: `renderer.py`
- Push vs. pull request: `update_files.py`
"""

from __future__ import annotations

import argparse
import signal
import threading

from gitops_deploy import __version__
from gitops_deploy.config import Config, load_config
from gitops_deploy.env_exporter import EnvExporter, envman_export
from gitops_deploy.errors import GitOpsError, format_error_chain
from gitops_deploy.github_client import GitHubClient
from gitops_deploy.logging import configure_logging, get_logger
from gitops_deploy.renderer import TemplatesRenderer
from gitops_deploy.repository import RemoteConfig, Repository
from gitops_deploy.ssh_key import SSHKey
from gitops_deploy.update_files import update_files

logger = get_logger(__name__)


class CLIError(GitOpsError):
    pass


def _log_close_errors(errors: list[Exception]) -> None:
    for err in errors:
        logger.warning("close repo resource: %s", format_error_chain(err))


def run(
    cfg: Config,
    *,
    export_env: EnvExporter = envman_export,
    cancel_event: threading.Event | None = None,
) -> str | None:
    """
    Run the whole pipeline for `cfg`. Returns the pull request URL, if one was opened.
    """
    try:
        github = GitHubClient(cfg.deploy_repository_url, cfg.deploy_pat, cancel_event=cancel_event)
    except GitOpsError as e:
        raise CLIError("new github client") from e

    # Temporary SSH key (used by git commands).
    try:
        ssh_key = SSHKey.create(github)
    except Exception as e:
        raise CLIError("new temporary ssh key") from e

    repo: Repository | None = None
    try:
        try:
            repo = Repository.clone(
                github=github,
                ssh_key=ssh_key,
                remote=RemoteConfig(url=cfg.deploy_repository_url, branch=cfg.deploy_branch),
            )
        except Exception as e:
            raise CLIError("new repository") from e

        renderer = TemplatesRenderer(
            source_folder=cfg.templates_folder,
            vars=cfg.vars,
            destination_repo=repo,
            destination_folder=cfg.deploy_folder,
        )
        try:
            return update_files(
                repo=repo,
                export_env=export_env,
                renderer=renderer,
                pull_request=cfg.pull_request,
                pull_request_title=cfg.pull_request_title,
                pull_request_body=cfg.pull_request_body,
                commit_message=cfg.commit_message,
            )
        except GitOpsError as e:
            raise CLIError("update files in gitops repo") from e
    finally:
        # The repository closes the key as well; close the key alone if cloning failed.
        _log_close_errors(repo.close() if repo is not None else ssh_key.close())


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="gitops-deploy",
        description="Render deployment templates into a GitOps repository and push or open a PR. "
        "All step inputs are read from environment variables.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging (git commands etc.)")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=bool(args.verbose))

    # SIGTERM aborts before the next GitHub request; teardown still runs.
    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGTERM, lambda _signum, _frame: cancel_event.set())
    try:
        try:
            cfg = load_config()
        except GitOpsError as e:
            raise CLIError("new gitops config") from e
        run(cfg, export_env=envman_export, cancel_event=cancel_event)
    except Exception as e:  # noqa: BLE001
        logger.error(format_error_chain(e))
        return 1
    finally:
        signal.signal(signal.SIGTERM, previous_handler)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

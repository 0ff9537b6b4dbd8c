"""
gitops_deploy package

This package renders deployment templates into a GitOps repository from CI.

Key responsibilities are split across modules:
- `config.py`: read and validate step inputs from environment variables
- `github_client.py`: isolated GitHub REST API interactions (deploy keys / pull requests)
- `ssh_key.py`: ephemeral RSA deploy key, uploaded for the duration of a run
- `repository.py`: temporary local clone driven through git subprocesses
- `renderer.py`: strict template rendering into the local clone
- `update_files.py`: orchestration (render -> detect changes -> push or open PR)
- `env_exporter.py`: publish outputs to later CI steps via envman
- `cli.py`: entrypoint wiring everything together and guaranteeing teardown
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"

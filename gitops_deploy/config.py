"""
config.py

Responsibility: Load step inputs from environment variables into a typed, immutable model.

The CI host passes every input as an environment variable. Required inputs are
validated here so the rest of the pipeline can treat `Config` as the single
source of truth.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from gitops_deploy.errors import ConfigError
from gitops_deploy.logging import get_logger

logger = get_logger(__name__)

ENV_DEPLOY_REPOSITORY_URL = "deploy_repository_url"
ENV_DEPLOY_PATH = "deploy_path"
ENV_DEPLOY_BRANCH = "deploy_branch"
ENV_PULL_REQUEST = "pull_request"
ENV_PULL_REQUEST_TITLE = "pull_request_title"
ENV_PULL_REQUEST_BODY = "pull_request_body"
ENV_VARS = "vars"
ENV_TEMPLATES_FOLDER_PATH = "templates_folder_path"
ENV_DEPLOY_PAT = "deploy_pat"
ENV_COMMIT_MESSAGE = "commit_message"

_REQUIRED = (
    ENV_DEPLOY_REPOSITORY_URL,
    ENV_DEPLOY_PATH,
    ENV_DEPLOY_BRANCH,
    ENV_DEPLOY_PAT,
    ENV_COMMIT_MESSAGE,
)

_TRUE_VALUES = {"true", "yes", "1"}
_FALSE_VALUES = {"false", "no", "0", ""}


@dataclass(frozen=True)
class Config:
    """Step inputs used to render templates and update the GitOps repository."""

    deploy_repository_url: str
    deploy_branch: str
    deploy_folder: str
    templates_folder: Path
    commit_message: str
    deploy_pat: str = field(repr=False)
    vars: Mapping[str, str] = field(default_factory=dict)
    pull_request: bool = False
    pull_request_title: str = ""
    pull_request_body: str = ""

    def __post_init__(self) -> None:
        # Read-only copy of the caller's mapping.
        object.__setattr__(self, "vars", MappingProxyType(dict(self.vars)))


def parse_vars(s: str) -> dict[str, str]:
    """
    Deserialize the `map[k1:v1 k2:v2]` form the CI host uses for key/value inputs.

    Keys must not contain spaces, values can. A value word ending in `:` is
    read as the start of a new key.
    """
    if s.startswith("map["):
        s = s[len("map[") :]
    if s.endswith("]"):
        s = s[: -len("]")]

    result: dict[str, str] = {}
    key = ""
    value = ""
    buf: list[str] = []
    for ch in s:
        if ch == ":":
            if key:
                result[key] = value
            key = "".join(buf)
            buf = []
            value = ""
        elif ch == " ":
            value = _append_word(value, "".join(buf))
            buf = []
        else:
            buf.append(ch)

    value = _append_word(value, "".join(buf))
    if key:
        result[key] = value
    return result


def _append_word(sentence: str, word: str) -> str:
    if sentence == "":
        return word
    return f"{sentence} {word}"


def _parse_bool(name: str, raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name}: invalid boolean value {raw!r} (expected true or false)")


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    """
    Build a `Config` from environment variables.

    Required inputs:
    - deploy_repository_url, deploy_path, deploy_branch, deploy_pat, commit_message

    Optional inputs:
    - pull_request (bool, default false), pull_request_title, pull_request_body
    - vars (`map[...]` form), templates_folder_path (must be an existing directory)
    """
    env = os.environ if environ is None else environ

    missing = [name for name in _REQUIRED if not env.get(name, "").strip()]
    if missing:
        raise ConfigError(f"required inputs are missing or empty: {', '.join(missing)}")

    templates_raw = env.get(ENV_TEMPLATES_FOLDER_PATH, "").strip()
    templates_folder = Path(templates_raw)
    if not templates_raw or not templates_folder.is_dir():
        raise ConfigError(f"{ENV_TEMPLATES_FOLDER_PATH}: not a directory: {templates_raw!r}")

    cfg = Config(
        deploy_repository_url=env[ENV_DEPLOY_REPOSITORY_URL].strip(),
        deploy_branch=env[ENV_DEPLOY_BRANCH].strip(),
        deploy_folder=env[ENV_DEPLOY_PATH].strip(),
        templates_folder=templates_folder,
        commit_message=env[ENV_COMMIT_MESSAGE],
        deploy_pat=env[ENV_DEPLOY_PAT].strip(),
        vars=parse_vars(env.get(ENV_VARS, "")),
        pull_request=_parse_bool(ENV_PULL_REQUEST, env.get(ENV_PULL_REQUEST, "")),
        pull_request_title=env.get(ENV_PULL_REQUEST_TITLE, "").strip(),
        pull_request_body=env.get(ENV_PULL_REQUEST_BODY, ""),
    )
    logger.debug("Loaded config: %s", cfg)
    return cfg

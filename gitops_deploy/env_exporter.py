"""Export step outputs to later CI steps."""

from __future__ import annotations

import subprocess
from typing import Callable

from gitops_deploy.errors import ExportError
from gitops_deploy.logging import get_logger

logger = get_logger(__name__)

EnvExporter = Callable[[str, str], None]


def envman_export(name: str, value: str) -> None:
    """
    Export `name=value` with envman so following steps can read it.
    """
    cmd = ["envman", "add", "--key", name, "--value", value]
    try:
        subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
    except subprocess.CalledProcessError as e:
        raise ExportError(f"export {name} with envman: {e.stdout.strip()}") from e
    except OSError as e:
        raise ExportError(f"export {name} with envman") from e
    logger.info("Exported %s=%s", name, value)

"""Error types raised across the deployment pipeline."""

from __future__ import annotations

from typing import Sequence


class GitOpsError(RuntimeError):
    """Base error for GitOps deployment operations."""


class ConfigError(GitOpsError):
    """Raised when step inputs are missing or invalid."""


class RemoteError(GitOpsError):
    """Raised when the GitHub API rejects or fails a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RenderError(GitOpsError):
    """Raised when a template cannot be parsed, executed or written."""


class ExportError(GitOpsError):
    """Raised when an output variable cannot be exported."""


class UpdateFilesError(GitOpsError):
    """Raised when a step of the update pipeline fails."""


class TeardownError(GitOpsError):
    """Collected when releasing a resource fails; never raised past teardown."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class GitError(GitOpsError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, output: str) -> None:
        self.git_args = list(args)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"run command {self.git_args}: exit status {returncode} (output: {output.strip()})"
        )


def format_error_chain(exc: BaseException) -> str:
    """Render an exception and its explicit causes as `outer: inner: root`."""
    messages: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current) or type(current).__name__
        messages.append(text)
        current = current.__cause__
    return ": ".join(messages)

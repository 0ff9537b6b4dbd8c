"""
renderer.py

Responsibility: Render a folder of deployment templates into the local clone.

Rules:
- Only the immediate entries of the templates folder are rendered, in sorted order.
- Templates reference variables as `{{ .name }}`; plain Jinja2 `{{ name }}` works too.
- A reference to a variable that was not provided is an error (StrictUndefined).
- Variables that no template references are ignored.
- Non-text/binary files are copied byte-for-byte.
- Templates with CRLF line endings are rendered with CRLF line endings.

This module intentionally does NOT know about GitHub or git.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Mapping

from jinja2 import Environment, StrictUndefined, TemplateError
from jinja2.ext import Extension

from gitops_deploy.errors import RenderError
from gitops_deploy.logging import get_logger

if TYPE_CHECKING:
    from gitops_deploy.repository import Repository

logger = get_logger(__name__)

_DOT_REFERENCE = re.compile(r"\{\{(-?)\s*\.([A-Za-z_][A-Za-z0-9_]*)\s*(-?)\}\}")

# Name of the variable lookup function visible to templates.
VARS_LOOKUP = "__var__"


class DotReferenceExtension(Extension):
    """Rewrite `{{ .name }}` into a call that looks `name` up in the vars mapping.

    The lookup keeps names like `true`, `none` or `range` from resolving to
    Jinja2 literals and globals.
    """

    def preprocess(self, source: str, name: str | None, filename: str | None = None) -> str:
        return _DOT_REFERENCE.sub(_rewrite_reference, source)


def _rewrite_reference(match: re.Match[str]) -> str:
    left, key, right = match.groups()
    return f'{{{{{left} {VARS_LOOKUP}("{key}") {right}}}}}'


def _vars_lookup(vars: Mapping[str, str]) -> Callable[[str], Any]:
    def lookup(key: str) -> Any:
        if key in vars:
            return vars[key]
        return StrictUndefined(name=key)

    return lookup


def new_environment(newline_sequence: str = "\n") -> Environment:
    return Environment(
        autoescape=False,
        newline_sequence=newline_sequence,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        extensions=[DotReferenceExtension],
    )


@dataclass
class TemplatesRenderer:
    """Renders every template of `source_folder` into `destination_folder` of a clone."""

    source_folder: str | Path
    vars: Mapping[str, str]
    destination_repo: Repository
    destination_folder: str
    _env: Environment = field(default_factory=new_environment, init=False, repr=False)
    _crlf_env: Environment = field(
        default_factory=lambda: new_environment("\r\n"), init=False, repr=False
    )

    @property
    def destination_dir(self) -> Path:
        return Path(self.destination_repo.local_path) / self.destination_folder

    def render_all_files(self) -> list[str]:
        """
        Render all templates and return the rendered file names.
        """
        src_dir = Path(self.source_folder)
        try:
            names = sorted(entry.name for entry in src_dir.iterdir())
        except OSError as e:
            raise RenderError(f"read files in {str(src_dir)!r}") from e

        for name in names:
            try:
                self._render_file(name)
            except RenderError as e:
                raise RenderError(f"render file {name!r}") from e

        logger.info("Rendered %d template(s) into %s", len(names), self.destination_folder)
        return names

    def _render_file(self, name: str) -> None:
        src_path = Path(self.source_folder) / name
        dst_path = self.destination_dir / name

        if src_path.is_dir():
            raise RenderError(f"template {str(src_path)!r} is a directory")

        try:
            dst_path.parent.mkdir(parents=True, exist_ok=True)
            raw = src_path.read_bytes()
        except OSError as e:
            raise RenderError(f"prepare destination file {str(dst_path)!r}") from e

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            # Copy binary files byte-for-byte.
            self._write(dst_path, raw)
            return

        try:
            env = self._crlf_env if "\r\n" in text else self._env
            out = env.from_string(text).render({**self.vars, VARS_LOOKUP: _vars_lookup(self.vars)})
        except TemplateError as e:
            raise RenderError(f"execute template {str(src_path)!r}") from e

        self._write(dst_path, out.encode("utf-8"))

    @staticmethod
    def _write(dst_path: Path, data: bytes) -> None:
        try:
            dst_path.write_bytes(data)
        except OSError as e:
            raise RenderError(f"create destination file {str(dst_path)!r}") from e

"""
ssh_key.py

Responsibility: Lifetime of the temporary SSH key git uses to reach the GitOps repository.

A fresh RSA key pair is generated for every run. The private half is written to an
owner-only temp file (passed to ssh via GIT_SSH_COMMAND), the public half is uploaded
as a deploy key. Both are released by `close()`; the repository that uses the key
closes it on teardown.
"""

from __future__ import annotations

import os
import tempfile

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from gitops_deploy.errors import TeardownError
from gitops_deploy.github_client import GitHubClient
from gitops_deploy.logging import get_logger

logger = get_logger(__name__)

KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537


def generate_key_pair() -> tuple[bytes, str]:
    """
    Generate an RSA key pair.

    Returns the private key as a PKCS#1 PEM block (`RSA PRIVATE KEY`) and the public
    key as an authorized_keys line.
    """
    private_key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=KEY_SIZE)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_line = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    )
    return private_pem, public_line.decode("ascii") + "\n"


class SSHKey:
    """A deploy key registered on GitHub together with its local private half."""

    def __init__(self, *, private_key_path: str, github: GitHubClient, key_id: int) -> None:
        self._private_key_path = private_key_path
        self._github = github
        self.key_id = key_id
        self._closed = False

    @classmethod
    def create(cls, github: GitHubClient) -> SSHKey:
        """
        Generate a key pair, store the private half and upload the public half.

        Nothing is left behind if any step fails.
        """
        private_pem, public_line = generate_key_pair()

        # mkstemp creates the file with 0600 permissions.
        fd, path = tempfile.mkstemp(prefix="gitops-deploy-", suffix=".pem")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(private_pem)
            key_id = github.add_deploy_key(public_line)
        except BaseException:
            try:
                os.remove(path)
            except OSError as e:
                logger.warning("remove private key (%s): %s", path, e)
            raise

        logger.debug("Private key written to %s", path)
        return cls(private_key_path=path, github=github, key_id=key_id)

    @property
    def private_key_path(self) -> str:
        return self._private_key_path

    def close(self) -> list[Exception]:
        """
        Delete the deploy key and the private key file.

        Both are attempted even if one fails; every failure is returned.
        """
        if self._closed:
            return []
        self._closed = True

        errors: list[Exception] = []
        try:
            self._github.delete_deploy_key(self.key_id)
        except Exception as e:  # noqa: BLE001
            errors.append(TeardownError(f"delete github key ({self.key_id})", e))

        try:
            os.remove(self._private_key_path)
        except OSError as e:
            errors.append(TeardownError(f"remove private key ({self._private_key_path!r})", e))

        return errors

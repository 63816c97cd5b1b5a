"""A file-permission-protected store of named secrets."""

from __future__ import annotations

import os
import re

import yaml

_VALID_NAME = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")


class SecretError(Exception):
    """Raised when a secret cannot be loaded, saved or found."""


def validate_name(name: str) -> None:
    """Check that a secret name is safe as a map key and a file name."""
    if _VALID_NAME.fullmatch(name) is None:
        raise SecretError(
            f'invalid secret name "{name}": must match {_VALID_NAME.pattern}'
        )


class Store:
    """Named secrets kept in a YAML file readable only by its owner."""

    def __init__(self, path: str, secrets: dict[str, str] | None = None) -> None:
        self.path = path
        self._secrets: dict[str, str] = dict(secrets or {})

    @classmethod
    def load(cls, path: str) -> Store:
        """Read secrets from *path*; a missing file gives an empty store."""
        try:
            f = open(path, "rb")
        except FileNotFoundError:
            return cls(path)
        except OSError as exc:
            raise SecretError(f"opening secrets file: {exc}") from exc

        with f:
            perm = os.fstat(f.fileno()).st_mode & 0o777
            if perm & 0o077:
                raise SecretError(
                    f"secrets file {path} has permissions {perm:04o}; "
                    "expected 0600 (owner-only)"
                )
            try:
                data = f.read()
            except OSError as exc:
                raise SecretError(f"reading secrets file: {exc}") from exc

        try:
            parsed = yaml.load(data, Loader=yaml.BaseLoader)
        except yaml.YAMLError as exc:
            raise SecretError(f"parsing secrets file: {exc}") from exc

        if parsed is None or parsed == "":
            return cls(path)
        if not isinstance(parsed, dict) or not all(
            isinstance(v, str) for v in parsed.values()
        ):
            raise SecretError("parsing secrets file: expected a mapping of strings")
        return cls(path, parsed)

    def save(self) -> None:
        """Write the secrets to disk with owner-only permissions."""
        data = yaml.safe_dump(self._secrets, default_flow_style=False, sort_keys=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)

    def set(self, name: str, value: str) -> None:
        """Store or replace a named secret."""
        validate_name(name)
        self._secrets[name] = value

    def get(self, name: str) -> str:
        """Return the value of a named secret."""
        try:
            return self._secrets[name]
        except KeyError:
            raise SecretError(f'secret "{name}" not found') from None

    def delete(self, name: str) -> None:
        """Remove a named secret."""
        if name not in self._secrets:
            raise SecretError(f'secret "{name}" not found')
        del self._secrets[name]

    def list(self) -> list[str]:
        """Return all secret names in sorted order."""
        return sorted(self._secrets)
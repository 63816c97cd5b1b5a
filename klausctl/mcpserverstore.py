"""Registry of managed MCP server definitions persisted as YAML."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


class McpServerStoreError(Exception):
    """Raised when the registry cannot be read or a server is unknown."""


@dataclass(frozen=True)
class McpServerDef:
    """An MCP server URL with an optional secret name for authentication."""

    url: str = ""
    secret: str = ""

    def _to_yaml(self) -> dict[str, str]:
        data = {"url": self.url}
        if self.secret:
            data["secret"] = self.secret
        return data


def _parse_def(name: str, raw: object) -> McpServerDef:
    if raw is None:
        return McpServerDef()
    if not isinstance(raw, dict):
        raise McpServerStoreError(
            f'parsing MCP servers file: entry "{name}" is not a mapping'
        )
    url = raw.get("url")
    secret = raw.get("secret")
    return McpServerDef(
        url="" if url is None else str(url),
        secret="" if secret is None else str(secret),
    )


class Store:
    """Named MCP server definitions stored in a YAML file."""

    def __init__(self, path: str, servers: dict[str, McpServerDef] | None = None) -> None:
        self.path = path
        self._servers: dict[str, McpServerDef] = dict(servers or {})

    @classmethod
    def load(cls, path: str) -> Store:
        """Read definitions from *path*; a missing file gives an empty store."""
        try:
            data = Path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            return cls(path)
        except OSError as exc:
            raise McpServerStoreError(f"reading MCP servers file: {exc}") from exc

        try:
            parsed = yaml.safe_load(data)
        except yaml.YAMLError as exc:
            raise McpServerStoreError(f"parsing MCP servers file: {exc}") from exc

        if parsed is None:
            return cls(path)
        if not isinstance(parsed, dict):
            raise McpServerStoreError("parsing MCP servers file: expected a mapping")
        return cls(path, {str(k): _parse_def(str(k), v) for k, v in parsed.items()})

    def save(self) -> None:
        """Write the definitions to disk."""
        data = yaml.safe_dump(
            {name: d._to_yaml() for name, d in self._servers.items()},
            default_flow_style=False,
            sort_keys=True,
        )
        Path(self.path).write_text(data, encoding="utf-8")

    def add(self, name: str, definition: McpServerDef) -> None:
        """Register or replace a server definition."""
        self._servers[name] = definition

    def get(self, name: str) -> McpServerDef:
        """Return the definition registered under *name*."""
        try:
            return self._servers[name]
        except KeyError:
            raise McpServerStoreError(f'MCP server "{name}" not found') from None

    def remove(self, name: str) -> None:
        """Delete the definition registered under *name*."""
        if name not in self._servers:
            raise McpServerStoreError(f'MCP server "{name}" not found')
        del self._servers[name]

    def list(self) -> list[str]:
        """Return all server names in sorted order."""
        return sorted(self._servers)

    def all(self) -> dict[str, McpServerDef]:
        """Return a copy of all definitions keyed by name."""
        return dict(self._servers)
"""Plugin and personality artifact helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Iterable

import yaml

from klausctl.config import Plugin

PLUGIN_MOUNT_ROOT = "/var/lib/klaus/plugins/"


class ArtifactError(Exception):
    """Raised when an artifact cannot be read or parsed."""


@dataclass(frozen=True)
class PluginReference:
    """A plugin named by OCI repository with an optional tag or digest."""

    repository: str = ""
    tag: str = ""
    digest: str = ""

    def ref(self) -> str:
        """Return the full OCI reference; a digest wins over a tag."""
        return build_ref(plugin_from_reference(self))


@dataclass
class PersonalitySpec:
    """The parsed contents of a personality.yaml file."""

    description: str = ""
    image: str = ""
    plugins: list[PluginReference] = field(default_factory=list)


def short_name(repository: str) -> str:
    """Return the last path segment of an OCI repository."""
    return repository.rstrip("/").rsplit("/", 1)[-1]


def plugin_dirs(plugins: Iterable[Plugin]) -> list[str]:
    """Return the in-container mount paths for the given plugins."""
    return [PLUGIN_MOUNT_ROOT + short_name(p.repository) for p in plugins]


def build_ref(plugin: Plugin) -> str:
    """Return the OCI reference for a plugin; a digest wins over a tag."""
    if plugin.digest:
        return f"{plugin.repository}@{plugin.digest}"
    if plugin.tag:
        return f"{plugin.repository}:{plugin.tag}"
    return plugin.repository


def plugin_from_reference(ref: PluginReference) -> Plugin:
    """Convert a plugin reference into a configured plugin."""
    return Plugin(repository=ref.repository, tag=ref.tag, digest=ref.digest)


def merge_plugins(
    personality_plugins: Iterable[PluginReference] | None,
    user_plugins: Iterable[Plugin] | None,
) -> list[Plugin]:
    """Merge personality plugins after user plugins; user entries win per repository."""
    merged = list(user_plugins or [])
    seen = {p.repository for p in merged}
    for ref in personality_plugins or []:
        if ref.repository in seen:
            continue
        seen.add(ref.repository)
        merged.append(plugin_from_reference(ref))
    return merged


def _text(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    return "" if value is None else str(value)


def _parse_plugin(raw: Any) -> PluginReference:
    if raw is None:
        return PluginReference()
    if not isinstance(raw, dict):
        raise ArtifactError("parsing personality.yaml: plugin entry is not a mapping")
    return PluginReference(
        repository=_text(raw, "repository"),
        tag=_text(raw, "tag"),
        digest=_text(raw, "digest"),
    )


def load_personality_spec(directory: str) -> PersonalitySpec:
    """Read and parse personality.yaml from *directory*."""
    path = os.path.join(directory, "personality.yaml")
    try:
        with open(path, encoding="utf-8") as f:
            data = f.read()
    except OSError as exc:
        raise ArtifactError(f"reading personality.yaml: {exc}") from exc

    try:
        parsed = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise ArtifactError(f"parsing personality.yaml: {exc}") from exc

    if parsed is None:
        return PersonalitySpec()
    if not isinstance(parsed, dict):
        raise ArtifactError("parsing personality.yaml: expected a mapping")

    raw_plugins = parsed.get("plugins") or []
    if not isinstance(raw_plugins, list):
        raise ArtifactError("parsing personality.yaml: plugins must be a list")

    return PersonalitySpec(
        description=_text(parsed, "description"),
        image=_text(parsed, "image"),
        plugins=[_parse_plugin(p) for p in raw_plugins],
    )


def has_soul_file(personality_dir: str) -> bool:
    """Tell whether a personality directory contains SOUL.md."""
    return os.path.exists(os.path.join(personality_dir, "SOUL.md"))
"""Configuration model for a klaus container instance."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Plugin:
    """An OCI plugin reference: repository plus optional tag or digest."""

    repository: str = ""
    tag: str = ""
    digest: str = ""


@dataclass
class Skill:
    """A skill rendered as SKILL.md with YAML frontmatter."""

    content: str = ""
    description: str = ""
    disable_model_invocation: bool = False
    user_invocable: bool = False
    allowed_tools: str = ""
    model: str = ""
    context: Any = None
    agent: str = ""
    argument_hint: str = ""


@dataclass
class AgentFile:
    """A markdown agent definition."""

    content: str = ""


@dataclass
class Hook:
    """A single hook action."""

    type: str = ""
    command: str = ""
    timeout: int = 0


@dataclass
class HookMatcher:
    """A matcher that selects which hooks run for a tool."""

    matcher: str = ""
    hooks: list[Hook] = field(default_factory=list)


@dataclass
class ClaudeConfig:
    """Settings passed to the agent through environment variables."""

    model: str = ""
    system_prompt: str = ""
    append_system_prompt: str = ""
    permission_mode: str = ""
    effort: str = ""
    fallback_model: str = ""
    active_agent: str = ""
    max_turns: int = 0
    max_budget_usd: float = 0.0
    strict_mcp_config: bool = False
    mcp_timeout: int = 0
    max_mcp_output_tokens: int = 0
    include_partial_messages: bool = False
    json_schema: str = ""
    setting_sources: str = ""
    persistent_mode: bool = False
    no_session_persistence: Optional[bool] = None
    tools: list[str] = field(default_factory=list)
    allowed_tools: list[str] = field(default_factory=list)
    disallowed_tools: list[str] = field(default_factory=list)
    settings_file: str = ""
    add_dirs: list[str] = field(default_factory=list)
    load_additional_dirs_memory: Optional[bool] = None
    plugin_dirs: list[str] = field(default_factory=list)


@dataclass
class Config:
    """Full configuration of one instance."""

    workspace: str = ""
    port: int = 0
    env_forward: list[str] = field(default_factory=list)
    env_vars: dict[str, str] = field(default_factory=dict)
    secret_env_vars: dict[str, str] = field(default_factory=dict)
    secret_files: dict[str, str] = field(default_factory=dict)
    claude: ClaudeConfig = field(default_factory=ClaudeConfig)
    agents: dict[str, Any] = field(default_factory=dict)
    mcp_servers: dict[str, Any] = field(default_factory=dict)
    mcp_server_refs: list[str] = field(default_factory=list)
    hooks: dict[str, list[HookMatcher]] = field(default_factory=dict)
    hook_scripts: dict[str, str] = field(default_factory=dict)
    skills: dict[str, Skill] = field(default_factory=dict)
    agent_files: dict[str, AgentFile] = field(default_factory=dict)
    plugins: list[Plugin] = field(default_factory=list)


@dataclass
class Paths:
    """Filesystem locations used when preparing an instance."""

    config_dir: str = ""
    rendered_dir: str = ""
    extensions_dir: str = ""
    plugins_dir: str = ""
    personalities_dir: str = ""
    secrets_file: str = ""
    mcp_servers_file: str = ""


def expand_path(path: str) -> str:
    """Expand a leading ``~`` to the user's home directory."""
    return os.path.expanduser(path)


def ensure_dir(path: str) -> None:
    """Create a directory and its parents if they do not exist."""
    os.makedirs(path, mode=0o755, exist_ok=True)
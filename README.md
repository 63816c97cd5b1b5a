# klausctl

A library of building blocks for running klaus agent instances locally in
Docker or Podman containers.

## Modules

- **`klausctl.config`** – dataclasses describing an instance: `Config`,
  `ClaudeConfig`, `Plugin`, `Skill`, `AgentFile`, `Hook`, `HookMatcher` and
  `Paths`, plus `expand_path` (expands a leading `~`) and `ensure_dir`
  (creates a directory and its parents).
- **`klausctl.secret`** – a YAML store of named secrets. `Store.load(path)`
  returns an empty store when the file is missing and raises `SecretError`
  when the file can be read or written by group or others. `Store.save()`
  creates the file with mode `0600`. `set`, `get`, `delete` and `list`
  (sorted names) manage entries; `validate_name` accepts names that start
  with a letter or digit and continue with letters, digits, `.`, `_` or `-`.
- **`klausctl.mcpserverstore`** – a YAML registry of named MCP servers.
  `McpServerDef` holds a `url` and an optional `secret` name. `Store` offers
  `load`, `save`, `add`, `get`, `remove`, `list` (sorted) and `all` (a copy);
  unknown names raise `McpServerStoreError`.
- **`klausctl.runtime`** – drives the `docker` or `podman` command line.
  `detect()` returns the first one found on `PATH`, preferring docker;
  `new_runtime(name)` returns an `ExecRuntime`, detecting when `name` is
  empty. `ExecRuntime` has `run`, `stop`, `remove`, `status` (empty string
  when the container does not exist), `inspect` (a `ContainerInfo`),
  `images` (an `ImageInfo` list, untagged images left out), `pull`, `logs`
  and `logs_capture`. `build_run_args` shows the arguments `run` would use,
  with environment variables and ports in sorted order. Failures raise
  `ContainerRuntimeError`.
- **`klausctl.artifacts`** – plugin and personality helpers: `short_name`,
  `plugin_dirs` (mount paths under `/var/lib/klaus/plugins/`), `build_ref`
  (a digest wins over a tag), `plugin_from_reference`, `merge_plugins` (user
  plugins first, personality plugins appended unless their repository is
  already present), `load_personality_spec` (reads `personality.yaml` into a
  `PersonalitySpec`) and `has_soul_file`. Errors raise `ArtifactError`.
- **`klausctl.mcpclient`** – an MCP client over streamable HTTP. `Client`
  keeps one initialized session per instance name, pings it before reuse and
  drops it when a tool call fails. `prompt`, `status` and `result` call the
  agent's tools of the same names and return the JSON-RPC result;
  `session_id` returns the cached session's ID; `close` ends every session.
  The client can be used as a context manager. Failures raise
  `McpClientError`.

## Installation

```
pip install klausctl
```

## Example

```python
from klausctl.secret import Store as SecretStore
from klausctl.runtime import RunOptions, Volume, new_runtime
from klausctl.mcpclient import Client

secrets = SecretStore.load("/home/me/.config/klausctl/secrets.yaml")
secrets.set("api-key", "token")
secrets.save()

runtime = new_runtime("")          # docker if present, otherwise podman
opts = RunOptions(
    image="klaus:latest",
    name="klausctl-dev",
    detach=True,
    env_vars={"PORT": "8080"},
    volumes=[Volume("/home/me/src/project", "/workspace")],
    ports={8080: 8080},
)
container_id = runtime.run(opts)
print(runtime.status("klausctl-dev"))

with Client("0.1.0") as client:
    print(client.status("dev", "http://localhost:8080/mcp"))
```

## What this package does not do

- It has no command-line tool; it is used from Python code.
- It does not write the files mounted into a container (skill files, agent
  files, MCP server configuration, hook settings and scripts), and it does not
  turn a `Config` into environment variables, volume mounts or `RunOptions`;
  callers build `RunOptions` themselves.
- It does not pull plugins or personalities from a registry;
  `load_personality_spec` and `has_soul_file` work on directories already on
  disk.

## Running the tests

```
pip install -e ".[test]"
pytest
```
"""Container runtime access through the docker or podman command line."""

from __future__ import annotations

import json
import re
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, TextIO

_SUPPORTED = ("docker", "podman")
_TIME_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)


class ContainerRuntimeError(Exception):
    """Raised when a container runtime command fails."""


@dataclass(frozen=True)
class Volume:
    """A bind mount from the host into the container."""

    host_path: str
    container_path: str
    read_only: bool = False


@dataclass
class RunOptions:
    """Options for starting a container."""

    image: str
    name: str = ""
    detach: bool = False
    user: str = ""
    env_vars: dict[str, str] = field(default_factory=dict)
    volumes: list[Volume] = field(default_factory=list)
    ports: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ImageInfo:
    """A locally cached container image."""

    repository: str
    tag: str
    id: str
    created_since: str
    size: str


@dataclass(frozen=True)
class ContainerInfo:
    """Details about a container."""

    id: str
    name: str
    image: str
    status: str
    started_at: Optional[datetime]


def _parse_time(value: object) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ContainerRuntimeError(f"parsing inspect output: invalid time {value!r}")
    match = _TIME_RE.match(value)
    if match is None:
        raise ContainerRuntimeError(f"parsing inspect output: invalid time {value!r}")
    base, frac, zone = match.groups()
    micro = (frac or "")[:6].ljust(6, "0")
    if zone == "Z":
        zone = "+00:00"
    return datetime.fromisoformat(f"{base}.{micro}{zone}")


@dataclass(frozen=True)
class ExecRuntime:
    """A runtime that drives the docker or podman CLI, which share a syntax."""

    binary: str

    @property
    def name(self) -> str:
        """The runtime's binary name."""
        return self.binary

    def _exec(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                [self.binary, *args],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise ContainerRuntimeError(f"{self.binary} {args[0]} failed: {exc}") from exc

    def _check(self, proc: subprocess.CompletedProcess[str], action: str) -> None:
        if proc.returncode != 0:
            raise ContainerRuntimeError(
                f"{self.binary} {action} failed: exit status {proc.returncode}\n{proc.stderr}"
            )

    def build_run_args(self, opts: RunOptions) -> list[str]:
        """Return the command-line arguments for starting a container."""
        args = ["run"]
        if opts.detach:
            args.append("-d")
        if opts.name:
            args += ["--name", opts.name]
        if opts.user:
            args += ["--user", opts.user]
        for key in sorted(opts.env_vars):
            args += ["-e", f"{key}={opts.env_vars[key]}"]
        for host_port in sorted(opts.ports):
            args += ["-p", f"{host_port}:{opts.ports[host_port]}"]
        for vol in opts.volumes:
            mount = f"{vol.host_path}:{vol.container_path}"
            if vol.read_only:
                mount += ":ro"
            args += ["-v", mount]
        args.append(opts.image)
        return args

    def run(self, opts: RunOptions) -> str:
        """Start a container and return its ID."""
        proc = self._exec(self.build_run_args(opts))
        self._check(proc, "run")
        return proc.stdout.strip()

    def stop(self, name: str) -> None:
        """Stop a running container."""
        self._check(self._exec(["stop", name]), "stop")

    def remove(self, name: str) -> None:
        """Force-remove a container."""
        self._check(self._exec(["rm", "-f", name]), "rm")

    def status(self, name: str) -> str:
        """Return the container's state, or an empty string if it does not exist."""
        proc = self._exec(["inspect", "--format", "{{.State.Status}}", name])
        if proc.returncode != 0:
            # Docker says "No such object", podman "no such container".
            if "no such" in proc.stderr.lower():
                return ""
            self._check(proc, "inspect")
        return proc.stdout.strip()

    def inspect(self, name: str) -> ContainerInfo:
        """Return detailed information about a container."""
        proc = self._exec(["inspect", name])
        self._check(proc, "inspect")
        try:
            results = json.loads(proc.stdout)
        except json.JSONDecodeError as exc:
            raise ContainerRuntimeError(f"parsing inspect output: {exc}") from exc
        if not isinstance(results, list):
            raise ContainerRuntimeError("parsing inspect output: expected a list")
        if not results:
            raise ContainerRuntimeError(f'no container found with name "{name}"')
        result = results[0]
        if not isinstance(result, dict):
            raise ContainerRuntimeError("parsing inspect output: expected an object")
        state = result.get("State") or {}
        return ContainerInfo(
            id=str(result.get("Id", "")),
            name=str(result.get("Name", "")).removeprefix("/"),
            image=str(result.get("Image", "")),
            status=str(state.get("Status", "")),
            started_at=_parse_time(state.get("StartedAt")),
        )

    def images(self, filter: str = "") -> list[ImageInfo]:
        """List cached images, optionally matching a reference filter."""
        args = ["images"]
        if filter:
            args += ["--filter", f"reference={filter}"]
        args += ["--format", "{{json .}}"]
        proc = self._exec(args)
        self._check(proc, "images")

        found = []
        for line in proc.stdout.strip().splitlines():
            if not line:
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(raw, dict):
                continue
            repository = str(raw.get("Repository", ""))
            tag = str(raw.get("Tag", ""))
            if tag == "<none>" or repository == "<none>":
                continue
            found.append(
                ImageInfo(
                    repository=repository,
                    tag=tag,
                    id=str(raw.get("ID", "")),
                    created_since=str(raw.get("CreatedSince", "")),
                    size=str(raw.get("Size", "")),
                )
            )
        return found

    def pull(self, image: str, out: Optional[TextIO] = None) -> None:
        """Pull an image, writing the progress output to *out*."""
        out = sys.stdout if out is None else out
        try:
            proc = subprocess.Popen(
                [self.binary, "pull", image],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise ContainerRuntimeError(f"{self.binary} pull failed: {exc}") from exc
        with proc:
            assert proc.stdout is not None
            for line in proc.stdout:
                out.write(line)
        if proc.returncode != 0:
            raise ContainerRuntimeError(
                f"{self.binary} pull failed: exit status {proc.returncode}"
            )

    def _logs_args(self, name: str, follow: bool, tail: int) -> list[str]:
        args = ["logs"]
        if follow:
            args.append("-f")
        if tail > 0:
            args += ["--tail", str(tail)]
        args.append(name)
        return args

    def logs(self, name: str, follow: bool = False, tail: int = 0) -> None:
        """Stream container logs to this process's stdout and stderr."""
        try:
            proc = subprocess.run([self.binary, *self._logs_args(name, follow, tail)])
        except KeyboardInterrupt:
            # Interrupting is the normal way to stop following logs.
            return
        except OSError as exc:
            raise ContainerRuntimeError(f"{self.binary} logs failed: {exc}") from exc
        if proc.returncode != 0:
            raise ContainerRuntimeError(
                f"{self.binary} logs failed: exit status {proc.returncode}"
            )

    def logs_capture(self, name: str, tail: int = 0) -> str:
        """Return container logs as a string."""
        proc = self._exec(self._logs_args(name, False, tail))
        if proc.returncode != 0:
            raise ContainerRuntimeError(
                f"{self.binary} logs failed: exit status {proc.returncode} "
                f"(stderr: {proc.stderr.strip()})"
            )
        return proc.stdout


def detect() -> str:
    """Return the first available runtime, preferring docker over podman."""
    for name in _SUPPORTED:
        if shutil.which(name) is not None:
            return name
    raise ContainerRuntimeError("no container runtime found; install docker or podman")


def new_runtime(name: str = "") -> ExecRuntime:
    """Create a runtime by name, detecting one when *name* is empty."""
    if not name:
        name = detect()
    if name not in _SUPPORTED:
        raise ContainerRuntimeError(
            f"unsupported runtime \"{name}\"; use 'docker' or 'podman'"
        )
    return ExecRuntime(binary=name)
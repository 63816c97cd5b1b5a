"""A small MCP client over streamable HTTP for talking to klaus agents."""

from __future__ import annotations

import itertools
import json
import threading
from typing import Any, Optional

import httpx

LATEST_PROTOCOL_VERSION = "2025-06-18"
CLIENT_NAME = "klausctl"
_SESSION_HEADER = "Mcp-Session-Id"
_DEFAULT_TIMEOUT = httpx.Timeout(None, connect=10.0)


class McpClientError(Exception):
    """Raised when an MCP session or tool call fails."""


def _parse_sse(text: str) -> list[Any]:
    messages = []
    data_lines: list[str] = []
    for line in text.splitlines() + [""]:
        if line == "":
            if data_lines:
                try:
                    messages.append(json.loads("\n".join(data_lines)))
                except json.JSONDecodeError:
                    pass
                data_lines = []
        elif line.startswith("data:"):
            data_lines.append(line[5:].removeprefix(" "))
    return messages


class _Session:
    """One initialized MCP session with an agent endpoint."""

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.BaseTransport],
        timeout: Any,
    ) -> None:
        self.base_url = base_url
        self.session_id = ""
        self._ids = itertools.count(1)
        self._http = httpx.Client(transport=transport, timeout=timeout)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if self.session_id:
            headers[_SESSION_HEADER] = self.session_id
        return headers

    def _post(self, payload: dict[str, Any]) -> httpx.Response:
        response = self._http.post(
            self.base_url, content=json.dumps(payload), headers=self._headers()
        )
        if response.status_code >= 400:
            raise McpClientError(
                f"HTTP {response.status_code}: {response.text.strip()}"
            )
        session_id = response.headers.get(_SESSION_HEADER)
        if session_id and not self.session_id:
            self.session_id = session_id
        return response

    def request(self, method: str, params: Optional[dict[str, Any]] = None) -> Any:
        request_id = next(self._ids)
        payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            payload["params"] = params
        response = self._post(payload)

        content_type = response.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            candidates = _parse_sse(response.text)
        else:
            try:
                decoded = response.json()
            except ValueError as exc:
                raise McpClientError(f"invalid response to {method}: {exc}") from exc
            candidates = decoded if isinstance(decoded, list) else [decoded]

        for message in candidates:
            if not isinstance(message, dict) or message.get("id") != request_id:
                continue
            error = message.get("error")
            if error is not None:
                if isinstance(error, dict):
                    raise McpClientError(
                        f"{error.get('message', 'unknown error')} (code {error.get('code')})"
                    )
                raise McpClientError(str(error))
            return message.get("result", {})
        raise McpClientError(f"no response to {method}")

    def notify(self, method: str) -> None:
        self._post({"jsonrpc": "2.0", "method": method})

    def initialize(self, version: str) -> None:
        self.request(
            "initialize",
            {
                "protocolVersion": LATEST_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": CLIENT_NAME, "version": version},
            },
        )
        self.notify("notifications/initialized")

    def ping(self) -> None:
        self.request("ping")

    def call_tool(self, name: str, arguments: Optional[dict[str, Any]]) -> Any:
        params: dict[str, Any] = {"name": name}
        if arguments is not None:
            params["arguments"] = arguments
        return self.request("tools/call", params)

    def close(self) -> None:
        try:
            if self.session_id:
                self._http.delete(self.base_url, headers=self._headers())
        except httpx.HTTPError:
            pass
        finally:
            self._http.close()


class Client:
    """MCP client that caches one session per agent instance."""

    def __init__(
        self,
        version: str,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: Any = _DEFAULT_TIMEOUT,
    ) -> None:
        self.version = version
        self._transport = transport
        self._timeout = timeout
        self._lock = threading.Lock()
        self._sessions: dict[str, _Session] = {}

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _new_session(self, base_url: str) -> _Session:
        try:
            url = httpx.URL(base_url)
        except httpx.InvalidURL as exc:
            raise McpClientError(f"creating MCP client for {base_url}: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise McpClientError(
                f"creating MCP client for {base_url}: unsupported URL"
            )
        return _Session(base_url, self._transport, self._timeout)

    def _get_or_create_session(self, instance_name: str, base_url: str) -> _Session:
        with self._lock:
            cached = self._sessions.get(instance_name)

        if cached is not None:
            try:
                cached.ping()
                return cached
            except (McpClientError, httpx.HTTPError):
                with self._lock:
                    if self._sessions.get(instance_name) is cached:
                        del self._sessions[instance_name]
                        cached.close()

        session = self._new_session(base_url)
        try:
            session.initialize(self.version)
        except (McpClientError, httpx.HTTPError) as exc:
            session.close()
            raise McpClientError(
                f"initializing MCP session for {base_url}: {exc}"
            ) from exc

        with self._lock:
            existing = self._sessions.get(instance_name)
            if existing is not None:
                session.close()
                return existing
            self._sessions[instance_name] = session
        return session

    def _call_tool(
        self,
        instance_name: str,
        base_url: str,
        tool_name: str,
        arguments: Optional[dict[str, Any]],
    ) -> Any:
        session = self._get_or_create_session(instance_name, base_url)
        try:
            return session.call_tool(tool_name, arguments)
        except (McpClientError, httpx.HTTPError) as exc:
            self._invalidate_session(instance_name)
            raise McpClientError(
                f'calling tool "{tool_name}" on {instance_name}: {exc}'
            ) from exc

    def prompt(self, instance_name: str, base_url: str, message: str) -> Any:
        """Send a prompt message to the agent and return the tool result."""
        return self._call_tool(instance_name, base_url, "prompt", {"message": message})

    def status(self, instance_name: str, base_url: str) -> Any:
        """Return the agent's current status."""
        return self._call_tool(instance_name, base_url, "status", None)

    def result(self, instance_name: str, base_url: str) -> Any:
        """Return the agent's last result."""
        return self._call_tool(instance_name, base_url, "result", None)

    def session_id(self, instance_name: str) -> str:
        """Return the MCP session ID for an instance, or an empty string."""
        with self._lock:
            session = self._sessions.get(instance_name)
            return session.session_id if session is not None else ""

    def _invalidate_session(self, instance_name: str) -> None:
        with self._lock:
            session = self._sessions.pop(instance_name, None)
        if session is not None:
            session.close()

    def close(self) -> None:
        """Close every cached session."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
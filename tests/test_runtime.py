import io
import os
import stat
from datetime import datetime, timezone
from pathlib import Path

import pytest

from klausctl.runtime import (
    ContainerRuntimeError,
    ExecRuntime,
    ImageInfo,
    RunOptions,
    Volume,
    detect,
    new_runtime,
)


def _fake(tmp_path: Path, body: str) -> tuple[ExecRuntime, Path]:
    args_file = tmp_path / "args.txt"
    script = tmp_path / "fakert"
    script.write_text(
        "#!/bin/sh\n" f"printf '%s\\n' \"$@\" > '{args_file}'\n" + body + "\n"
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return ExecRuntime(str(script)), args_file


def _recorded(args_file: Path) -> list[str]:
    return args_file.read_text().splitlines()


def _make_exe(directory: Path, name: str) -> None:
    exe = directory / name
    exe.write_text("#!/bin/sh\nexit 0\n")
    exe.chmod(0o755)


def test_build_run_args_full():
    rt = ExecRuntime("docker")
    opts = RunOptions(
        image="img:1",
        name="klausctl-dev",
        detach=True,
        user="1000:1000",
        env_vars={"B": "2", "A": "1"},
        ports={9090: 8080, 8081: 8080},
        volumes=[
            Volume("/work", "/workspace"),
            Volume("/cfg.json", "/etc/klaus/mcp-config.json", read_only=True),
        ],
    )
    assert rt.build_run_args(opts) == [
        "run", "-d", "--name", "klausctl-dev", "--user", "1000:1000",
        "-e", "A=1", "-e", "B=2",
        "-p", "8081:8080", "-p", "9090:8080",
        "-v", "/work:/workspace",
        "-v", "/cfg.json:/etc/klaus/mcp-config.json:ro",
        "img:1",
    ]


def test_build_run_args_minimal():
    assert ExecRuntime("podman").build_run_args(RunOptions(image="x")) == ["run", "x"]


def test_new_runtime_named():
    rt = new_runtime("podman")
    assert rt.name == "podman"
    assert rt.binary == "podman"


def test_new_runtime_unsupported():
    with pytest.raises(ContainerRuntimeError, match="unsupported runtime"):
        new_runtime("rkt")


def test_detect_prefers_docker(tmp_path, monkeypatch):
    _make_exe(tmp_path, "docker")
    _make_exe(tmp_path, "podman")
    monkeypatch.setenv("PATH", str(tmp_path))
    assert detect() == "docker"


def test_new_runtime_detects_podman(tmp_path, monkeypatch):
    _make_exe(tmp_path, "podman")
    monkeypatch.setenv("PATH", str(tmp_path))
    assert new_runtime("").name == "podman"


def test_detect_none(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(ContainerRuntimeError, match="no container runtime found"):
        detect()


def test_run_returns_trimmed_id_and_passes_args(tmp_path):
    rt, args_file = _fake(tmp_path, "echo '  abc123  '")
    opts = RunOptions(image="img:1", name="n", detach=True, env_vars={"K": "v"})
    assert rt.run(opts) == "abc123"
    assert _recorded(args_file) == rt.build_run_args(opts)


def test_run_failure_includes_stderr(tmp_path):
    rt, _ = _fake(tmp_path, "echo boom >&2; exit 3")
    with pytest.raises(ContainerRuntimeError, match="run failed") as info:
        rt.run(RunOptions(image="img"))
    assert "boom" in str(info.value)


def test_stop_and_remove_args(tmp_path):
    rt, args_file = _fake(tmp_path, "exit 0")
    rt.stop("c1")
    assert _recorded(args_file) == ["stop", "c1"]
    rt.remove("c1")
    assert _recorded(args_file) == ["rm", "-f", "c1"]


def test_stop_failure(tmp_path):
    rt, _ = _fake(tmp_path, "exit 1")
    with pytest.raises(ContainerRuntimeError, match="stop failed"):
        rt.stop("c1")


def test_status_running(tmp_path):
    rt, args_file = _fake(tmp_path, "echo running")
    assert rt.status("c1") == "running"
    assert _recorded(args_file) == ["inspect", "--format", "{{.State.Status}}", "c1"]


@pytest.mark.parametrize(
    "message", ["Error: No such object: c1", "Error: no such container c1"]
)
def test_status_missing_container(tmp_path, message):
    rt, _ = _fake(tmp_path, f"echo '{message}' >&2; exit 1")
    assert rt.status("c1") == ""


def test_status_other_failure(tmp_path):
    rt, _ = _fake(tmp_path, "echo 'daemon down' >&2; exit 1")
    with pytest.raises(ContainerRuntimeError, match="inspect failed"):
        rt.status("c1")


def test_inspect_parses_output(tmp_path):
    doc = (
        '[{"Id":"abc","Name":"/klausctl-dev","Image":"img:1",'
        '"State":{"Status":"running","Running":true,'
        '"StartedAt":"2024-05-01T10:20:30.123456789Z"}}]'
    )
    rt, _ = _fake(tmp_path, f"echo '{doc}'")
    info = rt.inspect("klausctl-dev")
    assert info.id == "abc"
    assert info.name == "klausctl-dev"
    assert info.image == "img:1"
    assert info.status == "running"
    assert info.started_at == datetime(2024, 5, 1, 10, 20, 30, 123456, tzinfo=timezone.utc)


def test_inspect_empty_list(tmp_path):
    rt, _ = _fake(tmp_path, "echo '[]'")
    with pytest.raises(ContainerRuntimeError, match="no container found"):
        rt.inspect("ghost")


def test_inspect_bad_json(tmp_path):
    rt, _ = _fake(tmp_path, "echo 'not json'")
    with pytest.raises(ContainerRuntimeError, match="parsing inspect output"):
        rt.inspect("c1")


def test_images_skips_untagged_and_garbage(tmp_path):
    body = (
        "echo '{\"Repository\":\"repo/a\",\"Tag\":\"1.0.0\",\"ID\":\"id1\","
        "\"CreatedSince\":\"2 hours ago\",\"Size\":\"500MB\"}'\n"
        "echo '{\"Repository\":\"<none>\",\"Tag\":\"x\",\"ID\":\"id2\"}'\n"
        "echo '{\"Repository\":\"repo/b\",\"Tag\":\"<none>\",\"ID\":\"id3\"}'\n"
        "echo 'garbage'"
    )
    rt, args_file = _fake(tmp_path, body)
    assert rt.images("*klaus-*") == [
        ImageInfo("repo/a", "1.0.0", "id1", "2 hours ago", "500MB")
    ]
    assert _recorded(args_file) == [
        "images", "--filter", "reference=*klaus-*", "--format", "{{json .}}"
    ]


def test_images_empty_output(tmp_path):
    rt, args_file = _fake(tmp_path, "exit 0")
    assert rt.images("") == []
    assert _recorded(args_file) == ["images", "--format", "{{json .}}"]


def test_logs_capture(tmp_path):
    rt, args_file = _fake(tmp_path, "echo line1; echo line2")
    assert rt.logs_capture("c1", 10) == "line1\nline2\n"
    assert _recorded(args_file) == ["logs", "--tail", "10", "c1"]


def test_logs_capture_failure(tmp_path):
    rt, _ = _fake(tmp_path, "echo oops >&2; exit 2")
    with pytest.raises(ContainerRuntimeError, match="stderr: oops"):
        rt.logs_capture("c1", 0)


def test_logs_args(tmp_path):
    rt, args_file = _fake(tmp_path, "exit 0")
    rt.logs("c1", True, 5)
    assert _recorded(args_file) == ["logs", "-f", "--tail", "5", "c1"]


def test_pull_writes_progress(tmp_path):
    rt, args_file = _fake(tmp_path, "echo pulling; echo done >&2")
    out = io.StringIO()
    rt.pull("img:1", out)
    assert out.getvalue().splitlines() == ["pulling", "done"]
    assert _recorded(args_file) == ["pull", "img:1"]


def test_pull_failure(tmp_path):
    rt, _ = _fake(tmp_path, "exit 1")
    with pytest.raises(ContainerRuntimeError, match="pull failed"):
        rt.pull("img:1", io.StringIO())


def test_missing_binary(tmp_path):
    rt = ExecRuntime(os.path.join(str(tmp_path), "absent"))
    with pytest.raises(ContainerRuntimeError, match="stop failed"):
        rt.stop("c1")
import subprocess

import pytest

from nomadboot.errors import CommandError
from nomadboot.execution.runner import CommandRunner, output_text


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


def test_run_passes_argv_input_and_env_overlay(monkeypatch):
    calls = []

    def fake_run(argv, **kwargs):
        calls.append((argv, kwargs))
        return DummyCP(0, out="ok")

    monkeypatch.setattr(subprocess, "run", fake_run)
    monkeypatch.setenv("PATH", "/usr/bin")

    r = CommandRunner(binary="nomad", env={"NOMAD_ADDR": "https://127.0.0.1:4646", "NOMAD_TOKEN": "s3cr3t"})
    cp = r.run(["acl", "bootstrap", "-"], input="s3cr3t")

    argv, kwargs = calls[0]
    assert argv == ["nomad", "acl", "bootstrap", "-"]
    assert kwargs["input"] == "s3cr3t"
    assert kwargs["capture_output"] is True
    assert kwargs["env"]["NOMAD_TOKEN"] == "s3cr3t"
    assert kwargs["env"]["PATH"] == "/usr/bin"
    assert cp.stdout == "ok"


def test_unexpected_exit_code_raises_with_stderr(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(2, err="permission denied\n"))

    with pytest.raises(CommandError) as ei:
        CommandRunner(binary="consul").run(["members"])

    assert ei.value.returncode == 2
    assert "permission denied" in ei.value.stderr


def test_allowed_non_zero_exit_is_returned(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(1, err="not found"))

    cp = CommandRunner(binary="nomad").run(["acl", "policy", "info", "x"], allow_rc={0, 1})
    assert cp.returncode == 1
    assert output_text(cp) == "not found"


def test_missing_executable_is_a_command_error(monkeypatch):
    def fake_run(argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(CommandError, match="executable not found"):
        CommandRunner(binary="aws").run(["s3", "ls"])


def test_output_text_decodes_bytes():
    assert output_text(DummyCP(0, out=b"a", err=b"b")) == "ab"

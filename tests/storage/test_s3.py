import subprocess
from pathlib import Path

import pytest

from nomadboot.config.models import BootstrapConfig
from nomadboot.errors import ObjectNotFound, SecretFetchError
from nomadboot.storage.s3 import S3SecretStore
from nomadboot.storage.secrets import fetch_token


class DummyCP:
    def __init__(self, rc=0, out=b"", err=b""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


def _cfg():
    return BootstrapConfig(
        secrets_bucket="acme-secrets",
        self_address="10.0.1.12",
        region="eu-west-1",
        role="nomad-server",
    )


def test_key_scheme():
    s = S3SecretStore(_cfg())
    assert s.key("bootstrap-token") == "eu-west-1/nomad-server/nomad/bootstrap-token"
    assert s.uri("/operator.hcl") == "s3://acme-secrets/eu-west-1/nomad-server/nomad/operator.hcl"


def test_fetch_streams_object_to_stdout(monkeypatch):
    calls = []

    def fake_run(argv, **kwargs):
        calls.append((argv, kwargs))
        return DummyCP(0, out=b"token\n")

    monkeypatch.setattr(subprocess, "run", fake_run)

    data = S3SecretStore(_cfg()).fetch("bootstrap-token")

    argv, kwargs = calls[0]
    assert data == b"token\n"
    assert argv[:3] == ["aws", "s3", "cp"]
    assert argv[3] == "s3://acme-secrets/eu-west-1/nomad-server/nomad/bootstrap-token"
    assert argv[4] == "-"
    assert kwargs["text"] is False
    assert kwargs["env"]["AWS_REGION"] == "eu-west-1"


def test_missing_object_raises_object_not_found(monkeypatch):
    err = b'fatal error: An error occurred (404) when calling the HeadObject operation: Key "x" does not exist'
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(1, err=err))

    with pytest.raises(ObjectNotFound):
        S3SecretStore(_cfg()).fetch("keystore.tar.gz.b64")


def test_other_failures_raise_secret_fetch_error(monkeypatch):
    err = b"fatal error: Could not connect to the endpoint URL"
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(1, err=err))

    with pytest.raises(SecretFetchError) as ei:
        S3SecretStore(_cfg()).fetch("bootstrap-token")
    assert not isinstance(ei.value, ObjectNotFound)


def test_get_copies_to_file_and_put_uploads_stdin(monkeypatch, tmp_path: Path):
    calls = []

    def fake_run(argv, **kwargs):
        calls.append((argv, kwargs))
        return DummyCP(0)

    monkeypatch.setattr(subprocess, "run", fake_run)
    s = S3SecretStore(_cfg())

    dest = s.get("operator.hcl", tmp_path / "sub" / "operator.hcl")
    s.put("snapshots/latest.snap", b"raft")

    assert dest.parent.is_dir()
    assert calls[0][0][4] == str(dest)
    put_argv, put_kwargs = calls[1]
    assert put_argv[3] == "-"
    assert put_argv[4].endswith("/nomad/snapshots/latest.snap")
    assert put_kwargs["input"] == b"raft"


class MemoryStore:
    def __init__(self, objects):
        self.objects = objects

    def fetch(self, path):
        return self.objects[path]


def test_fetch_token_strips_and_rejects_empty():
    assert fetch_token(MemoryStore({"t": b"  abc\n"}), "t") == "abc"
    with pytest.raises(SecretFetchError):
        fetch_token(MemoryStore({"t": b"\n"}), "t")

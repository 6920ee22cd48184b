import base64
from datetime import datetime, timezone
from pathlib import Path

from nomadboot.bootstrap.snapshot import SnapshotJob
from nomadboot.config.models import BootstrapConfig
from nomadboot.errors import ObjectNotFound


class FakeStore:
    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.calls = []

    def fetch(self, path):
        self.calls.append(("fetch", path))
        if path not in self.objects:
            raise ObjectNotFound(path)
        return self.objects[path]

    def put(self, path, data):
        self.calls.append(("put", path))
        self.objects[path] = data


class FakeNomad:
    def __init__(self, token):
        self.token = token
        self.saved = []

    def snapshot_save(self, dest: Path) -> Path:
        dest.write_bytes(b"raft-state")
        self.saved.append(dest)
        return dest


class FixedOracle:
    def __init__(self, leading):
        self.leading = leading

    def is_leader(self, self_address):
        return self.leading


def _cfg(tmp_path: Path) -> BootstrapConfig:
    return BootstrapConfig(
        secrets_bucket="acme-secrets",
        self_address="10.0.1.12",
        keystore_dir=tmp_path / "keystore",
    )


def _job(cfg, store, leading=True):
    return SnapshotJob(
        cfg,
        store=store,
        oracle=FixedOracle(leading),
        nomad_factory=FakeNomad,
        now=lambda: datetime(2026, 10, 17, 3, 0, 0, tzinfo=timezone.utc),
    )


def test_leader_uploads_snapshot_and_keystore(tmp_path: Path):
    cfg = _cfg(tmp_path)
    cfg.keystore_dir.mkdir()
    (cfg.keystore_dir / "a.nks.json").write_bytes(b"key-a")
    store = FakeStore({"bootstrap-token": b"mgmt"})

    result = _job(cfg, store).run()

    assert result.leader is True
    assert result.uploaded == [
        "snapshots/20261017T030000Z.snap",
        "snapshots/latest.snap",
        "keystore.tar.gz.b64",
    ]
    assert store.objects["snapshots/latest.snap"] == b"raft-state"
    base64.b64decode(store.objects["keystore.tar.gz.b64"], validate=True)


def test_empty_keystore_is_not_uploaded(tmp_path: Path):
    store = FakeStore({"bootstrap-token": b"mgmt"})
    result = _job(_cfg(tmp_path), store).run()
    assert "keystore.tar.gz.b64" not in result.uploaded
    assert "keystore.tar.gz.b64" not in store.objects


def test_non_leader_does_nothing(tmp_path: Path):
    store = FakeStore({"bootstrap-token": b"mgmt"})
    result = _job(_cfg(tmp_path), store, leading=False).run()
    assert result.leader is False
    assert result.uploaded == []
    assert store.calls == []

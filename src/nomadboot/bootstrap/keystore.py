# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/bootstrap/keystore.py

from __future__ import annotations

import base64
import binascii
import io
import logging
import os
import shutil
import tarfile
from pathlib import Path, PurePosixPath
from typing import List, Optional

from nomadboot.errors import ArchiveError, ObjectNotFound
from nomadboot.storage.interface import SecretStore

log = logging.getLogger("nomadboot")


def _safe_member_path(name: str) -> Optional[PurePosixPath]:
    p = PurePosixPath(name)
    if p.is_absolute() or ".." in p.parts:
        return None
    parts = [x for x in p.parts if x not in ("", ".")]
    if not parts:
        return None
    return PurePosixPath(*parts)


class KeystoreRestorer:
    """
    Restores the server keystore from the base64 tarball the snapshot job
    uploads, and builds that tarball.

    Extraction never replaces a file that already exists locally: a newer
    keystore on disk must not be rolled back by an older backup.
    """

    def __init__(self, store: SecretStore, keystore_dir: Path, object_name: str):
        self.store = store
        self.keystore_dir = Path(keystore_dir)
        self.object_name = object_name

    def restore(self) -> Optional[List[str]]:
        """
        Returns the member names written, or None when no backup exists yet.
        Fetch failures other than "not found" propagate.
        """
        try:
            payload = self.store.fetch(self.object_name)
        except ObjectNotFound:
            log.info(f"[keystore] no backup '{self.object_name}' yet, nothing to restore")
            return None

        try:
            raw = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ArchiveError(f"keystore backup is not valid base64: {e}") from e

        self.keystore_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        os.chmod(self.keystore_dir, 0o700)

        restored: List[str] = []
        try:
            with tarfile.open(fileobj=io.BytesIO(raw), mode="r:*") as tar:
                for member in tar.getmembers():
                    if self._extract_member(tar, member):
                        restored.append(member.name)
        except tarfile.TarError as e:
            raise ArchiveError(f"keystore backup is not a readable tarball: {e}") from e

        log.info(f"[keystore] restored {len(restored)} file(s) into {self.keystore_dir}")
        return restored

    def _extract_member(self, tar: tarfile.TarFile, member: tarfile.TarInfo) -> bool:
        rel = _safe_member_path(member.name)
        if rel is None:
            if member.name.strip("./"):
                log.warning(f"[keystore] refusing unsafe member {member.name!r}")
            return False

        dest = self.keystore_dir.joinpath(*rel.parts)

        if member.isdir():
            dest.mkdir(parents=True, exist_ok=True, mode=0o700)
            return False
        if not member.isfile():
            log.warning(f"[keystore] skipping non-regular member {member.name!r}")
            return False
        if dest.exists() or dest.is_symlink():
            log.debug(f"[keystore] keeping existing {dest}")
            return False

        dest.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        src = tar.extractfile(member)
        if src is None:
            return False
        # O_EXCL: a file that appeared since the exists() check is left alone too
        try:
            fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            return False
        with src, os.fdopen(fd, "wb") as out:
            shutil.copyfileobj(src, out)
        return True

    def archive(self) -> Optional[bytes]:
        """base64 tar.gz of the keystore directory; None when there is nothing to archive."""
        if not self.keystore_dir.is_dir():
            return None
        files = sorted(p for p in self.keystore_dir.rglob("*") if p.is_file())
        if not files:
            return None

        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            for f in files:
                tar.add(f, arcname=f.relative_to(self.keystore_dir).as_posix(), recursive=False)
        return base64.b64encode(buf.getvalue())

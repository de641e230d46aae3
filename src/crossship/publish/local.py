"""Filesystem-backed remote store (``file://`` addresses and plain paths)."""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from crossship.cancel import CancelToken
from crossship.collect import file_digests
from crossship.errors import Cancelled, PublishFailure
from crossship.publish.base import RemoteObject


@dataclass(slots=True)
class LocalDirectoryStore:
    root: Path
    name: str = "local"

    @property
    def address(self) -> str:
        return self.root.resolve().as_uri()

    def authorize(self, *, cancel: CancelToken | None = None) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PublishFailure(
                "Local store directory cannot be created.",
                hint=str(exc),
                context={"store": self.name, "operation": "authorize", "root": str(self.root)},
            ) from exc

    def list_objects(self, *, cancel: CancelToken | None = None) -> dict[str, RemoteObject]:
        objects: dict[str, RemoteObject] = {}
        if not self.root.exists():
            return objects
        try:
            for path in sorted(self.root.rglob("*")):
                if not path.is_file() or path.name.startswith("."):
                    continue
                name = path.relative_to(self.root).as_posix()
                size, sha1, _ = file_digests(path)
                objects[name] = RemoteObject(name=name, size=size, sha1=sha1)
        except OSError as exc:
            raise PublishFailure(
                "Local store listing failed.",
                hint=str(exc),
                context={"store": self.name, "operation": "list", "root": str(self.root)},
            ) from exc
        return objects

    def upload(
        self,
        path: Path,
        name: str,
        *,
        sha1: str,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
    ) -> RemoteObject:
        if cancel is not None and cancel.cancelled:
            raise Cancelled(context={"store": self.name, "name": name})
        destination = self.root / name
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(prefix=f".{destination.name}.", dir=destination.parent)
            os.close(fd)
            try:
                shutil.copy2(path, temp_name)
                os.replace(temp_name, destination)
            finally:
                if os.path.exists(temp_name):
                    os.unlink(temp_name)
        except OSError as exc:
            raise PublishFailure(
                "Local store upload failed.",
                hint=str(exc),
                context={"store": self.name, "name": name, "path": str(path)},
            ) from exc
        return RemoteObject(name=name, size=destination.stat().st_size, sha1=sha1)

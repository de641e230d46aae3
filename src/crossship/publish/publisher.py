"""Idempotent, additive mirror sync of canonical artifacts to a remote store."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from crossship.cancel import CancelToken
from crossship.collect import file_digests
from crossship.errors import Cancelled, CrossshipError, PublishFailure
from crossship.models import Artifact, PublishManifest, PublishOutcome
from crossship.observability import StructuredLogger
from crossship.publish.base import RemoteObject, RemoteStore


@dataclass(slots=True)
class Publisher:
    """Uploads artifacts whose content differs from the remote copy.

    Remote files without a local counterpart are never touched. The remote
    listing is fetched once per Publisher and updated after each upload, so
    publishing unchanged content again issues no uploads.
    """

    store: RemoteStore
    timeout_s: float | None = None
    cancel: CancelToken = field(default_factory=CancelToken)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _listing_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _accepted: dict[str, Artifact] = field(default_factory=dict, repr=False)
    _remote: dict[str, RemoteObject] | None = field(default=None, repr=False)
    _remote_error: PublishFailure | None = field(default=None, repr=False)

    @property
    def manifest(self) -> PublishManifest:
        with self._lock:
            return PublishManifest(artifacts=tuple(self._accepted.values()))

    def publish(self, artifact: Artifact) -> PublishOutcome:
        name = artifact.canonical_name
        if self.cancel.cancelled:
            self._log(name, "publish_skipped", "Upload not started because the run was cancelled.")
            return PublishOutcome(
                name=name,
                status="skipped",
                error=Cancelled(context={"name": name}).to_dict(),
            )

        with self._lock:
            self._accepted[name] = artifact
        try:
            remote = self._remote_objects()
        except Cancelled as exc:
            self._log(name, "publish_skipped", exc.message, level="warning")
            return PublishOutcome(name=name, status="skipped", error=exc.to_dict())
        except PublishFailure as exc:
            self._log(name, "publish_failed", exc.message, level="error")
            return PublishOutcome(name=name, status="failed", error=exc.to_dict())

        existing = remote.get(name)
        if existing is not None and existing.matches(size=artifact.size, sha1=artifact.sha1):
            self._log(name, "publish_unchanged", "Remote copy is up to date.")
            return PublishOutcome(name=name, status="unchanged")

        try:
            uploaded = self.store.upload(
                artifact.source_path,
                name,
                sha1=artifact.sha1,
                timeout=self.timeout_s,
                cancel=self.cancel,
            )
        except Cancelled as exc:
            self._log(name, "publish_skipped", exc.message, level="warning")
            return PublishOutcome(name=name, status="skipped", error=exc.to_dict())
        except CrossshipError as exc:
            self._log(name, "publish_failed", exc.message, level="error")
            return PublishOutcome(name=name, status="failed", error=exc.to_dict())

        with self._lock:
            if self._remote is not None:
                self._remote[name] = uploaded
        self._log(name, "publish_uploaded", "Uploaded artifact.", extra={"size": artifact.size})
        return PublishOutcome(name=name, status="uploaded")

    def sync(self, output_root: Path) -> tuple[PublishOutcome, ...]:
        """Mirror every regular file in ``output_root`` to the store."""
        outcomes: list[PublishOutcome] = []
        for path in sorted(output_root.iterdir()):
            if not path.is_file() or path.name.startswith("."):
                continue
            size, sha1, sha256 = file_digests(path)
            artifact = Artifact(
                canonical_name=path.name,
                source_path=path,
                size=size,
                sha1=sha1,
                sha256=sha256,
            )
            outcomes.append(self.publish(artifact))
        return tuple(outcomes)

    def _remote_objects(self) -> Mapping[str, RemoteObject]:
        # _lock is never held across the listing call.
        with self._listing_lock:
            with self._lock:
                if self._remote is not None:
                    return dict(self._remote)
                if self._remote_error is not None:
                    raise self._remote_error
            try:
                listing = dict(self.store.list_objects(cancel=self.cancel))
            except PublishFailure as exc:
                with self._lock:
                    self._remote_error = exc
                raise
            with self._lock:
                self._remote = listing
                return dict(listing)

    def _log(
        self,
        name: str,
        operation: str,
        message: str,
        *,
        level: str = "info",
        extra: dict[str, object] | None = None,
    ) -> None:
        self.logger.log(
            operation=operation,
            target=name,
            stage="publish",
            message=message,
            level=level,
            extra={"store": self.store.address, **(extra or {})},
        )

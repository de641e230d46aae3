"""Run report model and JSON/CBOR export."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import cbor2

from crossship.models import Artifact, BuildResult, PublishOutcome

RunStatus = Literal["success", "failure"]


@dataclass(frozen=True, slots=True)
class RunReport:
    target_count: int
    builds: tuple[BuildResult, ...] = ()
    artifacts: tuple[Artifact, ...] = ()
    publishes: tuple[PublishOutcome, ...] = ()
    plans: tuple[dict[str, object], ...] = ()
    store: str | None = None
    dry_run: bool = False
    cancelled_run: bool = False
    schema_version: int = 1

    @property
    def succeeded(self) -> tuple[BuildResult, ...]:
        return tuple(result for result in self.builds if result.status == "success")

    @property
    def failed(self) -> tuple[BuildResult, ...]:
        return tuple(result for result in self.builds if result.status == "failure")

    @property
    def cancelled(self) -> tuple[BuildResult, ...]:
        return tuple(result for result in self.builds if result.status == "cancelled")

    def publishes_with(self, status: str) -> tuple[PublishOutcome, ...]:
        return tuple(outcome for outcome in self.publishes if outcome.status == status)

    @property
    def status(self) -> RunStatus:
        if self.failed or self.cancelled or self.cancelled_run:
            return "failure"
        if self.publishes_with("failed") or self.publishes_with("skipped"):
            return "failure"
        return "success"

    def summary(self) -> dict[str, object]:
        return {
            "status": self.status,
            "dry_run": self.dry_run,
            "targets": self.target_count,
            "builds_succeeded": len(self.succeeded),
            "builds_failed": len(self.failed),
            "builds_cancelled": len(self.cancelled),
            "artifacts": len(self.artifacts),
            "published": len(self.publishes_with("uploaded")),
            "unchanged": len(self.publishes_with("unchanged")),
            "publish_failed": len(self.publishes_with("failed")),
            "publish_skipped": len(self.publishes_with("skipped")),
        }

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            _write(Path(path)).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            _write(Path(path)).write_bytes(encoded)
        return encoded

    def _payload(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "summary": self.summary(),
            "store": self.store,
            "builds": [result.to_dict() for result in self.builds],
            "artifacts": [artifact.to_dict() for artifact in self.artifacts],
            "publishes": [outcome.to_dict() for outcome in self.publishes],
            "plans": list(self.plans),
        }


def _write(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    return path

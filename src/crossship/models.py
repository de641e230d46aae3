"""Core typed dataclasses for targets, build results, and artifacts."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

BuildStatus = Literal["success", "failure", "cancelled"]
PublishStatus = Literal["uploaded", "unchanged", "failed", "skipped"]


@dataclass(frozen=True, slots=True)
class TargetSpec:
    """One (project, triple) cell of the build matrix."""

    project: str
    triple: str
    profile: str
    manifest: str
    binary: str = ""

    def __post_init__(self) -> None:
        if not self.binary:
            object.__setattr__(self, "binary", self.project)

    @property
    def key(self) -> str:
        return f"{self.project}@{self.triple}"

    def to_dict(self) -> dict[str, str]:
        return {
            "project": self.project,
            "triple": self.triple,
            "profile": self.profile,
            "manifest": self.manifest,
            "binary": self.binary,
        }


@dataclass(frozen=True, slots=True)
class BuildResult:
    spec: TargetSpec
    status: BuildStatus
    artifact_path: Path | None = None
    log: str = ""
    returncode: int | None = None
    duration_s: float = 0.0
    error: dict[str, object] | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success" and self.artifact_path is not None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "target": self.spec.to_dict(),
            "status": self.status,
            "artifact_path": str(self.artifact_path) if self.artifact_path else None,
            "returncode": self.returncode,
            "duration_s": round(self.duration_s, 3),
            "log": self.log,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True, slots=True)
class Artifact:
    canonical_name: str
    source_path: Path
    size: int
    sha1: str
    sha256: str
    spec: TargetSpec | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.canonical_name,
            "source_path": str(self.source_path),
            "size": self.size,
            "sha1": self.sha1,
            "sha256": self.sha256,
            "target": self.spec.key if self.spec is not None else None,
        }


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    name: str
    status: PublishStatus
    error: dict[str, object] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "status": self.status}
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True, slots=True)
class PublishManifest:
    """Ordered, de-duplicated snapshot of artifacts accepted for sync."""

    artifacts: tuple[Artifact, ...] = ()

    def names(self) -> tuple[str, ...]:
        return tuple(artifact.canonical_name for artifact in self.artifacts)

    def __len__(self) -> int:
        return len(self.artifacts)

    def __contains__(self, name: object) -> bool:
        return name in self.names()


__all__ = [
    "Artifact",
    "BuildResult",
    "BuildStatus",
    "PublishManifest",
    "PublishOutcome",
    "PublishStatus",
    "TargetSpec",
]

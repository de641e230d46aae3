"""Artifact collection into a flat, canonically named output directory."""

from __future__ import annotations

import dataclasses
import hashlib
import os
import shutil
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from crossship.catalog.naming import NamingTable, canonical_name
from crossship.errors import CollectionError
from crossship.models import Artifact, BuildResult
from crossship.observability import StructuredLogger

CHUNK_SIZE = 1024 * 1024


@dataclass(slots=True)
class ArtifactCollector:
    output_root: Path
    naming: NamingTable
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def collect(self, result: BuildResult) -> Artifact | None:
        """Place a successful build's binary under its canonical name.

        Returns None for results that did not succeed. Raises
        ``CollectionError`` when a reportedly successful binary cannot be read.
        """
        if not result.ok or result.artifact_path is None:
            return None

        spec = result.spec
        name = canonical_name(spec.project, spec.triple, self.naming)
        source = result.artifact_path
        if not source.is_file() or not os.access(source, os.R_OK):
            raise CollectionError(
                "Built binary is not a readable file.",
                hint="The toolchain reported success; check the target directory.",
                context={"target": spec.key, "path": str(source)},
            )

        destination = self.output_root / name
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
            size, sha1, sha256 = _copy_atomic(source, destination)
        except OSError as exc:
            raise CollectionError(
                "Failed to place built binary in the output directory.",
                hint=str(exc),
                context={"target": spec.key, "path": str(source), "destination": str(destination)},
            ) from exc

        self.logger.log(
            operation="collect_artifact",
            target=spec.key,
            stage="collect",
            message="Collected artifact.",
            extra={"name": name, "size": size, "sha256": sha256},
        )
        return Artifact(
            canonical_name=name,
            source_path=destination,
            size=size,
            sha1=sha1,
            sha256=sha256,
            spec=spec,
        )

    def collect_or_fail(self, result: BuildResult) -> tuple[BuildResult, Artifact | None]:
        """Collect ``result``; a collection error becomes a failed BuildResult."""
        try:
            return result, self.collect(result)
        except CollectionError as exc:
            self.logger.log(
                operation="collect_failed",
                target=result.spec.key,
                stage="collect",
                message=exc.message,
                level="error",
            )
            return dataclasses.replace(result, status="failure", error=exc.to_dict()), None

    def collect_all(
        self,
        results: Iterable[BuildResult],
    ) -> tuple[tuple[Artifact, ...], tuple[BuildResult, ...]]:
        artifacts: list[Artifact] = []
        failed: list[BuildResult] = []
        for result in results:
            final, artifact = self.collect_or_fail(result)
            if artifact is not None:
                artifacts.append(artifact)
            elif final.status != "success":
                failed.append(final)
        return tuple(artifacts), tuple(failed)


def file_digests(path: Path) -> tuple[int, str, str]:
    """Return (size, sha1, sha256) of ``path``."""
    sha1 = hashlib.sha1()
    sha256 = hashlib.sha256()
    size = 0
    with path.open("rb") as handle:
        while chunk := handle.read(CHUNK_SIZE):
            sha1.update(chunk)
            sha256.update(chunk)
            size += len(chunk)
    return size, sha1.hexdigest(), sha256.hexdigest()


def _copy_atomic(source: Path, destination: Path) -> tuple[int, str, str]:
    fd, temp_name = tempfile.mkstemp(prefix=f".{destination.name}.", dir=destination.parent)
    os.close(fd)
    temp_path = Path(temp_name)
    try:
        shutil.copy2(source, temp_path)
        digests = file_digests(temp_path)
        os.replace(temp_path, destination)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return digests

"""Shared test fixtures: a scripted toolchain and an in-memory remote store."""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from crossship.builders.process import ProcessResult
from crossship.cancel import CancelToken
from crossship.catalog.io import CatalogConfig, CatalogEntry
from crossship.errors import Cancelled, CrossshipError, PublishFailure
from crossship.publish.base import RemoteObject


@dataclass
class FakeToolchain:
    """Mimics `cross build`: writes `<cwd>/target/<triple>/release/<binary>`."""

    fail_triples: set[str] = field(default_factory=set)
    skip_output_triples: set[str] = field(default_factory=set)
    calls: list[tuple[str, ...]] = field(default_factory=list)
    envs: list[dict[str, str]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
        grace_period_s: float = 0.0,
    ) -> ProcessResult:
        command = tuple(argv)
        with self._lock:
            self.calls.append(command)
            self.envs.append(dict(env or {}))
        triple = command[command.index("--target") + 1]
        manifest = next(arg for arg in command if arg.startswith("--manifest-path="))
        project = Path(manifest.split("=", 1)[1]).parent.name
        if triple in self.fail_triples:
            return ProcessResult(
                argv=command, returncode=101, output="error: linker failed\n", duration_s=0.01
            )
        if triple not in self.skip_output_triples:
            assert cwd is not None
            suffix = ".exe" if "windows" in triple else ""
            binary = cwd / "target" / triple / "release" / f"{project}{suffix}"
            binary.parent.mkdir(parents=True, exist_ok=True)
            binary.write_bytes(f"{project}:{triple}\n".encode())
        return ProcessResult(
            argv=command, returncode=0, output="Finished release\n", duration_s=0.01
        )


@dataclass
class MemoryStore:
    name: str = "memory"
    objects: dict[str, RemoteObject] = field(default_factory=dict)
    uploads: list[str] = field(default_factory=list)
    fail_names: set[str] = field(default_factory=set)
    list_error: PublishFailure | None = None
    authorize_error: CrossshipError | None = None
    authorize_calls: int = 0
    list_calls: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def address(self) -> str:
        return "memory://test/"

    def authorize(self, *, cancel: CancelToken | None = None) -> None:
        self.authorize_calls += 1
        if self.authorize_error is not None:
            raise self.authorize_error

    def list_objects(self, *, cancel: CancelToken | None = None) -> dict[str, RemoteObject]:
        self.list_calls += 1
        if cancel is not None and cancel.cancelled:
            raise Cancelled(context={"operation": "list"})
        if self.list_error is not None:
            raise self.list_error
        with self._lock:
            return dict(self.objects)

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
            raise Cancelled(context={"name": name})
        if name in self.fail_names:
            raise PublishFailure("Quota exceeded.", context={"name": name})
        remote = RemoteObject(name=name, size=path.stat().st_size, sha1=sha1)
        with self._lock:
            self.uploads.append(name)
            self.objects[name] = remote
        return remote


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    for project in ("geph4-client", "geph4-bridge"):
        (root / project).mkdir(parents=True)
        manifest = root / project / "Cargo.toml"
        manifest.write_text(f'[package]\nname = "{project}"\n', encoding="utf-8")
    return root


def make_config(workdir: Path, *pairs: tuple[str, str], **overrides: object) -> CatalogConfig:
    entries = tuple(
        CatalogEntry(project=project, manifest=f"{project}/Cargo.toml", triple=triple)
        for project, triple in pairs
    )
    return CatalogConfig(entries=entries, workdir=workdir, **overrides)  # type: ignore[arg-type]

"""Toolchain profiles: how a target is compiled and where its binary lands."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from crossship.catalog.naming import NamingTable, executable_suffix
from crossship.models import TargetSpec

STRIP_RUSTFLAGS = {"RUSTFLAGS": "-C link-arg=-s"}


@dataclass(frozen=True, slots=True)
class ToolchainProfile:
    name: str
    tool: str
    args: tuple[str, ...] = ("build", "--release")
    env: Mapping[str, str] = field(default_factory=dict)
    target_root: str = "target"
    build_dir: str = "release"

    def command(self, spec: TargetSpec) -> tuple[str, ...]:
        return (
            self.tool,
            *self.args,
            "--target",
            spec.triple,
            f"--manifest-path={spec.manifest}",
        )

    def expected_binary(self, spec: TargetSpec, workdir: Path, naming: NamingTable) -> Path:
        """Location the toolchain writes the binary to for ``spec``."""
        binary = f"{spec.binary}{executable_suffix(spec.triple, naming)}"
        return workdir / self.target_root / spec.triple / self.build_dir / binary


BUILTIN_PROFILES: dict[str, ToolchainProfile] = {
    "cross": ToolchainProfile(name="cross", tool="cross", env=STRIP_RUSTFLAGS),
    "cargo": ToolchainProfile(name="cargo", tool="cargo", env=STRIP_RUSTFLAGS),
}


def merge_profiles(
    overrides: Mapping[str, ToolchainProfile] | None,
) -> dict[str, ToolchainProfile]:
    merged = dict(BUILTIN_PROFILES)
    if overrides:
        merged.update(overrides)
    return merged

"""Platform triple to canonical artifact name mapping."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from crossship.errors import ConfigError


@dataclass(frozen=True, slots=True)
class PlatformName:
    os: str
    arch: str

    @property
    def extension(self) -> str:
        return ".exe" if self.os == "windows" else ""

    @property
    def label(self) -> str:
        return f"{self.os}-{self.arch}"


NamingTable = Mapping[str, PlatformName]

DEFAULT_NAMING_TABLE: dict[str, PlatformName] = {
    "x86_64-unknown-linux-musl": PlatformName("linux", "amd64"),
    "armv7-unknown-linux-musleabihf": PlatformName("linux", "armv7"),
    "armv7-linux-androideabi": PlatformName("android", "armv7"),
    "aarch64-linux-android": PlatformName("android", "aarch64"),
    "x86_64-pc-windows-gnu": PlatformName("windows", "amd64"),
    "x86_64-apple-darwin": PlatformName("macos", "amd64"),
}


def platform_for(triple: str, table: NamingTable = DEFAULT_NAMING_TABLE) -> PlatformName:
    try:
        return table[triple]
    except KeyError as exc:
        raise ConfigError(
            "Platform triple has no entry in the naming table.",
            hint="Add the triple under `naming` in the catalog file.",
            context={"operation": "canonical_name", "triple": triple},
        ) from exc


def canonical_name(
    project: str,
    triple: str,
    table: NamingTable = DEFAULT_NAMING_TABLE,
) -> str:
    """Return ``<project>-<os>-<arch>[.exe]`` for a (project, triple) pair."""
    platform = platform_for(triple, table)
    return f"{project}-{platform.label}{platform.extension}"


def executable_suffix(triple: str, table: NamingTable = DEFAULT_NAMING_TABLE) -> str:
    return platform_for(triple, table).extension


def merge_naming(overrides: Mapping[str, PlatformName] | None) -> dict[str, PlatformName]:
    merged = dict(DEFAULT_NAMING_TABLE)
    if overrides:
        merged.update(overrides)
    return merged

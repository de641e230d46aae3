"""Catalog file parser (JSON or YAML)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from crossship.catalog.naming import PlatformName, merge_naming
from crossship.catalog.profiles import ToolchainProfile, merge_profiles
from crossship.errors import ConfigError

DEFAULT_BUILD_TIMEOUT_S = 3600.0
DEFAULT_UPLOAD_TIMEOUT_S = 600.0
DEFAULT_GRACE_PERIOD_S = 30.0


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    project: str
    manifest: str
    triple: str
    profile: str = "cross"
    binary: str = ""
    enabled: bool = True


@dataclass(frozen=True, slots=True)
class RemoteConfig:
    address: str
    key_id_env: str = "B2_KEYID"
    key_env: str = "B2_APPKEY"


@dataclass(frozen=True, slots=True)
class CatalogConfig:
    entries: tuple[CatalogEntry, ...]
    workdir: Path = Path(".")
    profiles: dict[str, ToolchainProfile] = field(default_factory=lambda: merge_profiles(None))
    naming: dict[str, PlatformName] = field(default_factory=lambda: merge_naming(None))
    remote: RemoteConfig | None = None
    parallelism: int | None = None
    build_timeout_s: float = DEFAULT_BUILD_TIMEOUT_S
    upload_timeout_s: float = DEFAULT_UPLOAD_TIMEOUT_S
    grace_period_s: float = DEFAULT_GRACE_PERIOD_S


def load_catalog(path: str | Path) -> CatalogConfig:
    catalog_path = Path(path)
    try:
        raw = catalog_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(
            "Catalog file does not exist.",
            hint="Pass an existing file with --config.",
            context={"path": str(catalog_path)},
        ) from exc

    suffix = catalog_path.suffix.lower()
    if suffix == ".json":
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(
                "Invalid catalog JSON.", hint=str(exc), context={"path": str(catalog_path)}
            ) from exc
    elif suffix in (".yaml", ".yml"):
        try:
            payload = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigError(
                "Invalid catalog YAML.", hint=str(exc), context={"path": str(catalog_path)}
            ) from exc
    else:
        raise ConfigError(
            "Unsupported catalog file type.",
            hint="Use a .json, .yaml or .yml catalog file.",
            context={"path": str(catalog_path)},
        )
    return parse_catalog(payload, base_dir=catalog_path.resolve().parent)


def parse_catalog(payload: Any, *, base_dir: Path) -> CatalogConfig:
    if not isinstance(payload, dict):
        raise ConfigError("Catalog must be a mapping at the top level.")

    targets_raw = payload.get("targets")
    if not isinstance(targets_raw, list) or not targets_raw:
        raise ConfigError(
            "Catalog must contain a non-empty `targets` list.",
            hint="List entries of the form {project, manifest, triple}.",
        )
    entries: list[CatalogEntry] = []
    for index, item in enumerate(targets_raw):
        entries.extend(_parse_entries(item, index=index))

    workdir_raw = payload.get("workdir", ".")
    if not isinstance(workdir_raw, str):
        raise ConfigError("Invalid catalog `workdir` value.")
    workdir = Path(workdir_raw)
    if not workdir.is_absolute():
        workdir = (base_dir / workdir).resolve()

    timeouts = _optional_dict(payload, "timeouts")
    return CatalogConfig(
        entries=tuple(entries),
        workdir=workdir,
        profiles=merge_profiles(_parse_profiles(_optional_dict(payload, "profiles"))),
        naming=merge_naming(_parse_naming(_optional_dict(payload, "naming"))),
        remote=_parse_remote(payload.get("remote")),
        parallelism=_optional_positive_int(payload, "parallelism"),
        build_timeout_s=_optional_seconds(timeouts, "build", DEFAULT_BUILD_TIMEOUT_S),
        upload_timeout_s=_optional_seconds(timeouts, "upload", DEFAULT_UPLOAD_TIMEOUT_S),
        grace_period_s=_optional_seconds(payload, "grace_period", DEFAULT_GRACE_PERIOD_S),
    )


def _parse_entries(item: Any, *, index: int) -> list[CatalogEntry]:
    if not isinstance(item, dict):
        raise ConfigError("Invalid catalog target entry.", context={"index": str(index)})
    project = _required_str(item, "project", index=index)
    manifest = _required_str(item, "manifest", index=index)
    profile = item.get("profile", "cross")
    binary = item.get("binary", "")
    enabled = item.get("enabled", True)
    if not isinstance(profile, str) or not isinstance(binary, str):
        raise ConfigError(
            "Invalid catalog `profile` or `binary` value.", context={"index": str(index)}
        )
    if not isinstance(enabled, bool):
        raise ConfigError("Invalid catalog `enabled` value.", context={"index": str(index)})

    if "triples" in item:
        triples = item["triples"]
        if not isinstance(triples, list) or not all(isinstance(t, str) and t for t in triples):
            raise ConfigError("Invalid catalog `triples` value.", context={"index": str(index)})
    else:
        triples = [_required_str(item, "triple", index=index)]

    return [
        CatalogEntry(
            project=project,
            manifest=manifest,
            triple=triple,
            profile=profile,
            binary=binary,
            enabled=enabled,
        )
        for triple in triples
    ]


def _parse_profiles(raw: dict[str, Any]) -> dict[str, ToolchainProfile]:
    profiles: dict[str, ToolchainProfile] = {}
    for name, body in raw.items():
        if not isinstance(body, dict):
            raise ConfigError("Invalid toolchain profile.", context={"profile": str(name)})
        tool = body.get("tool")
        args = body.get("args", ["build", "--release"])
        env = body.get("env", {})
        target_root = body.get("target_root", "target")
        build_dir = body.get("build_dir", "release")
        if not isinstance(tool, str) or not tool:
            raise ConfigError("Toolchain profile requires a `tool`.", context={"profile": name})
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            raise ConfigError("Invalid toolchain profile `args`.", context={"profile": name})
        if not isinstance(env, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in env.items()
        ):
            raise ConfigError("Invalid toolchain profile `env`.", context={"profile": name})
        for key, value in (("target_root", target_root), ("build_dir", build_dir)):
            if not isinstance(value, str) or not value:
                raise ConfigError(
                    f"Invalid toolchain profile `{key}`.",
                    hint="Use a non-empty path segment.",
                    context={"profile": name},
                )
        profiles[name] = ToolchainProfile(
            name=name,
            tool=tool,
            args=tuple(args),
            env=dict(env),
            target_root=target_root,
            build_dir=build_dir,
        )
    return profiles


def _parse_naming(raw: dict[str, Any]) -> dict[str, PlatformName]:
    naming: dict[str, PlatformName] = {}
    for triple, body in raw.items():
        if isinstance(body, str) and "-" in body:
            os_name, arch = body.split("-", 1)
        elif isinstance(body, dict):
            os_name, arch = body.get("os"), body.get("arch")
        else:
            os_name, arch = None, None
        if not isinstance(os_name, str) or not os_name or not isinstance(arch, str) or not arch:
            raise ConfigError(
                "Invalid naming table entry.",
                hint="Use `<triple>: {os: linux, arch: amd64}` or `<triple>: linux-amd64`.",
                context={"triple": str(triple)},
            )
        naming[triple] = PlatformName(os_name, arch)
    return naming


def _parse_remote(raw: Any) -> RemoteConfig | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ConfigError("Invalid catalog `remote` value.")
    address = raw.get("address")
    if not isinstance(address, str) or not address:
        raise ConfigError("Catalog `remote` requires an `address`.")
    credentials = raw.get("credentials", {})
    if not isinstance(credentials, dict):
        raise ConfigError("Invalid catalog `remote.credentials` value.")
    return RemoteConfig(
        address=address,
        key_id_env=str(credentials.get("key_id_env", "B2_KEYID")),
        key_env=str(credentials.get("key_env", "B2_APPKEY")),
    )


def _required_str(payload: dict[str, Any], key: str, *, index: int) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Invalid catalog `{key}` value.", context={"index": str(index)})
    return value


def _optional_dict(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"Invalid catalog `{key}` value.")
    return value


def _optional_positive_int(payload: dict[str, Any], key: str) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"Invalid catalog `{key}` value.", hint="Use a positive integer.")
    return value


def _optional_seconds(payload: dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigError(f"Invalid catalog `{key}` value.", hint="Use a number of seconds.")
    return float(value)

"""Target catalog: config loading, toolchain profiles and canonical naming."""

from .io import CatalogConfig, CatalogEntry, RemoteConfig, load_catalog, parse_catalog
from .naming import DEFAULT_NAMING_TABLE, PlatformName, canonical_name, platform_for
from .profiles import BUILTIN_PROFILES, ToolchainProfile
from .resolve import resolve_targets

__all__ = [
    "BUILTIN_PROFILES",
    "CatalogConfig",
    "CatalogEntry",
    "DEFAULT_NAMING_TABLE",
    "PlatformName",
    "RemoteConfig",
    "ToolchainProfile",
    "canonical_name",
    "load_catalog",
    "parse_catalog",
    "platform_for",
    "resolve_targets",
]

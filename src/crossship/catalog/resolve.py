"""Resolve a catalog into the ordered list of targets for a run."""

from __future__ import annotations

from collections.abc import Iterable

from crossship.catalog.io import CatalogConfig
from crossship.catalog.naming import canonical_name
from crossship.errors import ConfigError
from crossship.models import TargetSpec


def resolve_targets(
    config: CatalogConfig,
    *,
    projects: Iterable[str] = (),
    triples: Iterable[str] = (),
) -> tuple[TargetSpec, ...]:
    """Return enabled targets in declaration order.

    Validation covers every entry, including disabled and filtered ones, so a
    catalog that is broken for some run is broken for all of them.
    """
    project_filter = frozenset(projects)
    triple_filter = frozenset(triples)

    seen_pairs: set[tuple[str, str]] = set()
    seen_names: dict[str, str] = {}
    specs: list[TargetSpec] = []
    for entry in config.entries:
        if entry.profile not in config.profiles:
            raise ConfigError(
                "Unknown toolchain profile.",
                hint=f"Known profiles: {', '.join(sorted(config.profiles))}.",
                context={
                    "operation": "resolve_targets",
                    "project": entry.project,
                    "triple": entry.triple,
                    "profile": entry.profile,
                },
            )
        pair = (entry.project, entry.triple)
        if pair in seen_pairs:
            raise ConfigError(
                "Duplicate (project, triple) pair in catalog.",
                context={
                    "operation": "resolve_targets",
                    "project": entry.project,
                    "triple": entry.triple,
                },
            )
        seen_pairs.add(pair)

        name = canonical_name(entry.project, entry.triple, config.naming)
        if name in seen_names:
            raise ConfigError(
                "Two catalog entries map to the same canonical artifact name.",
                hint="Give each triple a distinct os/arch pair in the naming table.",
                context={
                    "operation": "resolve_targets",
                    "name": name,
                    "first": seen_names[name],
                    "second": f"{entry.project}@{entry.triple}",
                },
            )
        seen_names[name] = f"{entry.project}@{entry.triple}"

        if not entry.enabled:
            continue
        if project_filter and entry.project not in project_filter:
            continue
        if triple_filter and entry.triple not in triple_filter:
            continue
        specs.append(
            TargetSpec(
                project=entry.project,
                triple=entry.triple,
                profile=entry.profile,
                manifest=entry.manifest,
                binary=entry.binary,
            )
        )
    return tuple(specs)

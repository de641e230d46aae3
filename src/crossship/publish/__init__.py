"""Remote store adapters and the mirror-sync publisher."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse

from crossship.builders.process import ProcessRunner, run_process
from crossship.errors import ConfigError

from .b2 import B2Store, parse_b2_address
from .base import RemoteObject, RemoteStore
from .credentials import Credential
from .local import LocalDirectoryStore
from .publisher import Publisher


def open_store(
    address: str,
    *,
    credential: Credential | None = None,
    runner: ProcessRunner = run_process,
    grace_period_s: float = 0.0,
) -> RemoteStore:
    if address.startswith("b2://"):
        if credential is None:
            raise ConfigError(
                "B2 remote requires credentials.",
                hint="Configure remote.credentials and export the key pair.",
                context={"address": address},
            )
        return B2Store.from_address(
            address, credential, runner=runner, grace_period_s=grace_period_s
        )
    if address.startswith("file://"):
        return LocalDirectoryStore(root=Path(unquote(urlparse(address).path)))
    if "://" not in address:
        return LocalDirectoryStore(root=Path(address))
    raise ConfigError(
        "Unsupported remote store address.",
        hint="Use b2://<bucket>/<prefix>/, file:///path or a plain directory path.",
        context={"address": address},
    )


__all__ = [
    "B2Store",
    "Credential",
    "LocalDirectoryStore",
    "Publisher",
    "RemoteObject",
    "RemoteStore",
    "open_store",
    "parse_b2_address",
]

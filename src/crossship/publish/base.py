"""Protocol for remote distribution stores."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from crossship.cancel import CancelToken


@dataclass(frozen=True, slots=True)
class RemoteObject:
    name: str
    size: int
    sha1: str | None = None

    def matches(self, *, size: int, sha1: str) -> bool:
        """True when the remote copy has the same content as a local file."""
        return self.size == size and self.sha1 is not None and self.sha1 == sha1


class RemoteStore(Protocol):
    name: str

    @property
    def address(self) -> str:
        """Display address of the store; never contains credentials."""

    def authorize(self, *, cancel: CancelToken | None = None) -> None:
        """Validate credentials once before any listing or upload."""

    def list_objects(self, *, cancel: CancelToken | None = None) -> Mapping[str, RemoteObject]:
        """Return remote objects keyed by name relative to the store prefix."""

    def upload(
        self,
        path: Path,
        name: str,
        *,
        sha1: str,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
    ) -> RemoteObject:
        """Upload ``path`` as ``name``; raise ``PublishFailure`` on error."""

"""Opaque credential handle for remote stores."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from crossship.errors import ConfigError


@dataclass(frozen=True, slots=True)
class Credential:
    """Pre-authorized key pair; only ever handed to a subprocess environment."""

    source: str
    _key_id: str = field(repr=False)
    _key: str = field(repr=False)

    @classmethod
    def from_env(
        cls,
        *,
        key_id_env: str = "B2_KEYID",
        key_env: str = "B2_APPKEY",
        environ: Mapping[str, str] | None = None,
    ) -> Credential:
        env = os.environ if environ is None else environ
        key_id = env.get(key_id_env, "")
        key = env.get(key_env, "")
        if not key_id or not key:
            raise ConfigError(
                "Remote store credentials are not set.",
                hint=f"Export {key_id_env} and {key_env} before publishing.",
                context={"operation": "credentials", "key_id_env": key_id_env, "key_env": key_env},
            )
        return cls(source=f"env:{key_id_env},{key_env}", _key_id=key_id, _key=key)

    def as_env(self) -> dict[str, str]:
        return {"B2_APPLICATION_KEY_ID": self._key_id, "B2_APPLICATION_KEY": self._key}

    def __repr__(self) -> str:
        return f"Credential(source={self.source!r})"

    def __str__(self) -> str:
        return repr(self)

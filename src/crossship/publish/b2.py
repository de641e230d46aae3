"""Backblaze B2 store adapter.

Drives the ``b2`` command-line tool. Credentials reach the tool only through
its ``B2_APPLICATION_KEY_ID``/``B2_APPLICATION_KEY`` environment variables,
never through argv, so they do not appear in process listings or error
context.
"""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from crossship.builders.process import ProcessResult, ProcessRunner, run_process
from crossship.cancel import CancelToken
from crossship.errors import Cancelled, ConfigError, PublishFailure
from crossship.publish.base import RemoteObject
from crossship.publish.credentials import Credential

MAX_ERROR_OUTPUT_CHARS = 2000
LIST_TIMEOUT_S = 300.0


def parse_b2_address(address: str) -> tuple[str, str]:
    """Split ``b2://bucket/prefix`` into ``(bucket, "prefix/")``."""
    if not address.startswith("b2://"):
        raise ConfigError("Not a b2:// address.", context={"address": address})
    bucket, _, prefix = address[len("b2://") :].partition("/")
    if not bucket:
        raise ConfigError(
            "B2 address is missing a bucket name.",
            hint="Use b2://<bucket>/<prefix>/.",
            context={"address": address},
        )
    prefix = prefix.strip("/")
    return bucket, f"{prefix}/" if prefix else ""


@dataclass(slots=True)
class B2Store:
    bucket: str
    prefix: str
    credential: Credential
    runner: ProcessRunner = run_process
    tool: str = "b2"
    name: str = "b2"
    grace_period_s: float = 0.0
    _tool_checked: bool = field(default=False, repr=False)

    @classmethod
    def from_address(
        cls,
        address: str,
        credential: Credential,
        *,
        runner: ProcessRunner = run_process,
        grace_period_s: float = 0.0,
    ) -> B2Store:
        bucket, prefix = parse_b2_address(address)
        return cls(
            bucket=bucket,
            prefix=prefix,
            credential=credential,
            runner=runner,
            grace_period_s=grace_period_s,
        )

    @property
    def address(self) -> str:
        return f"b2://{self.bucket}/{self.prefix}"

    def authorize(self, *, cancel: CancelToken | None = None) -> None:
        self._check_cancel(cancel, operation="authorize")
        self._ensure_tool()
        result = self._run(
            ["account", "authorize"],
            operation="authorize",
            timeout=LIST_TIMEOUT_S,
            cancel=cancel,
        )
        self._check_stopped(result, operation="authorize")
        if not result.ok:
            raise self._failure("B2 account authorization failed.", result, operation="authorize")

    def list_objects(self, *, cancel: CancelToken | None = None) -> dict[str, RemoteObject]:
        self._check_cancel(cancel, operation="list")
        self._ensure_tool()
        result = self._run(
            ["ls", "--json", "--recursive", self.address],
            operation="list",
            timeout=LIST_TIMEOUT_S,
            cancel=cancel,
        )
        self._check_stopped(result, operation="list")
        if not result.ok:
            raise self._failure("B2 listing failed.", result, operation="list")
        try:
            entries = json.loads(result.output or "[]")
        except json.JSONDecodeError as exc:
            raise PublishFailure(
                "B2 listing output is not valid JSON.",
                hint=str(exc),
                context={"store": self.name, "operation": "list", "address": self.address},
            ) from exc
        if not isinstance(entries, list):
            raise PublishFailure(
                "B2 listing output has invalid structure.",
                context={"store": self.name, "operation": "list", "address": self.address},
            )

        objects: dict[str, RemoteObject] = {}
        for entry in entries:
            remote = self._parse_entry(entry)
            if remote is not None:
                objects[remote.name] = remote
        return objects

    def upload(
        self,
        path: Path,
        name: str,
        *,
        sha1: str,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
    ) -> RemoteObject:
        self._check_cancel(cancel, operation="upload", name=name)
        self._ensure_tool()
        result = self._run(
            [
                "file",
                "upload",
                "--no-progress",
                "--sha1",
                sha1,
                "--info",
                f"large_file_sha1={sha1}",
                self.bucket,
                str(path),
                f"{self.prefix}{name}",
            ],
            operation="upload",
            timeout=timeout,
            cancel=cancel,
        )
        self._check_stopped(result, operation="upload", name=name)
        if not result.ok:
            raise self._failure("B2 upload failed.", result, operation="upload", name=name)
        return RemoteObject(name=name, size=path.stat().st_size, sha1=sha1)

    def _parse_entry(self, entry: Any) -> RemoteObject | None:
        if not isinstance(entry, dict) or entry.get("action", "upload") != "upload":
            return None
        file_name = entry.get("fileName")
        if not isinstance(file_name, str) or not file_name.startswith(self.prefix):
            return None
        size = entry.get("size", entry.get("contentLength"))
        if not isinstance(size, int):
            return None
        sha1 = entry.get("contentSha1")
        if isinstance(sha1, str) and sha1.startswith("unverified:"):
            sha1 = sha1[len("unverified:") :]
        if not isinstance(sha1, str) or sha1 in ("", "none"):
            file_info = entry.get("fileInfo") or {}
            sha1 = file_info.get("large_file_sha1") if isinstance(file_info, dict) else None
        return RemoteObject(
            name=file_name[len(self.prefix) :],
            size=size,
            sha1=sha1 if isinstance(sha1, str) and sha1 else None,
        )

    def _run(
        self,
        args: list[str],
        *,
        operation: str,
        timeout: float | None,
        cancel: CancelToken | None = None,
    ) -> ProcessResult:
        try:
            return self.runner(
                [self.tool, *args],
                env=self.credential.as_env(),
                timeout=timeout,
                cancel=cancel,
                grace_period_s=self.grace_period_s,
            )
        except OSError as exc:
            raise PublishFailure(
                "B2 CLI could not be started.",
                hint=str(exc),
                context={"store": self.name, "operation": operation},
            ) from exc

    def _failure(
        self,
        message: str,
        result: ProcessResult,
        *,
        operation: str,
        name: str = "",
    ) -> PublishFailure:
        return PublishFailure(
            message,
            hint="Check B2 credentials, bucket permissions and quota.",
            context={
                "store": self.name,
                "operation": operation,
                "address": self.address,
                "name": name,
                "returncode": "" if result.returncode is None else str(result.returncode),
                "timed_out": "yes" if result.timed_out else "",
                "output": result.output[-MAX_ERROR_OUTPUT_CHARS:],
            },
        )

    def _check_cancel(
        self,
        cancel: CancelToken | None,
        *,
        operation: str,
        name: str = "",
    ) -> None:
        if cancel is not None and cancel.cancelled:
            raise Cancelled(context={"store": self.name, "operation": operation, "name": name})

    def _check_stopped(self, result: ProcessResult, *, operation: str, name: str = "") -> None:
        if result.cancelled:
            raise Cancelled(
                "B2 CLI was stopped after the cancellation grace period.",
                context={"store": self.name, "operation": operation, "name": name},
            )

    def _ensure_tool(self) -> None:
        if self._tool_checked:
            return
        if shutil.which(self.tool) is None:
            raise PublishFailure(
                "Backblaze B2 CLI (`b2`) not found in PATH.",
                hint="Install it with `pip install b2` before publishing.",
                context={"store": self.name},
            )
        self._tool_checked = True

"""Build executor: one toolchain invocation and one BuildResult per target."""

from __future__ import annotations

import shlex
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from crossship.builders.process import ProcessResult, ProcessRunner, run_process
from crossship.cancel import CancelToken
from crossship.catalog.naming import NamingTable, canonical_name
from crossship.catalog.profiles import ToolchainProfile
from crossship.errors import BuildFailure, Cancelled, ConfigError
from crossship.models import BuildResult, TargetSpec
from crossship.observability import StructuredLogger

MAX_ERROR_LOG_CHARS = 2000


@dataclass(frozen=True, slots=True)
class BuildPlan:
    spec: TargetSpec
    command: tuple[str, ...]
    env: Mapping[str, str]
    expected_binary: Path
    canonical_name: str

    def to_dict(self) -> dict[str, object]:
        return {
            "target": self.spec.to_dict(),
            "command": shlex.join(self.command),
            "env": dict(sorted(self.env.items())),
            "expected_binary": str(self.expected_binary),
            "canonical_name": self.canonical_name,
        }


@dataclass(slots=True)
class BuildExecutor:
    workdir: Path
    profiles: Mapping[str, ToolchainProfile]
    naming: NamingTable
    runner: ProcessRunner = run_process
    timeout_s: float | None = None
    grace_period_s: float = 0.0
    cancel: CancelToken = field(default_factory=CancelToken)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def plan(self, spec: TargetSpec) -> BuildPlan:
        profile = self._profile(spec)
        return BuildPlan(
            spec=spec,
            command=profile.command(spec),
            env=dict(profile.env),
            expected_binary=profile.expected_binary(spec, self.workdir, self.naming),
            canonical_name=canonical_name(spec.project, spec.triple, self.naming),
        )

    def build(self, spec: TargetSpec) -> BuildResult:
        """Run the toolchain for ``spec``; failures are returned, not raised."""
        if self.cancel.cancelled:
            self.logger.log(
                operation="build_skipped",
                target=spec.key,
                stage="build",
                message="Build not started because the run was cancelled.",
                level="warning",
            )
            return BuildResult(
                spec=spec,
                status="cancelled",
                error=Cancelled(context={"target": spec.key}).to_dict(),
            )

        plan = self.plan(spec)
        self.logger.log(
            operation="build_start",
            target=spec.key,
            stage="build",
            message="Starting toolchain build.",
            extra={"command": shlex.join(plan.command)},
        )
        started = time.monotonic()
        try:
            process = self.runner(
                plan.command,
                cwd=self.workdir,
                env=plan.env,
                timeout=self.timeout_s,
                cancel=self.cancel,
                grace_period_s=self.grace_period_s,
            )
        except OSError as exc:
            return self._failed(
                spec,
                BuildFailure(
                    "Toolchain could not be started.",
                    hint=f"Ensure `{plan.command[0]}` is installed and in PATH.",
                    context={"target": spec.key, "command": shlex.join(plan.command)},
                ),
                log=str(exc),
                duration_s=time.monotonic() - started,
            )

        result = self._interpret(spec, plan, process)
        self.logger.log(
            operation="build_complete",
            target=spec.key,
            stage="build",
            message=f"Toolchain build finished with status {result.status}.",
            level="info" if result.ok else "error",
            extra={"returncode": process.returncode, "duration_s": round(process.duration_s, 3)},
        )
        return result

    def _interpret(
        self,
        spec: TargetSpec,
        plan: BuildPlan,
        process: ProcessResult,
    ) -> BuildResult:
        context = {
            "target": spec.key,
            "command": shlex.join(plan.command),
            "returncode": "" if process.returncode is None else str(process.returncode),
        }
        if process.cancelled:
            return BuildResult(
                spec=spec,
                status="cancelled",
                log=process.output,
                returncode=process.returncode,
                duration_s=process.duration_s,
                error=Cancelled(
                    "Build was stopped after the cancellation grace period.",
                    context=context,
                ).to_dict(),
            )
        if process.timed_out:
            failure = BuildFailure(
                "Toolchain build timed out.",
                hint="Raise timeouts.build in the catalog or check for a hung build.",
                context={**context, "timeout_s": str(self.timeout_s)},
            )
        elif process.returncode != 0:
            failure = BuildFailure(
                "Toolchain build exited with a non-zero status.",
                hint="Check the captured build log for details.",
                context={**context, "output": process.output[-MAX_ERROR_LOG_CHARS:]},
            )
        elif not plan.expected_binary.is_file():
            failure = BuildFailure(
                "Toolchain reported success but the expected binary is missing.",
                hint="Check the profile's target_root/build_dir and the binary name.",
                context={**context, "expected_binary": str(plan.expected_binary)},
            )
        else:
            return BuildResult(
                spec=spec,
                status="success",
                artifact_path=plan.expected_binary,
                log=process.output,
                returncode=process.returncode,
                duration_s=process.duration_s,
            )
        return self._failed(
            spec,
            failure,
            log=process.output,
            returncode=process.returncode,
            duration_s=process.duration_s,
        )

    def _failed(
        self,
        spec: TargetSpec,
        failure: BuildFailure,
        *,
        log: str,
        returncode: int | None = None,
        duration_s: float = 0.0,
    ) -> BuildResult:
        return BuildResult(
            spec=spec,
            status="failure",
            log=log,
            returncode=returncode,
            duration_s=duration_s,
            error=failure.to_dict(),
        )

    def _profile(self, spec: TargetSpec) -> ToolchainProfile:
        try:
            return self.profiles[spec.profile]
        except KeyError as exc:
            raise ConfigError(
                "Unknown toolchain profile.",
                context={"target": spec.key, "profile": spec.profile},
            ) from exc

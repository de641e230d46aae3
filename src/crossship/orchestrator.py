"""Run orchestration: resolve, build, collect, publish, report."""

from __future__ import annotations

import os
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from crossship.builders.executor import BuildExecutor
from crossship.builders.process import ProcessRunner, run_process
from crossship.cancel import CancelToken
from crossship.catalog.io import CatalogConfig
from crossship.catalog.resolve import resolve_targets
from crossship.collect import ArtifactCollector
from crossship.errors import Cancelled, CrossshipError, PublishFailure
from crossship.models import Artifact, BuildResult, PublishOutcome, TargetSpec
from crossship.observability import StructuredLogger
from crossship.publish.base import RemoteStore
from crossship.publish.publisher import Publisher
from crossship.report import RunReport

DEFAULT_MAX_PARALLELISM = 4
PUBLISH_PARALLELISM = 2


def default_parallelism() -> int:
    return max(1, min(os.cpu_count() or 1, DEFAULT_MAX_PARALLELISM))


@dataclass(slots=True)
class Orchestrator:
    """Streams each target through build, collect and publish.

    Builds run on a bounded pool. Each finished target is collected on its
    build worker and handed straight to the publish pool, so uploads overlap
    with builds still in progress. Only ``ConfigError`` escapes ``run``;
    every other failure is recorded in the report.
    """

    config: CatalogConfig
    output_root: Path
    store: RemoteStore | None = None
    parallelism: int | None = None
    grace_period_s: float | None = None
    dry_run: bool = False
    runner: ProcessRunner = run_process
    cancel: CancelToken = field(default_factory=CancelToken)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def run(
        self,
        *,
        projects: Iterable[str] = (),
        triples: Iterable[str] = (),
    ) -> RunReport:
        specs = resolve_targets(self.config, projects=projects, triples=triples)
        executor = self._executor()
        store_address = self.store.address if self.store is not None else None
        self.logger.log(
            operation="run_start",
            target=None,
            stage="run",
            message=f"Resolved {len(specs)} target(s).",
            extra={"dry_run": self.dry_run, "store": store_address},
        )

        if self.dry_run:
            plans = tuple(executor.plan(spec).to_dict() for spec in specs)
            return RunReport(
                target_count=len(specs),
                plans=plans,
                store=store_address,
                dry_run=True,
            )

        collector = ArtifactCollector(
            output_root=self.output_root,
            naming=self.config.naming,
            logger=self.logger,
        )
        publisher = self._publisher()
        auth_error = None
        if self.store is not None and specs:
            auth_error = self._authorize(self.store)

        builds: dict[TargetSpec, BuildResult] = {}
        artifacts: dict[TargetSpec, Artifact] = {}
        publish_futures: dict[str, Future[PublishOutcome]] = {}
        publishes: list[PublishOutcome] = []
        workers = self.parallelism or self.config.parallelism or default_parallelism()

        with (
            ThreadPoolExecutor(max_workers=workers, thread_name_prefix="build") as build_pool,
            ThreadPoolExecutor(
                max_workers=PUBLISH_PARALLELISM, thread_name_prefix="publish"
            ) as publish_pool,
        ):
            build_futures = {
                build_pool.submit(self._build_and_collect, executor, collector, spec): spec
                for spec in specs
            }
            for future in as_completed(build_futures):
                result, artifact = future.result()
                builds[result.spec] = result
                if artifact is None:
                    continue
                artifacts[result.spec] = artifact
                if publisher is None:
                    continue
                if auth_error is not None:
                    publishes.append(
                        PublishOutcome(
                            name=artifact.canonical_name,
                            status="skipped" if isinstance(auth_error, Cancelled) else "failed",
                            error=auth_error.to_dict(),
                        )
                    )
                    continue
                publish_futures[artifact.canonical_name] = publish_pool.submit(
                    publisher.publish, artifact
                )
            publishes.extend(future.result() for future in publish_futures.values())

        ordered_artifacts = tuple(artifacts[spec] for spec in specs if spec in artifacts)
        name_order = {artifact.canonical_name: i for i, artifact in enumerate(ordered_artifacts)}
        report = RunReport(
            target_count=len(specs),
            builds=tuple(builds[spec] for spec in specs),
            artifacts=ordered_artifacts,
            publishes=tuple(sorted(publishes, key=lambda outcome: name_order[outcome.name])),
            store=store_address,
            cancelled_run=self.cancel.cancelled,
        )
        self.logger.log(
            operation="run_complete",
            target=None,
            stage="run",
            message=f"Run finished with status {report.status}.",
            level="info" if report.status == "success" else "error",
            extra=report.summary(),
        )
        return report

    def _build_and_collect(
        self,
        executor: BuildExecutor,
        collector: ArtifactCollector,
        spec: TargetSpec,
    ) -> tuple[BuildResult, Artifact | None]:
        return collector.collect_or_fail(executor.build(spec))

    def _executor(self) -> BuildExecutor:
        return BuildExecutor(
            workdir=self.config.workdir,
            profiles=self.config.profiles,
            naming=self.config.naming,
            runner=self.runner,
            timeout_s=self.config.build_timeout_s or None,
            grace_period_s=self._grace_period(),
            cancel=self.cancel,
            logger=self.logger,
        )

    def _publisher(self) -> Publisher | None:
        if self.store is None:
            return None
        return Publisher(
            store=self.store,
            timeout_s=self.config.upload_timeout_s or None,
            cancel=self.cancel,
            logger=self.logger,
        )

    def _authorize(self, store: RemoteStore) -> CrossshipError | None:
        try:
            store.authorize(cancel=self.cancel)
        except (PublishFailure, Cancelled) as exc:
            self.logger.log(
                operation="authorize_failed",
                target=None,
                stage="publish",
                message=exc.message,
                level="error",
                extra={"store": store.address},
            )
            return exc
        return None

    def _grace_period(self) -> float:
        if self.grace_period_s is not None:
            return self.grace_period_s
        return self.config.grace_period_s

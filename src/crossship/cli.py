"""Command-line entrypoint.

Usage:
    crossship run --config catalog.yaml --output OUTPUT [--parallelism N] [--dry-run]
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from types import FrameType

from crossship.cancel import CancelToken
from crossship.catalog.io import RemoteConfig, load_catalog
from crossship.errors import ConfigError
from crossship.observability import StructuredLogger
from crossship.orchestrator import Orchestrator
from crossship.publish import Credential, RemoteStore, open_store
from crossship.report import RunReport

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crossship",
        description="Cross-compile a target matrix and publish canonical release binaries.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Build, collect and publish every catalog target")
    run_p.add_argument("--config", required=True, type=Path, help="Catalog file (.json/.yaml)")
    run_p.add_argument("--output", required=True, type=Path, help="Canonical output directory")
    run_p.add_argument("--parallelism", type=_positive_int, help="Concurrent builds")
    run_p.add_argument("--dry-run", action="store_true", help="Plan only; build and upload nothing")
    run_p.add_argument("--project", action="append", default=[], help="Only build this project")
    run_p.add_argument("--triple", action="append", default=[], help="Only build this triple")
    run_p.add_argument("--remote", help="Override the catalog's remote store address")
    run_p.add_argument("--grace-period", type=float, help="Seconds in-flight work gets on cancel")
    run_p.add_argument("--report", type=Path, help="Write the full report (.json or .cbor)")
    run_p.add_argument("--log-file", type=Path, help="Write structured logs as JSON lines")
    run_p.add_argument("--verbose", action="store_true", help="Echo structured logs to stderr")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "run":
        return cmd_run(args)
    return EXIT_FAILURE


def cmd_run(args: argparse.Namespace) -> int:
    cancel = CancelToken()
    logger = StructuredLogger(echo=sys.stderr if args.verbose else None)
    previous = _install_signal_handlers(cancel)
    try:
        try:
            config = load_catalog(args.config)
            store = None
            if not args.dry_run:
                store = _open_store(args, config.remote, config.grace_period_s)
            orchestrator = Orchestrator(
                config=config,
                output_root=args.output,
                store=store,
                parallelism=args.parallelism,
                grace_period_s=args.grace_period,
                dry_run=args.dry_run,
                cancel=cancel,
                logger=logger,
            )
            report = orchestrator.run(projects=args.project, triples=args.triple)
        except ConfigError as exc:
            print(f"error: {exc}", file=sys.stderr)
            summary = {"status": "error", "error": exc.to_dict()}
            print(json.dumps(summary, sort_keys=True), file=sys.stderr)
            return EXIT_CONFIG
    finally:
        _restore_signal_handlers(previous)
        if args.log_file is not None:
            logger.to_json_lines(args.log_file)

    if args.report is not None:
        _write_report(report, args.report)
    if args.dry_run:
        for plan in report.plans:
            print(json.dumps(plan, sort_keys=True))
    print(json.dumps(report.summary(), sort_keys=True), file=sys.stderr)

    if cancel.cancelled:
        return EXIT_CANCELLED
    return EXIT_OK if report.status == "success" else EXIT_FAILURE


def _open_store(
    args: argparse.Namespace,
    remote: RemoteConfig | None,
    grace_period_s: float,
) -> RemoteStore | None:
    address = args.remote or (remote.address if remote is not None else None)
    if address is None:
        return None
    credential = None
    if address.startswith("b2://"):
        credential = Credential.from_env(
            key_id_env=remote.key_id_env if remote is not None else "B2_KEYID",
            key_env=remote.key_env if remote is not None else "B2_APPKEY",
        )
    grace = args.grace_period if args.grace_period is not None else grace_period_s
    return open_store(address, credential=credential, grace_period_s=grace)


def _write_report(report: RunReport, path: Path) -> None:
    if path.suffix.lower() == ".cbor":
        report.to_cbor(path)
    else:
        report.to_json(path)


def _install_signal_handlers(cancel: CancelToken) -> dict[int, object]:
    def _handler(signum: int, frame: FrameType | None) -> None:
        cancel.cancel()

    previous: dict[int, object] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handler)
    return previous


def _restore_signal_handlers(previous: dict[int, object]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)  # type: ignore[arg-type]


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return value


if __name__ == "__main__":
    sys.exit(main())

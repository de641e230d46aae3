import functools
import json
from pathlib import Path

import cbor2
import pytest
from conftest import FakeToolchain

from crossship.cli import EXIT_CANCELLED, EXIT_CONFIG, EXIT_FAILURE, EXIT_OK, main
from crossship.orchestrator import Orchestrator


def _write_catalog(tmp_path: Path, workspace: Path, remote: str | None = None) -> Path:
    lines = [
        f"workdir: {workspace}",
        "targets:",
        "  - project: geph4-client",
        "    manifest: geph4-client/Cargo.toml",
        "    triples: [x86_64-unknown-linux-musl, x86_64-pc-windows-gnu, aarch64-linux-android]",
    ]
    if remote is not None:
        lines[1:1] = ["remote:", f"  address: {remote}"]
    path = tmp_path / "catalog.yaml"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _use_toolchain(monkeypatch: pytest.MonkeyPatch, toolchain: FakeToolchain) -> None:
    orchestrator = functools.partial(Orchestrator, runner=toolchain)
    monkeypatch.setattr("crossship.cli.Orchestrator", orchestrator)


def _summary(stderr: str) -> dict[str, object]:
    return json.loads(stderr.strip().splitlines()[-1])


def test_run_builds_and_mirrors_to_local_remote(
    tmp_path: Path,
    workspace: Path,
    toolchain: FakeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _use_toolchain(monkeypatch, toolchain)
    mirror = tmp_path / "mirror"
    catalog = _write_catalog(tmp_path, workspace, remote=str(mirror))

    code = main(["run", "--config", str(catalog), "--output", str(tmp_path / "OUTPUT")])

    assert code == EXIT_OK
    summary = _summary(capsys.readouterr().err)
    assert summary["status"] == "success"
    assert summary["published"] == 3
    assert sorted(p.name for p in mirror.iterdir()) == [
        "geph4-client-android-aarch64",
        "geph4-client-linux-amd64",
        "geph4-client-windows-amd64.exe",
    ]

    code = main(["run", "--config", str(catalog), "--output", str(tmp_path / "OUTPUT")])

    assert code == EXIT_OK
    summary = _summary(capsys.readouterr().err)
    assert summary["published"] == 0
    assert summary["unchanged"] == 3


def test_partial_failure_exits_nonzero(
    tmp_path: Path,
    workspace: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _use_toolchain(monkeypatch, FakeToolchain(fail_triples={"aarch64-linux-android"}))
    catalog = _write_catalog(tmp_path, workspace)

    code = main(["run", "--config", str(catalog), "--output", str(tmp_path / "OUTPUT")])

    assert code == EXIT_FAILURE
    summary = _summary(capsys.readouterr().err)
    assert summary["builds_failed"] == 1
    assert summary["builds_succeeded"] == 2


def test_dry_run_prints_plans_and_needs_no_credentials(
    tmp_path: Path,
    workspace: Path,
    toolchain: FakeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.delenv("B2_KEYID", raising=False)
    monkeypatch.delenv("B2_APPKEY", raising=False)
    _use_toolchain(monkeypatch, toolchain)
    catalog = _write_catalog(tmp_path, workspace, remote="b2://geph-dl/geph4-binaries/")

    code = main(
        ["run", "--config", str(catalog), "--output", str(tmp_path / "OUTPUT"), "--dry-run"]
    )

    assert code == EXIT_OK
    captured = capsys.readouterr()
    plans = [json.loads(line) for line in captured.out.splitlines()]
    assert [plan["canonical_name"] for plan in plans] == [
        "geph4-client-linux-amd64",
        "geph4-client-windows-amd64.exe",
        "geph4-client-android-aarch64",
    ]
    assert _summary(captured.err)["dry_run"] is True
    assert toolchain.calls == []


def test_missing_catalog_is_config_error(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    code = main(["run", "--config", str(tmp_path / "absent.yaml"), "--output", str(tmp_path)])

    assert code == EXIT_CONFIG
    summary = _summary(capsys.readouterr().err)
    assert summary["status"] == "error"
    assert summary["error"]["code"] == "E_CONFIG"  # type: ignore[index]


def test_b2_remote_without_credentials_is_config_error(
    tmp_path: Path,
    workspace: Path,
    toolchain: FakeToolchain,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.delenv("B2_KEYID", raising=False)
    monkeypatch.delenv("B2_APPKEY", raising=False)
    _use_toolchain(monkeypatch, toolchain)
    catalog = _write_catalog(tmp_path, workspace, remote="b2://geph-dl/geph4-binaries/")

    code = main(["run", "--config", str(catalog), "--output", str(tmp_path / "OUTPUT")])

    assert code == EXIT_CONFIG
    assert "B2_APPKEY" in capsys.readouterr().err
    assert toolchain.calls == []


def test_report_and_log_files_are_written(
    tmp_path: Path,
    workspace: Path,
    toolchain: FakeToolchain,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _use_toolchain(monkeypatch, toolchain)
    catalog = _write_catalog(tmp_path, workspace)
    base = ["run", "--config", str(catalog), "--output", str(tmp_path / "OUTPUT")]

    assert main([*base, "--report", str(tmp_path / "report.cbor")]) == EXIT_OK
    assert main(
        [*base, "--report", str(tmp_path / "report.json"), "--log-file", str(tmp_path / "run.log")]
    ) == EXIT_OK

    cbor_report = cbor2.loads((tmp_path / "report.cbor").read_bytes())
    json_report = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert cbor_report["summary"]["artifacts"] == 3
    assert json_report["summary"] == cbor_report["summary"]
    log_lines = (tmp_path / "run.log").read_text(encoding="utf-8").splitlines()
    assert json.loads(log_lines[0])["operation"] == "run_start"


def test_cancelled_run_exits_130(
    tmp_path: Path,
    workspace: Path,
    toolchain: FakeToolchain,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def cancelled_orchestrator(**kwargs: object) -> Orchestrator:
        orchestrator = Orchestrator(runner=toolchain, **kwargs)  # type: ignore[arg-type]
        orchestrator.cancel.cancel()
        return orchestrator

    monkeypatch.setattr("crossship.cli.Orchestrator", cancelled_orchestrator)
    catalog = _write_catalog(tmp_path, workspace)

    code = main(["run", "--config", str(catalog), "--output", str(tmp_path / "OUTPUT")])

    assert code == EXIT_CANCELLED
    assert toolchain.calls == []


def test_parallelism_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["run", "--config", "c.yaml", "--output", str(tmp_path), "--parallelism", "0"])

    assert excinfo.value.code == 2

from pathlib import Path

from crossship.errors import (
    BuildFailure,
    Cancelled,
    CollectionError,
    ConfigError,
    ErrorCode,
    PublishFailure,
)
from crossship.models import Artifact, BuildResult, PublishManifest, TargetSpec


def test_target_spec_defaults_binary_to_project() -> None:
    spec = TargetSpec(
        project="geph4-client",
        triple="x86_64-unknown-linux-musl",
        profile="cross",
        manifest="geph4-client/Cargo.toml",
    )
    assert spec.binary == "geph4-client"
    assert spec.key == "geph4-client@x86_64-unknown-linux-musl"


def test_build_result_ok_requires_artifact_path() -> None:
    spec = TargetSpec(project="p", triple="t", profile="cross", manifest="p/Cargo.toml")
    assert not BuildResult(spec=spec, status="success").ok
    assert BuildResult(spec=spec, status="success", artifact_path=Path("bin")).ok
    assert not BuildResult(spec=spec, status="failure", artifact_path=Path("bin")).ok


def test_publish_manifest_lookup() -> None:
    artifact = Artifact(
        canonical_name="geph4-client-linux-amd64",
        source_path=Path("OUTPUT/geph4-client-linux-amd64"),
        size=1,
        sha1="a",
        sha256="b",
    )
    manifest = PublishManifest(artifacts=(artifact,))
    assert "geph4-client-linux-amd64" in manifest
    assert "geph4-client-linux-i386" not in manifest
    assert artifact.to_dict()["target"] is None


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        ConfigError("bad catalog"),
        BuildFailure("linker failed"),
        CollectionError("binary vanished"),
        PublishFailure("quota exceeded"),
        Cancelled(),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.CONFIG.value,
        ErrorCode.BUILD.value,
        ErrorCode.COLLECTION.value,
        ErrorCode.PUBLISH.value,
        ErrorCode.CANCELLED.value,
    ]


def test_error_rendering_includes_hint_and_non_empty_context() -> None:
    error = BuildFailure(
        "Toolchain exited with a non-zero status.",
        hint="Inspect the build log.",
        context={"target": "geph4-client@aarch64-linux-android", "output": ""},
    )

    rendered = str(error)

    assert "Hint: Inspect the build log." in rendered
    assert "target: geph4-client@aarch64-linux-android" in rendered
    assert "output:" not in rendered
    assert error.to_dict() == {
        "code": "E_BUILD",
        "message": "Toolchain exited with a non-zero status.",
        "context": {"target": "geph4-client@aarch64-linux-android", "output": ""},
        "hint": "Inspect the build log.",
    }

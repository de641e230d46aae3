from pathlib import Path

from crossship.catalog import load_catalog, resolve_targets

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def test_example_catalogs_resolve() -> None:
    catalogs = sorted(EXAMPLES.glob("*.yaml"))
    assert catalogs

    for path in catalogs:
        specs = resolve_targets(load_catalog(path))
        assert specs, path


def test_geph4_example_covers_the_release_matrix() -> None:
    config = load_catalog(EXAMPLES / "geph4.yaml")

    specs = resolve_targets(config)

    assert len(specs) == 7
    assert config.remote is not None
    assert config.remote.address == "b2://geph-dl/geph4-binaries/"
    assert {spec.profile for spec in specs} == {"cross", "cargo"}

"""Public package entrypoint for the crossship release orchestrator."""

from .builders import BuildExecutor, run_process
from .cancel import CancelToken
from .catalog import (
    CatalogConfig,
    PlatformName,
    ToolchainProfile,
    canonical_name,
    load_catalog,
    resolve_targets,
)
from .collect import ArtifactCollector
from .errors import (
    BuildFailure,
    Cancelled,
    CollectionError,
    ConfigError,
    CrossshipError,
    ErrorCode,
    PublishFailure,
)
from .models import Artifact, BuildResult, PublishManifest, PublishOutcome, TargetSpec
from .observability import StructuredLogger
from .orchestrator import Orchestrator
from .publish import B2Store, Credential, LocalDirectoryStore, Publisher, open_store
from .report import RunReport

__all__ = [
    "Artifact",
    "ArtifactCollector",
    "B2Store",
    "BuildExecutor",
    "BuildFailure",
    "BuildResult",
    "CancelToken",
    "Cancelled",
    "CatalogConfig",
    "CollectionError",
    "ConfigError",
    "Credential",
    "CrossshipError",
    "ErrorCode",
    "LocalDirectoryStore",
    "Orchestrator",
    "PlatformName",
    "PublishFailure",
    "PublishManifest",
    "PublishOutcome",
    "Publisher",
    "RunReport",
    "StructuredLogger",
    "TargetSpec",
    "ToolchainProfile",
    "canonical_name",
    "load_catalog",
    "open_store",
    "resolve_targets",
]

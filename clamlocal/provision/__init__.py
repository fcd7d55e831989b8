"""Local, prefix-isolated provisioning of the ClamAV engine.

Builds ClamAV from source into a project-private prefix, generates the
environment loader and database updater scripts, and verifies that the
installation is complete and isolated from system-wide locations.
"""

from .builder import BuildCoordinator, BuildOptions, Installer
from .errors import (
    BuildArtifactsMissingError,
    ConfigTemplateError,
    DatabaseEmptyError,
    MissingDependencyError,
    PipelineLockedError,
    ProvisionError,
    SourceTreeError,
    StageFailedError,
    VerificationFailedError,
)
from .freshclam import DatabaseUpdater, FreshclamConfig
from .models import (
    CheckResult,
    CheckSeverity,
    CommandResult,
    ModeFlags,
    PipelineMode,
    PipelineResult,
    ProvisionPaths,
    Stage,
    StageResult,
    StageStatus,
    VerificationReport,
)
from .pipeline import ProvisionPipeline, plan_stages
from .prefix import PrefixBuilder
from .runner import CommandRunner
from .scripts import ScriptEmitter
from .toolchain import DependencyProber, SourceValidator
from .verifier import Verifier

__all__ = [
    "BuildCoordinator",
    "BuildOptions",
    "Installer",
    "ProvisionError",
    "MissingDependencyError",
    "SourceTreeError",
    "StageFailedError",
    "BuildArtifactsMissingError",
    "ConfigTemplateError",
    "PipelineLockedError",
    "DatabaseEmptyError",
    "VerificationFailedError",
    "DatabaseUpdater",
    "FreshclamConfig",
    "CheckResult",
    "CheckSeverity",
    "CommandResult",
    "ModeFlags",
    "PipelineMode",
    "PipelineResult",
    "ProvisionPaths",
    "Stage",
    "StageResult",
    "StageStatus",
    "VerificationReport",
    "ProvisionPipeline",
    "plan_stages",
    "PrefixBuilder",
    "CommandRunner",
    "ScriptEmitter",
    "DependencyProber",
    "SourceValidator",
    "Verifier",
]

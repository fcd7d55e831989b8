"""Pydantic v2 models for the provisioning pipeline."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

ENGINE_NAME = "clamav"
SOURCE_DESCRIPTOR = "CMakeLists.txt"
ENV_SCRIPT_NAME = "clamav_env.sh"
DB_UPDATE_SCRIPT_NAME = "update_clamav_db.sh"
LOCK_FILE_NAME = ".clamlocal.lock"


class Stage(str, Enum):
    CLEAN = "clean"
    PROBE = "probe_dependencies"
    VALIDATE_SOURCE = "validate_source"
    PREPARE_PREFIX = "prepare_prefix"
    CONFIGURE = "configure"
    COMPILE = "compile"
    INSTALL = "install"
    EMIT_SCRIPTS = "emit_scripts"
    VERIFY = "verify"


class PipelineMode(str, Enum):
    DEFAULT = "default"
    CLEAN = "clean"
    BUILD_ONLY = "build_only"
    INSTALL_ONLY = "install_only"
    VERIFY = "verify"
    FULL = "full"


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class CheckSeverity(str, Enum):
    OK = "ok"
    WARNING = "warning"
    FAILURE = "failure"


class ProvisionPaths(BaseModel):
    """Resolved filesystem layout for one project.

    Passed by value to every stage; no stage reads paths from the
    process environment.
    """

    model_config = ConfigDict(frozen=True)

    project_root: Path
    source_dir: Path
    prefix: Path
    build_dir: Path
    database_dir: Path
    env_script: Path
    db_update_script: Path

    @classmethod
    def for_root(
        cls,
        project_root: Path,
        source_dir: Optional[Path] = None,
        prefix: Optional[Path] = None,
        build_dir: Optional[Path] = None,
        database_dir: Optional[Path] = None,
    ) -> "ProvisionPaths":
        root = Path(project_root).expanduser().resolve()

        def _resolve(value: Optional[Path], default: str) -> Path:
            if value is None:
                return root / default
            value = Path(value).expanduser()
            return value if value.is_absolute() else (root / value).resolve()

        return cls(
            project_root=root,
            source_dir=_resolve(source_dir, ENGINE_NAME),
            prefix=_resolve(prefix, "local"),
            build_dir=_resolve(build_dir, "build"),
            database_dir=_resolve(database_dir, "database"),
            env_script=root / ENV_SCRIPT_NAME,
            db_update_script=root / DB_UPDATE_SCRIPT_NAME,
        )

    @property
    def bin_dir(self) -> Path:
        return self.prefix / "bin"

    @property
    def sbin_dir(self) -> Path:
        return self.prefix / "sbin"

    @property
    def lib_dir(self) -> Path:
        return self.prefix / "lib"

    @property
    def pkgconfig_dir(self) -> Path:
        return self.lib_dir / "pkgconfig"

    @property
    def include_dir(self) -> Path:
        return self.prefix / "include"

    @property
    def share_dir(self) -> Path:
        return self.prefix / "share"

    @property
    def etc_dir(self) -> Path:
        return self.prefix / "etc"

    @property
    def log_dir(self) -> Path:
        return self.prefix / "var" / "log" / ENGINE_NAME

    @property
    def lock_file(self) -> Path:
        return self.project_root / LOCK_FILE_NAME

    def required_dirs(self) -> List[Path]:
        """Every directory the Prefix Builder must guarantee, in creation order."""
        return [
            self.prefix,
            self.bin_dir,
            self.sbin_dir,
            self.lib_dir,
            self.pkgconfig_dir,
            self.include_dir,
            self.share_dir,
            self.etc_dir,
            self.database_dir,
            self.log_dir,
        ]


class CommandResult(BaseModel):
    """Outcome of one external process invocation."""

    command: List[str]
    cwd: Optional[Path] = None
    return_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    duration_seconds: Optional[float] = None
    timed_out: bool = False
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.return_code == 0


class ModeFlags(BaseModel):
    """Raw mode flags as given on the command line."""

    clean: bool = False
    build_only: bool = False
    install_only: bool = False
    verify: bool = False
    full: bool = False

    def resolve(self) -> "ModeFlags":
        """Apply flag precedence: --full overrides every other flag."""
        if self.full:
            return ModeFlags(
                clean=True, build_only=False, install_only=False, verify=True, full=True
            )
        return self.model_copy()

    @property
    def mode(self) -> PipelineMode:
        """The single mode that selects the stage list, after precedence."""
        if self.full:
            return PipelineMode.FULL
        if self.install_only:
            return PipelineMode.INSTALL_ONLY
        if self.build_only:
            return PipelineMode.BUILD_ONLY
        if self.verify:
            return PipelineMode.VERIFY
        if self.clean:
            return PipelineMode.CLEAN
        return PipelineMode.DEFAULT


class StageResult(BaseModel):
    """Outcome of a single pipeline stage."""

    stage: Stage
    status: StageStatus = StageStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    return_code: Optional[int] = None
    message: str = ""
    error_message: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class CheckResult(BaseModel):
    """One verification check."""

    name: str
    passed: bool
    severity: CheckSeverity = CheckSeverity.OK
    message: str = ""
    details: List[str] = Field(default_factory=list)


class VerificationReport(BaseModel):
    """Aggregate of independent verification checks.

    Built fresh on every run and never persisted.
    """

    checks: List[CheckResult] = Field(default_factory=list)
    failures: int = 0
    warnings: int = 0
    contamination: List[str] = Field(default_factory=list)

    def add(self, check: CheckResult) -> CheckResult:
        self.checks.append(check)
        if check.severity == CheckSeverity.FAILURE:
            self.failures += 1
        elif check.severity == CheckSeverity.WARNING:
            self.warnings += 1
        return check

    @property
    def passed(self) -> bool:
        return self.failures == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1


class PipelineResult(BaseModel):
    """Aggregated result of one provisioning run."""

    flags: ModeFlags
    plan: List[Stage] = Field(default_factory=list)
    status: StageStatus = StageStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    stage_results: List[StageResult] = Field(default_factory=list)
    report: Optional[VerificationReport] = None
    exit_code: int = 0
    extra: Dict[str, Any] = Field(default_factory=dict)

    @property
    def completed_stages(self) -> List[Stage]:
        return [
            r.stage for r in self.stage_results if r.status == StageStatus.COMPLETED
        ]

    @property
    def failed_stage(self) -> Optional[Stage]:
        for r in self.stage_results:
            if r.status == StageStatus.FAILED:
                return r.stage
        return None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

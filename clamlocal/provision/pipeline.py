"""Provisioning pipeline controller.

Maps the requested mode flags onto an ordered list of stages and runs
them strictly one after another. The first failing stage stops the run;
nothing is rolled back, re-running is the recovery path.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from .builder import BuildCoordinator, BuildOptions, Installer
from .errors import ProvisionError, VerificationFailedError
from .lock import ProvisionLock
from .models import (
    ModeFlags,
    PipelineMode,
    PipelineResult,
    ProvisionPaths,
    Stage,
    StageResult,
    StageStatus,
)
from .prefix import PrefixBuilder
from .runner import CommandRunner
from .scripts import ScriptEmitter
from .toolchain import DependencyProber, SourceValidator
from .verifier import Verifier

logger = logging.getLogger(__name__)

BUILD_STAGES: List[Stage] = [
    Stage.PROBE,
    Stage.VALIDATE_SOURCE,
    Stage.PREPARE_PREFIX,
    Stage.CONFIGURE,
    Stage.COMPILE,
]
INSTALL_STAGES: List[Stage] = [Stage.INSTALL, Stage.EMIT_SCRIPTS]

# Stage lists per mode; the Clean stage is prepended separately when requested
MODE_STAGES: Dict[PipelineMode, List[Stage]] = {
    PipelineMode.DEFAULT: BUILD_STAGES + INSTALL_STAGES,
    PipelineMode.CLEAN: BUILD_STAGES + INSTALL_STAGES,
    PipelineMode.BUILD_ONLY: BUILD_STAGES,
    PipelineMode.INSTALL_ONLY: INSTALL_STAGES + [Stage.VERIFY],
    PipelineMode.VERIFY: BUILD_STAGES + INSTALL_STAGES + [Stage.VERIFY],
    PipelineMode.FULL: BUILD_STAGES + INSTALL_STAGES + [Stage.VERIFY],
}


def plan_stages(flags: ModeFlags) -> List[Stage]:
    """Resolve mode flags into the ordered stage list."""
    resolved = flags.resolve()
    stages = [Stage.CLEAN] if resolved.clean else []
    return stages + MODE_STAGES[resolved.mode]


class ProvisionPipeline:
    """Runs the provisioning stages for one project prefix."""

    def __init__(
        self,
        paths: ProvisionPaths,
        runner: Optional[CommandRunner] = None,
        options: Optional[BuildOptions] = None,
        prober: Optional[DependencyProber] = None,
        verifier: Optional[Verifier] = None,
        use_lock: bool = True,
    ):
        self.paths = paths
        self.runner = runner or CommandRunner()
        self.options = options or BuildOptions()
        self.prober = prober or DependencyProber()
        self.validator = SourceValidator(paths.source_dir)
        self.prefix_builder = PrefixBuilder(paths)
        self.coordinator = BuildCoordinator(paths, self.runner, self.options)
        self.installer = Installer(paths, self.runner, timeout=self.options.timeout)
        self.emitter = ScriptEmitter(paths)
        self.verifier = verifier or Verifier(paths, self.runner)
        self.use_lock = use_lock
        self._current: Optional[PipelineResult] = None
        self._handlers: Dict[Stage, Callable[[], Awaitable[str]]] = {
            Stage.CLEAN: self._clean,
            Stage.PROBE: self._probe,
            Stage.VALIDATE_SOURCE: self._validate_source,
            Stage.PREPARE_PREFIX: self._prepare_prefix,
            Stage.CONFIGURE: self._configure,
            Stage.COMPILE: self._compile,
            Stage.INSTALL: self._install,
            Stage.EMIT_SCRIPTS: self._emit_scripts,
            Stage.VERIFY: self._verify,
        }

    async def run(self, flags: Optional[ModeFlags] = None) -> PipelineResult:
        flags = (flags or ModeFlags()).resolve()
        result = PipelineResult(
            flags=flags,
            plan=plan_stages(flags),
            status=StageStatus.RUNNING,
            started_at=datetime.now(),
        )
        self._current = result

        logger.info(f"Project root: {self.paths.project_root}")
        logger.info(f"Source dir:   {self.paths.source_dir}")
        logger.info(f"Install dir:  {self.paths.prefix}")
        logger.info(f"Build dir:    {self.paths.build_dir}")
        logger.info(f"Mode: {flags.mode.value}")
        logger.info(f"Stages: {', '.join(s.value for s in result.plan)}")

        lock = ProvisionLock(self.paths.lock_file) if self.use_lock else None
        try:
            if lock:
                lock.acquire()
            await self._run_stages(result)
        except ProvisionError as e:
            # Lock contention is the only error raised outside a stage
            logger.error(str(e))
            result.status = StageStatus.FAILED
            result.exit_code = 1
            result.extra["error"] = str(e)
        finally:
            if lock:
                lock.release()
            result.completed_at = datetime.now()
            self._current = None

        return result

    async def _run_stages(self, result: PipelineResult) -> None:
        total = len(result.plan)
        for i, stage in enumerate(result.plan, 1):
            logger.info(f"Step {i}/{total}: {stage.value}")
            stage_result = await self.run_stage(stage)
            result.stage_results.append(stage_result)

            if stage_result.status == StageStatus.FAILED:
                logger.error(f"Pipeline stopped: {stage.value} failed")
                result.status = StageStatus.FAILED
                result.exit_code = 1
                return

        result.status = StageStatus.COMPLETED
        result.exit_code = 0
        if result.flags.mode == PipelineMode.BUILD_ONLY:
            logger.info("Build finished, install skipped; use --install-only to install")
        logger.info(f"Pipeline completed: {len(result.stage_results)} stages")

    async def run_stage(self, stage: Stage) -> StageResult:
        stage_result = StageResult(
            stage=stage, status=StageStatus.RUNNING, started_at=datetime.now()
        )
        try:
            stage_result.message = await self._handlers[stage]()
            stage_result.status = StageStatus.COMPLETED
        except (ProvisionError, OSError) as e:
            stage_result.status = StageStatus.FAILED
            stage_result.error_message = str(e)
            stage_result.return_code = getattr(e, "return_code", None)
            logger.error(f"{stage.value}: {e}")
        stage_result.completed_at = datetime.now()
        return stage_result

    async def _clean(self) -> str:
        removed = self.prefix_builder.clean_build_dir()
        return "build directory removed" if removed else "nothing to clean"

    async def _probe(self) -> str:
        found = self.prober.check()
        return f"{len(found)} required tools found"

    async def _validate_source(self) -> str:
        descriptor = self.validator.check()
        return f"source tree ok ({descriptor.name})"

    async def _prepare_prefix(self) -> str:
        created = self.prefix_builder.create()
        return f"{len(created)} directories created"

    async def _configure(self) -> str:
        await self.coordinator.configure()
        return "configured"

    async def _compile(self) -> str:
        await self.coordinator.compile()
        return f"compiled with {self.coordinator.jobs} jobs"

    async def _install(self) -> str:
        await self.installer.install()
        return f"installed into {self.paths.prefix}"

    async def _emit_scripts(self) -> str:
        env_script, db_script = self.emitter.emit()
        return f"wrote {env_script.name}, {db_script.name}"

    async def _verify(self) -> str:
        report = await self.verifier.verify()
        if self._current is not None:
            self._current.report = report
        if not report.passed:
            raise VerificationFailedError(report.failures)
        return f"verified with {report.warnings} warnings"

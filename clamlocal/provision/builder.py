"""Configure, compile and install the engine against the local prefix.

The external build system (CMake generating Makefiles) does all of the
work; this module only assembles command lines, runs them inside the
build directory and turns non-zero exits into StageFailedError.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import psutil
from pydantic import BaseModel, Field

from .errors import BuildArtifactsMissingError, StageFailedError
from .models import CommandResult, ProvisionPaths
from .runner import CommandRunner

logger = logging.getLogger(__name__)

DEFAULT_JOBS = 4


class BuildOptions(BaseModel):
    """CMake switches for an isolated, static, CLI-only engine build."""

    build_type: str = "Release"
    enable_app: bool = True
    enable_clamonacc: bool = False
    enable_milter: bool = False
    enable_tests: bool = False
    enable_docs: bool = False
    shared_libs: bool = False
    clamav_user: str = "root"
    clamav_group: str = "wheel"
    jobs: Optional[int] = Field(default=None, ge=1)
    extra_cmake_args: List[str] = Field(default_factory=list)
    timeout: Optional[float] = None

    def cmake_definitions(self) -> Dict[str, str]:
        def on_off(value: bool) -> str:
            return "ON" if value else "OFF"

        return {
            "CMAKE_BUILD_TYPE": self.build_type,
            "ENABLE_APP": on_off(self.enable_app),
            "ENABLE_CLAMONACC": on_off(self.enable_clamonacc),
            "ENABLE_MILTER": on_off(self.enable_milter),
            "ENABLE_TESTS": on_off(self.enable_tests),
            "ENABLE_DOCS": on_off(self.enable_docs),
            "BUILD_SHARED_LIBS": on_off(self.shared_libs),
            "CLAMAV_USER": self.clamav_user,
            "CLAMAV_GROUP": self.clamav_group,
        }


def detect_jobs(fallback: int = DEFAULT_JOBS) -> int:
    """Parallel build worker count from the CPU core count."""
    try:
        count = psutil.cpu_count(logical=True)
    except (NotImplementedError, OSError) as e:
        logger.debug(f"CPU count unavailable: {e}")
        count = None
    return count if count else fallback


def configure_command(paths: ProvisionPaths, options: BuildOptions) -> List[str]:
    cmd = ["cmake", f"-DCMAKE_INSTALL_PREFIX={paths.prefix}"]
    for key, value in options.cmake_definitions().items():
        cmd.append(f"-D{key}={value}")
    cmd.extend(options.extra_cmake_args)
    cmd.append(str(paths.source_dir))
    return cmd


def compile_command(jobs: int) -> List[str]:
    return ["make", f"-j{jobs}"]


def install_command() -> List[str]:
    return ["make", "install"]


class BuildCoordinator:
    """Configure and compile steps, both run inside the build directory."""

    def __init__(
        self,
        paths: ProvisionPaths,
        runner: CommandRunner,
        options: Optional[BuildOptions] = None,
    ):
        self.paths = paths
        self.runner = runner
        self.options = options or BuildOptions()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def jobs(self) -> int:
        return self.options.jobs or detect_jobs()

    async def configure(self) -> CommandResult:
        self.paths.build_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info("Configuring ClamAV with CMake...")
        result = await self.runner.run(
            configure_command(self.paths, self.options),
            cwd=self.paths.build_dir,
            capture=False,
            timeout=self.options.timeout,
        )
        if not result.ok:
            raise StageFailedError("CMake configure", result.return_code, result.stderr.strip())
        self.logger.info("CMake configuration succeeded")
        return result

    async def compile(self) -> CommandResult:
        jobs = self.jobs
        self.logger.info(f"Compiling ClamAV with {jobs} parallel jobs...")
        result = await self.runner.run(
            compile_command(jobs),
            cwd=self.paths.build_dir,
            capture=False,
            timeout=self.options.timeout,
        )
        if not result.ok:
            raise StageFailedError("Compile", result.return_code, result.stderr.strip())
        self.logger.info("ClamAV compiled successfully")
        return result


class Installer:
    """Runs the build system's own install target into the prefix.

    Re-running over an existing installation simply overwrites it.
    """

    def __init__(
        self,
        paths: ProvisionPaths,
        runner: CommandRunner,
        timeout: Optional[float] = None,
    ):
        self.paths = paths
        self.runner = runner
        self.timeout = timeout
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _check_build_artifacts(self) -> Path:
        build_dir = self.paths.build_dir
        if not build_dir.is_dir():
            raise BuildArtifactsMissingError(
                f"Build directory {build_dir} does not exist; build before installing"
            )
        makefile = build_dir / "Makefile"
        if not makefile.is_file():
            raise BuildArtifactsMissingError(
                f"No Makefile in {build_dir}; run configure and compile first"
            )
        return makefile

    async def install(self) -> CommandResult:
        # A dry run never configured anything, so there is nothing to check
        if not self.runner.dry_run:
            self._check_build_artifacts()
        self.logger.info(f"Installing ClamAV into {self.paths.prefix}...")
        result = await self.runner.run(
            install_command(),
            cwd=self.paths.build_dir,
            capture=False,
            timeout=self.timeout,
        )
        if not result.ok:
            raise StageFailedError("Install", result.return_code, result.stderr.strip())
        self.logger.info("ClamAV installed successfully")
        return result

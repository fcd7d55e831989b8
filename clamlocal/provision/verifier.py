"""Post-install verification report.

Every check runs regardless of earlier outcomes so a single invocation
shows all problems at once. Contamination found in system-wide locations
is reported as a warning and never fails the verdict.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

import click

from .models import (
    CheckResult,
    CheckSeverity,
    ProvisionPaths,
    VerificationReport,
)
from .runner import CommandRunner

logger = logging.getLogger(__name__)

EXPECTED_BINARIES: List[str] = ["clamscan", "clamd", "freshclam", "sigtool"]
SCANNER_BINARY = "clamscan"
LIBRARY_PREFIX = "libclamav"
SYSTEM_BIN_DIRS: List[Path] = [
    Path("/usr/local/bin"),
    Path("/usr/bin"),
    Path("/usr/sbin"),
    Path("/sbin"),
]
SYSTEM_LIB_DIRS: List[Path] = [
    Path("/usr/lib"),
    Path("/usr/lib64"),
    Path("/lib"),
    Path("/lib64"),
]


class Verifier:
    """Runs the eight installation checks and builds a VerificationReport."""

    def __init__(
        self,
        paths: ProvisionPaths,
        runner: CommandRunner,
        expected_binaries: Optional[Sequence[str]] = None,
        system_bin_dirs: Optional[Sequence[Path]] = None,
        system_lib_dirs: Optional[Sequence[Path]] = None,
        version_timeout: float = 30,
    ):
        self.paths = paths
        self.runner = runner
        self.expected_binaries = list(
            expected_binaries if expected_binaries is not None else EXPECTED_BINARIES
        )
        self.system_bin_dirs = [
            Path(p) for p in (system_bin_dirs if system_bin_dirs is not None else SYSTEM_BIN_DIRS)
        ]
        self.system_lib_dirs = [
            Path(p) for p in (system_lib_dirs if system_lib_dirs is not None else SYSTEM_LIB_DIRS)
        ]
        self.version_timeout = version_timeout
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def find_binary(self, name: str) -> Optional[Path]:
        for directory in (self.paths.bin_dir, self.paths.sbin_dir):
            candidate = directory / name
            if candidate.is_file():
                return candidate
        return None

    async def verify(self) -> VerificationReport:
        report = VerificationReport()
        report.add(self.check_prefix())
        for check in self.check_binaries():
            report.add(check)
        report.add(self.check_lib_dir())
        report.add(self.check_config_dir())
        report.add(self.check_scripts())
        for check in self.check_isolation():
            report.add(check)
            if check.severity == CheckSeverity.WARNING:
                report.contamination.extend(check.details)
        report.add(await self.check_scanner_runs())
        report.add(self.check_database_dir())

        if report.passed:
            self.logger.info(
                f"Verification passed ({report.warnings} warnings)"
            )
        else:
            self.logger.error(f"Verification found {report.failures} problems")
        return report

    # 1
    def check_prefix(self) -> CheckResult:
        prefix = self.paths.prefix
        if prefix.is_dir():
            entries = sorted(p.name for p in prefix.iterdir())
            return CheckResult(
                name="prefix", passed=True, message=f"{prefix} exists", details=entries
            )
        return CheckResult(
            name="prefix",
            passed=False,
            severity=CheckSeverity.FAILURE,
            message=f"{prefix} does not exist",
        )

    # 2
    def check_binaries(self) -> List[CheckResult]:
        results = []
        for name in self.expected_binaries:
            found = self.find_binary(name)
            if found:
                results.append(
                    CheckResult(name=f"binary:{name}", passed=True, message=f"{name} installed at {found}")
                )
            else:
                results.append(
                    CheckResult(
                        name=f"binary:{name}",
                        passed=False,
                        severity=CheckSeverity.FAILURE,
                        message=f"{name} not found in bin or sbin",
                    )
                )
        return results

    # 3
    def check_lib_dir(self) -> CheckResult:
        lib_dir = self.paths.lib_dir
        if not lib_dir.is_dir():
            return CheckResult(
                name="lib_dir",
                passed=False,
                severity=CheckSeverity.FAILURE,
                message=f"{lib_dir} does not exist",
            )
        shared = sorted(p.name for p in lib_dir.glob("*.so*"))
        shared += sorted(p.name for p in lib_dir.glob("*.dylib"))
        message = "library directory exists"
        if not shared:
            message += " (static libraries only)"
        return CheckResult(name="lib_dir", passed=True, message=message, details=shared[:10])

    # 4
    def check_config_dir(self) -> CheckResult:
        etc_dir = self.paths.etc_dir
        if not etc_dir.is_dir():
            return CheckResult(
                name="config_dir",
                passed=False,
                severity=CheckSeverity.FAILURE,
                message=f"{etc_dir} does not exist",
            )
        confs = sorted(p.name for p in etc_dir.glob("*.conf*"))
        return CheckResult(
            name="config_dir", passed=True, message="config directory exists", details=confs[:5]
        )

    # 5
    def check_scripts(self) -> CheckResult:
        missing = [
            str(p)
            for p in (self.paths.env_script, self.paths.db_update_script)
            if not p.is_file()
        ]
        if missing:
            return CheckResult(
                name="derived_scripts",
                passed=False,
                severity=CheckSeverity.FAILURE,
                message="derived scripts missing",
                details=missing,
            )
        return CheckResult(name="derived_scripts", passed=True, message="derived scripts present")

    # 6
    def check_isolation(self) -> List[CheckResult]:
        bin_hits = [
            str(d / SCANNER_BINARY)
            for d in self.system_bin_dirs
            if (d / SCANNER_BINARY).is_file()
        ]
        lib_hits: List[str] = []
        for d in self.system_lib_dirs:
            if d.is_dir():
                lib_hits.extend(str(p) for p in sorted(d.glob(f"{LIBRARY_PREFIX}*")))

        results = []
        for label, hits in (("isolation:bin", bin_hits), ("isolation:lib", lib_hits)):
            if hits:
                for hit in hits:
                    self.logger.warning(f"System-wide ClamAV artifact found: {hit}")
                results.append(
                    CheckResult(
                        name=label,
                        passed=False,
                        severity=CheckSeverity.WARNING,
                        message="system-wide ClamAV artifacts found",
                        details=hits,
                    )
                )
            else:
                results.append(
                    CheckResult(name=label, passed=True, message="no system-wide ClamAV artifacts")
                )

        env_entries = self._env_entries_mentioning_clam()
        results.append(
            CheckResult(
                name="isolation:env",
                passed=True,
                message="search path entries referencing clam/local",
                details=env_entries,
            )
        )
        return results

    @staticmethod
    def _env_entries_mentioning_clam() -> List[str]:
        entries = []
        for var in ("PATH", "LD_LIBRARY_PATH"):
            for part in os.environ.get(var, "").split(os.pathsep):
                if part and ("clam" in part or "local" in part):
                    entries.append(f"{var}: {part}")
        return entries

    # 7
    async def check_scanner_runs(self) -> CheckResult:
        scanner = self.find_binary(SCANNER_BINARY)
        if scanner is None:
            # Already counted by the binary check
            return CheckResult(
                name="scanner_version",
                passed=True,
                message=f"skipped, {SCANNER_BINARY} not installed",
            )
        result = await self.runner.run([str(scanner), "--version"], timeout=self.version_timeout)
        if result.ok:
            lines = result.stdout.strip().splitlines()[:3]
            return CheckResult(
                name="scanner_version", passed=True, message=f"{SCANNER_BINARY} runs", details=lines
            )
        return CheckResult(
            name="scanner_version",
            passed=False,
            severity=CheckSeverity.FAILURE,
            message=f"{SCANNER_BINARY} --version exited with code {result.return_code}",
            details=result.stderr.strip().splitlines()[:3],
        )

    # 8
    def check_database_dir(self) -> CheckResult:
        database_dir = self.paths.database_dir
        if database_dir.is_dir():
            return CheckResult(name="database_dir", passed=True, message=f"{database_dir} exists")
        return CheckResult(
            name="database_dir",
            passed=False,
            severity=CheckSeverity.WARNING,
            message=(
                f"{database_dir} does not exist (signatures not downloaded yet); "
                f"run {self.paths.db_update_script}"
            ),
        )


def render_report(report: VerificationReport, paths: ProvisionPaths) -> None:
    """Print a verification report to the terminal."""
    click.echo("")
    click.echo("=" * 40)
    click.echo("  Installation verification report")
    click.echo("=" * 40)
    for check in report.checks:
        if check.severity == CheckSeverity.FAILURE:
            click.secho(f"  ✗ {check.message}", fg="red")
        elif check.severity == CheckSeverity.WARNING:
            click.secho(f"  ⚠ {check.message}", fg="yellow")
        else:
            click.echo(f"  ✓ {check.message}")
        for detail in check.details:
            click.echo(f"      {detail}")

    click.echo("")
    if report.passed:
        click.secho("✓ Installation verified", fg="green")
        click.echo("")
        click.echo("Usage:")
        click.echo(f"  1. Load environment:  source {paths.env_script}")
        click.echo(f"  2. Update signatures: {paths.db_update_script}")
        click.echo(f"  3. Scan:              {paths.bin_dir / SCANNER_BINARY} <path>")
        click.echo("")
        click.echo(f"Database: {paths.database_dir}")
        click.echo(f"Logs:     {paths.log_dir}")
    else:
        click.secho(f"✗ Found {report.failures} problem(s)", fg="red")

"""Scan wrapper around the locally installed clamscan.

Only translates options into clamscan flags and checks that signatures
are present; all scanning is done by clamscan itself. clamscan exits 0
when clean, 1 when infections are found and 2 on error.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .provision.errors import DatabaseEmptyError
from .provision.models import CommandResult, ProvisionPaths
from .provision.runner import CommandRunner

logger = logging.getLogger(__name__)

EXIT_CLEAN = 0
EXIT_INFECTED = 1
EXIT_ERROR = 2


class ScanOptions(BaseModel):
    recursive: bool = False
    verbose: bool = False
    move_dir: Optional[str] = None
    copy_dir: Optional[str] = None
    exclude: Optional[str] = None
    exclude_dir: Optional[str] = None


def check_database(database_dir: Path) -> None:
    """Raise DatabaseEmptyError unless the database directory has content."""
    if not database_dir.is_dir() or not any(database_dir.iterdir()):
        raise DatabaseEmptyError(
            f"Signature database is empty or missing: {database_dir}"
        )


def build_scan_command(
    paths: ProvisionPaths, target: str, options: Optional[ScanOptions] = None
) -> List[str]:
    options = options or ScanOptions()
    cmd = [str(paths.bin_dir / "clamscan"), f"--database={paths.database_dir}"]
    if options.recursive:
        cmd.append("--recursive")
    if options.verbose:
        cmd.append("--verbose")
    if options.move_dir:
        cmd.append(f"--move={options.move_dir}")
    if options.copy_dir:
        cmd.append(f"--copy={options.copy_dir}")
    if options.exclude:
        cmd.append(f"--exclude={options.exclude}")
    if options.exclude_dir:
        cmd.append(f"--exclude-dir={options.exclude_dir}")
    cmd.append(target)
    return cmd


def parse_clamscan_output(text: str) -> Dict[str, Any]:
    """Parse clamscan output text.

    Returns dict with:
      - 'detections': list of {'file': path, 'malware': name}
      - 'summary': dict of the "SCAN SUMMARY" key/value lines
    """
    detections: List[Dict[str, str]] = []
    summary: Dict[str, str] = {}
    in_summary = False

    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue

        # "/path/to/file: Signature.Name FOUND"
        if line.endswith(" FOUND"):
            file_path, sep, rest = line.rpartition(": ")
            if sep:
                detections.append(
                    {"file": file_path, "malware": rest[: -len(" FOUND")].strip()}
                )
            continue

        if "SCAN SUMMARY" in line:
            in_summary = True
            continue

        if in_summary and ":" in line:
            key, _, value = line.partition(":")
            summary[key.strip()] = value.strip()

    return {"detections": detections, "summary": summary}


class ScanWrapper:
    """Runs clamscan from the local prefix against one path."""

    def __init__(self, paths: ProvisionPaths, runner: Optional[CommandRunner] = None):
        self.paths = paths
        self.runner = runner or CommandRunner()

    async def scan(self, target: str, options: Optional[ScanOptions] = None) -> CommandResult:
        check_database(self.paths.database_dir)
        if not Path(target).exists():
            raise FileNotFoundError(f"Scan path does not exist: {target}")

        cmd = build_scan_command(self.paths, target, options)
        result = await self.runner.run(cmd)
        if result.return_code == EXIT_INFECTED:
            found = parse_clamscan_output(result.stdout)["detections"]
            logger.warning(f"clamscan reported {len(found)} infected file(s)")
        elif result.return_code not in (EXIT_CLEAN, EXIT_INFECTED):
            logger.error(f"clamscan failed with exit code {result.return_code}")
        return result

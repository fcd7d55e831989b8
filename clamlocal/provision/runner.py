"""Blocking execution of external build and engine processes."""

import asyncio
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .models import CommandResult

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs one external command at a time and waits for it to finish.

    With capture=False the child inherits the terminal so build and
    download progress reaches the operator unparsed.
    """

    def __init__(self, dry_run: bool = False, env: Optional[Dict[str, str]] = None):
        self.dry_run = dry_run
        self.env = env
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def run(
        self,
        command: Sequence[str],
        cwd: Optional[Path] = None,
        capture: bool = True,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        cmd: List[str] = [str(part) for part in command]
        result = CommandResult(command=cmd, cwd=cwd)
        self.logger.info(f"Running: {' '.join(cmd)}" + (f" (in {cwd})" if cwd else ""))

        if self.dry_run:
            result.return_code = 0
            result.dry_run = True
            result.stdout = f"[DRY RUN] Would execute: {' '.join(cmd)}"
            self.logger.info(result.stdout)
            return result

        pipe = asyncio.subprocess.PIPE if capture else None
        started = datetime.now()
        env = {**os.environ, **self.env} if self.env else None

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd) if cwd else None,
                stdout=pipe,
                stderr=pipe,
                env=env,
            )
        except OSError as e:
            # Mirror the shell's "command not found" status
            result.return_code = 127
            result.stderr = str(e)
            result.duration_seconds = (datetime.now() - started).total_seconds()
            self.logger.error(f"Failed to start {cmd[0]}: {e}")
            return result

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            result.timed_out = True
            result.return_code = process.returncode
            result.stderr = f"{cmd[0]} timed out after {timeout}s"
            result.duration_seconds = (datetime.now() - started).total_seconds()
            self.logger.error(result.stderr)
            return result

        result.return_code = process.returncode
        if stdout_bytes:
            result.stdout = stdout_bytes.decode("utf-8", errors="replace")
        if stderr_bytes:
            result.stderr = stderr_bytes.decode("utf-8", errors="replace")
        result.duration_seconds = (datetime.now() - started).total_seconds()

        self.logger.debug(
            f"{cmd[0]} exited with code {result.return_code} "
            f"in {result.duration_seconds:.1f}s"
        )
        return result

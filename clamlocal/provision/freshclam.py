"""Signature-database update through the locally installed freshclam."""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .errors import ConfigTemplateError
from .models import CommandResult, ProvisionPaths
from .runner import CommandRunner

logger = logging.getLogger(__name__)

TEMPLATE_NAMES = ("freshclam.conf.sample", "freshclam.conf")
DNS_DATABASE_INFO = "current.cvd.clamav.net"
PRIVATE_MIRROR = "database.clamav.net"
DATABASE_PATTERNS = ("*.cvd", "*.cld", "*.cdiff")

# Lines are either a directive ("Key value"), a comment, or blank
_Line = Tuple[Optional[str], str]


class FreshclamConfig(BaseModel):
    """Ordered representation of a freshclam.conf file.

    Comments and blank lines are kept verbatim so a round trip only
    changes the directives that were explicitly set.
    """

    lines: List[_Line] = Field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "FreshclamConfig":
        lines: List[_Line] = []
        for raw in text.splitlines():
            stripped = raw.strip()
            if not stripped or stripped.startswith("#"):
                lines.append((None, raw))
                continue
            # Directives may be separated from their value by tabs
            parts = stripped.split(None, 1)
            lines.append((parts[0], parts[1].strip() if len(parts) > 1 else ""))
        return cls(lines=lines)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "FreshclamConfig":
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return cls.parse(f.read())

    def get(self, key: str) -> Optional[str]:
        for k, value in self.lines:
            if k == key:
                return value
        return None

    def get_all(self, key: str) -> List[str]:
        return [value for k, value in self.lines if k == key]

    def keys(self) -> List[str]:
        return [k for k, _ in self.lines if k is not None]

    def set(self, key: str, value: str) -> None:
        """Replace the first occurrence of key, drop any later duplicates."""
        updated: List[_Line] = []
        replaced = False
        for k, v in self.lines:
            if k == key:
                if not replaced:
                    updated.append((key, value))
                    replaced = True
                continue
            updated.append((k, v))
        if not replaced:
            updated.append((key, value))
        self.lines = updated

    def remove(self, key: str) -> None:
        self.lines = [(k, v) for k, v in self.lines if k != key]

    def serialize(self) -> str:
        out = []
        for key, value in self.lines:
            if key is None:
                out.append(value)
            elif value:
                out.append(f"{key} {value}")
            else:
                out.append(key)
        return "\n".join(out) + "\n"


def rewrite_for_prefix(config: FreshclamConfig, paths: ProvisionPaths) -> FreshclamConfig:
    """Point a template config at the project's database and log directories."""
    config.set("DatabaseDirectory", str(paths.database_dir))
    config.set("LogFile", str(paths.log_dir / "freshclam.log"))
    config.set("DNSDatabaseInfo", DNS_DATABASE_INFO)
    config.set("PrivateMirror", PRIVATE_MIRROR)
    # freshclam refuses to start while the sample marker is present
    config.remove("Example")
    return config


def list_database_files(database_dir: Path) -> List[Path]:
    if not database_dir.is_dir():
        return []
    files: List[Path] = []
    for pattern in DATABASE_PATTERNS:
        files.extend(sorted(database_dir.glob(pattern)))
    return files


class DatabaseUpdater:
    """Runs freshclam against a scoped, rewritten copy of its config template."""

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

    @property
    def freshclam_path(self) -> Path:
        return self.paths.bin_dir / "freshclam"

    def find_template(self) -> Path:
        for name in TEMPLATE_NAMES:
            candidate = self.paths.etc_dir / name
            if candidate.is_file():
                return candidate
        raise ConfigTemplateError(
            f"No freshclam configuration template found in {self.paths.etc_dir}"
        )

    def build_config(self) -> FreshclamConfig:
        template = self.find_template()
        self.logger.debug(f"Using freshclam template {template}")
        return rewrite_for_prefix(FreshclamConfig.load(template), self.paths)

    async def update(self, extra_args: Optional[List[str]] = None) -> CommandResult:
        config = self.build_config()
        self.paths.database_dir.mkdir(parents=True, exist_ok=True)
        self.paths.log_dir.mkdir(parents=True, exist_ok=True)

        fd, temp_name = tempfile.mkstemp(prefix="freshclam-", suffix=".conf")
        temp_conf = Path(temp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(config.serialize())

            self.logger.info(f"Updating signatures into {self.paths.database_dir}")
            cmd = [str(self.freshclam_path), f"--config-file={temp_conf}"]
            cmd.extend(extra_args or [])
            result = await self.runner.run(cmd, capture=False, timeout=self.timeout)
        finally:
            temp_conf.unlink(missing_ok=True)

        if result.ok:
            files = list_database_files(self.paths.database_dir)
            self.logger.info(f"Signature update finished, {len(files)} database files")
        else:
            self.logger.error(f"freshclam exited with code {result.return_code}")
        return result

"""Generation of the environment loader and the database updater scripts.

Both scripts are pure functions of the resolved ProvisionPaths: the
same paths always render the same bytes.
"""

import logging
import shlex
import stat
from pathlib import Path
from typing import Tuple

from .models import ProvisionPaths

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = (
    stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH
)


def _relative_to_root(paths: ProvisionPaths, target: Path) -> str:
    """Shell expression for target relative to the script's own directory."""
    try:
        rel = target.relative_to(paths.project_root)
    except ValueError:
        return shlex.quote(str(target))
    return f'"${{SCRIPT_DIR}}/{rel.as_posix()}"'


def render_env_script(paths: ProvisionPaths) -> str:
    """Render the environment loader, meant to be sourced by the user.

    CLAMAV_ROOT is resolved from the loader's own location each time it is
    sourced; the database directory is embedded as an absolute literal.
    """
    root_expr = _relative_to_root(paths, paths.prefix)
    database = shlex.quote(str(paths.database_dir))
    return f"""#!/bin/bash

# ClamAV project-isolated environment
# Points every search path at the local install prefix.
# Usage: source {paths.env_script.name}

SCRIPT_DIR="$(cd "$(dirname "${{BASH_SOURCE[0]}}")" && pwd)"

export CLAMAV_ROOT={root_expr}
export PATH="${{CLAMAV_ROOT}}/bin:${{CLAMAV_ROOT}}/sbin:${{PATH}}"
export LD_LIBRARY_PATH="${{CLAMAV_ROOT}}/lib${{LD_LIBRARY_PATH:+:${{LD_LIBRARY_PATH}}}}"
export DYLD_LIBRARY_PATH="${{CLAMAV_ROOT}}/lib${{DYLD_LIBRARY_PATH:+:${{DYLD_LIBRARY_PATH}}}}"
export PKG_CONFIG_PATH="${{CLAMAV_ROOT}}/lib/pkgconfig${{PKG_CONFIG_PATH:+:${{PKG_CONFIG_PATH}}}}"
export CMAKE_PREFIX_PATH="${{CLAMAV_ROOT}}${{CMAKE_PREFIX_PATH:+:${{CMAKE_PREFIX_PATH}}}}"
export ACLOCAL_PATH="${{CLAMAV_ROOT}}/share/aclocal${{ACLOCAL_PATH:+:${{ACLOCAL_PATH}}}}"

export CLAMAV_DATABASE_DIR={database}
export CLAMAV_LOG_DIR="${{CLAMAV_ROOT}}/var/log/clamav"
export CLAMAV_CONFIG_DIR="${{CLAMAV_ROOT}}/etc"

echo "ClamAV environment configured"
echo "  CLAMAV_ROOT: ${{CLAMAV_ROOT}}"
echo "  database:    ${{CLAMAV_DATABASE_DIR}}"
echo "  logs:        ${{CLAMAV_LOG_DIR}}"
echo "  config:      ${{CLAMAV_CONFIG_DIR}}"
"""


def render_db_update_script(paths: ProvisionPaths) -> str:
    """Render the standalone signature-database updater.

    The structured freshclam.conf rewrite and temp-file handling live in
    ``clamlocal update-db``; this wrapper sets up the environment and hands
    over the prefix and database directory it was generated for.
    """
    env_expr = _relative_to_root(paths, paths.env_script)
    local_expr = _relative_to_root(paths, paths.prefix)
    database = shlex.quote(str(paths.database_dir))
    return f"""#!/bin/bash

# ClamAV signature database updater
# Uses the locally installed freshclam; never touches system paths.

set -e

SCRIPT_DIR="$(cd "$(dirname "${{BASH_SOURCE[0]}}")" && pwd)"
ENV_SCRIPT={env_expr}
LOCAL_DIR={local_expr}
DATABASE_DIR={database}

if [ -f "${{ENV_SCRIPT}}" ]; then
    source "${{ENV_SCRIPT}}" > /dev/null
else
    export CLAMAV_ROOT="${{LOCAL_DIR}}"
    export PATH="${{LOCAL_DIR}}/bin:${{LOCAL_DIR}}/sbin:${{PATH}}"
    export LD_LIBRARY_PATH="${{LOCAL_DIR}}/lib${{LD_LIBRARY_PATH:+:${{LD_LIBRARY_PATH}}}}"
    export CLAMAV_DATABASE_DIR="${{DATABASE_DIR}}"
    export CLAMAV_LOG_DIR="${{LOCAL_DIR}}/var/log/clamav"
    export CLAMAV_CONFIG_DIR="${{LOCAL_DIR}}/etc"
fi

exec "${{CLAMLOCAL_PYTHON:-python3}}" -m clamlocal update-db \\
    --project-root "${{SCRIPT_DIR}}" \\
    --prefix "${{LOCAL_DIR}}" \\
    --database-dir "${{DATABASE_DIR}}" \\
    "$@"
"""


class ScriptEmitter:
    """Writes both derived scripts and marks them executable."""

    def __init__(self, paths: ProvisionPaths):
        self.paths = paths

    @staticmethod
    def _write_executable(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8", newline="\n")
        path.chmod(EXECUTABLE_MODE)
        return path

    def emit_env_script(self) -> Path:
        path = self._write_executable(self.paths.env_script, render_env_script(self.paths))
        logger.info(f"Environment script written: {path}")
        return path

    def emit_db_update_script(self) -> Path:
        path = self._write_executable(
            self.paths.db_update_script, render_db_update_script(self.paths)
        )
        logger.info(f"Database update script written: {path}")
        return path

    def emit(self) -> Tuple[Path, Path]:
        return self.emit_env_script(), self.emit_db_update_script()

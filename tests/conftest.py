"""Shared test fixtures for the clamlocal test suite."""

import os
import stat
import pytest
from pathlib import Path

from clamlocal.provision.models import ProvisionPaths
from clamlocal.provision.runner import CommandRunner
from clamlocal.provision.verifier import Verifier

FAKE_CMAKE = """#!/bin/sh
prefix=""
for arg in "$@"; do
    case "$arg" in
        -DCMAKE_INSTALL_PREFIX=*) prefix="${arg#-DCMAKE_INSTALL_PREFIX=}" ;;
    esac
done
echo "PREFIX='$prefix'" > Makefile
echo "$@" > cmake_args.txt
"""

FAKE_MAKE = """#!/bin/sh
[ -f Makefile ] || { echo "make: no Makefile" >&2; exit 2; }
. ./Makefile
if [ "$1" = "install" ]; then
    mkdir -p "$PREFIX/bin" "$PREFIX/sbin" "$PREFIX/lib" "$PREFIX/etc"
    for b in clamscan freshclam sigtool; do
        printf '#!/bin/sh\\necho "ClamAV 1.4.1"\\n' > "$PREFIX/bin/$b"
        chmod +x "$PREFIX/bin/$b"
    done
    printf '#!/bin/sh\\necho "ClamAV 1.4.1"\\n' > "$PREFIX/sbin/clamd"
    chmod +x "$PREFIX/sbin/clamd"
    printf 'Example\\nDatabaseDirectory /var/lib/clamav\\n' > "$PREFIX/etc/freshclam.conf.sample"
    : > "$PREFIX/lib/libclamav_static.a"
else
    echo "$@" > compiled.txt
fi
"""

FAKE_OK = "#!/bin/sh\nexit 0\n"


def write_executable(path: Path, content: str) -> Path:
    """Write a shell stub and mark it executable."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def project_root(tmp_path):
    """Temporary project root."""
    d = tmp_path / "project"
    d.mkdir()
    return d


@pytest.fixture
def paths(project_root):
    return ProvisionPaths.for_root(project_root)


@pytest.fixture
def source_tree(paths):
    """A minimal engine source tree with its build descriptor."""
    paths.source_dir.mkdir(parents=True)
    (paths.source_dir / "CMakeLists.txt").write_text("project(ClamAV)\n")
    return paths.source_dir


@pytest.fixture
def fake_toolchain(tmp_path, monkeypatch):
    """Fake cmake/make/gcc/g++ placed first on PATH."""
    bin_dir = tmp_path / "fakebin"
    write_executable(bin_dir / "cmake", FAKE_CMAKE)
    write_executable(bin_dir / "make", FAKE_MAKE)
    write_executable(bin_dir / "gcc", FAKE_OK)
    write_executable(bin_dir / "g++", FAKE_OK)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    return bin_dir


@pytest.fixture
def system_dirs(tmp_path):
    """Empty stand-ins for system-wide bin and lib directories."""
    bin_dir = tmp_path / "system" / "bin"
    lib_dir = tmp_path / "system" / "lib"
    bin_dir.mkdir(parents=True)
    lib_dir.mkdir(parents=True)
    return bin_dir, lib_dir


@pytest.fixture
def verifier(paths, system_dirs):
    bin_dir, lib_dir = system_dirs
    return Verifier(
        paths,
        CommandRunner(),
        system_bin_dirs=[bin_dir],
        system_lib_dirs=[lib_dir],
    )


@pytest.fixture
def installed_prefix(paths):
    """A prefix that looks like a finished installation, scripts included."""
    for d in paths.required_dirs():
        d.mkdir(parents=True, exist_ok=True)
    for name in ("clamscan", "freshclam", "sigtool"):
        write_executable(paths.bin_dir / name, '#!/bin/sh\necho "ClamAV 1.4.1"\n')
    write_executable(paths.sbin_dir / "clamd", FAKE_OK)
    (paths.etc_dir / "freshclam.conf.sample").write_text("Example\n")
    write_executable(paths.env_script, "#!/bin/bash\n")
    write_executable(paths.db_update_script, "#!/bin/bash\n")
    return paths


@pytest.fixture
def make_executable():
    return write_executable

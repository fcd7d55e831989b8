"""End-to-end build of a real ClamAV source tree into a temporary prefix.

Needs a checked-out ClamAV source tree and the full native toolchain, so
it only runs when CLAMLOCAL_E2E_SOURCE points at one. A release build
takes several minutes.

Run with: CLAMLOCAL_E2E_SOURCE=/path/to/clamav pytest -m e2e -v
"""

import os
import shutil
import pytest
from pathlib import Path

from clamlocal.provision.models import ModeFlags, ProvisionPaths, Stage
from clamlocal.provision.pipeline import ProvisionPipeline
from clamlocal.provision.runner import CommandRunner
from clamlocal.provision.verifier import Verifier

E2E_SOURCE = os.environ.get("CLAMLOCAL_E2E_SOURCE")

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(
        not E2E_SOURCE or not (Path(E2E_SOURCE) / "CMakeLists.txt").is_file(),
        reason="CLAMLOCAL_E2E_SOURCE not set to a ClamAV source tree",
    ),
    pytest.mark.skipif(
        any(shutil.which(tool) is None for tool in ("cmake", "make", "gcc", "g++")),
        reason="native build toolchain not installed",
    ),
]


@pytest.mark.asyncio
async def test_full_provisioning(tmp_path, system_dirs):
    paths = ProvisionPaths.for_root(tmp_path, source_dir=Path(E2E_SOURCE))
    bin_dir, lib_dir = system_dirs
    runner = CommandRunner()
    verifier = Verifier(paths, runner, system_bin_dirs=[bin_dir], system_lib_dirs=[lib_dir])

    result = await ProvisionPipeline(paths, runner=runner, verifier=verifier).run(
        ModeFlags(full=True)
    )

    assert result.exit_code == 0, [r.error_message for r in result.stage_results]
    assert result.completed_stages[-1] == Stage.VERIFY
    assert (paths.bin_dir / "clamscan").is_file()
    assert result.report.passed

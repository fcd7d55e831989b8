"""Tests for the CommandRunner subprocess wrapper."""

import sys
import pytest

from clamlocal.provision.runner import CommandRunner


class TestCommandRunner:
    @pytest.mark.asyncio
    async def test_captures_output(self, tmp_path):
        runner = CommandRunner()
        result = await runner.run(
            [sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path
        )
        assert result.ok
        assert result.return_code == 0
        assert result.stdout.strip() == str(tmp_path)
        assert result.duration_seconds is not None

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        runner = CommandRunner()
        result = await runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"]
        )
        assert result.ok is False
        assert result.return_code == 3
        assert "boom" in result.stderr

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        runner = CommandRunner()
        result = await runner.run([str(tmp_path / "no-such-tool")])
        assert result.return_code == 127
        assert result.stderr

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        runner = CommandRunner()
        result = await runner.run(
            [sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5
        )
        assert result.timed_out is True
        assert result.ok is False

    @pytest.mark.asyncio
    async def test_dry_run_does_not_execute(self, tmp_path):
        marker = tmp_path / "marker"
        runner = CommandRunner(dry_run=True)
        result = await runner.run(
            [sys.executable, "-c", f"open({str(marker)!r}, 'w').close()"]
        )
        assert result.ok
        assert result.dry_run is True
        assert "[DRY RUN]" in result.stdout
        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_passthrough_mode(self):
        runner = CommandRunner()
        result = await runner.run([sys.executable, "-c", "print('hi')"], capture=False)
        assert result.ok
        assert result.stdout == ""

    @pytest.mark.asyncio
    async def test_extra_env(self):
        runner = CommandRunner(env={"CLAMLOCAL_TEST_VAR": "42"})
        result = await runner.run(
            [sys.executable, "-c", "import os; print(os.environ['CLAMLOCAL_TEST_VAR'])"]
        )
        assert result.stdout.strip() == "42"

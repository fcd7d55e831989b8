"""Tests for the post-install verifier."""

import pytest

from clamlocal.provision.models import CheckSeverity
from clamlocal.provision.runner import CommandRunner
from clamlocal.provision.verifier import Verifier, render_report


def _by_name(report):
    return {check.name: check for check in report.checks}


class TestVerifier:
    @pytest.mark.asyncio
    async def test_complete_install_passes(self, installed_prefix, verifier):
        report = await verifier.verify()
        assert report.passed
        assert report.exit_code == 0
        assert report.failures == 0
        assert report.contamination == []
        checks = _by_name(report)
        assert checks["scanner_version"].details == ["ClamAV 1.4.1"]
        assert "static libraries only" in checks["lib_dir"].message

    @pytest.mark.asyncio
    async def test_empty_prefix_reports_everything(self, paths, verifier):
        report = await verifier.verify()
        assert not report.passed
        checks = _by_name(report)
        # Every check still runs after the first failure
        for name in ("prefix", "binary:clamscan", "binary:clamd", "lib_dir",
                     "config_dir", "derived_scripts", "scanner_version", "database_dir"):
            assert name in checks
        assert checks["prefix"].severity == CheckSeverity.FAILURE
        assert checks["database_dir"].severity == CheckSeverity.WARNING

    @pytest.mark.asyncio
    async def test_missing_binary_fails(self, installed_prefix, verifier):
        (installed_prefix.bin_dir / "sigtool").unlink()
        report = await verifier.verify()
        assert not report.passed
        assert report.failures == 1
        assert not _by_name(report)["binary:sigtool"].passed

    @pytest.mark.asyncio
    async def test_missing_scripts_fail(self, installed_prefix, verifier):
        installed_prefix.db_update_script.unlink()
        report = await verifier.verify()
        check = _by_name(report)["derived_scripts"]
        assert check.severity == CheckSeverity.FAILURE
        assert check.details == [str(installed_prefix.db_update_script)]

    @pytest.mark.asyncio
    async def test_contamination_is_warning_only(
        self, installed_prefix, verifier, system_dirs, make_executable
    ):
        bin_dir, lib_dir = system_dirs
        make_executable(bin_dir / "clamscan", "#!/bin/sh\n")
        (lib_dir / "libclamav.so.12").write_text("")

        report = await verifier.verify()

        assert report.passed
        assert report.warnings == 2
        assert sorted(report.contamination) == sorted(
            [str(bin_dir / "clamscan"), str(lib_dir / "libclamav.so.12")]
        )

    @pytest.mark.asyncio
    async def test_database_absent_is_warning(self, installed_prefix, verifier):
        installed_prefix.database_dir.rmdir()
        report = await verifier.verify()
        assert report.passed
        check = _by_name(report)["database_dir"]
        assert check.severity == CheckSeverity.WARNING
        assert str(installed_prefix.db_update_script) in check.message

    @pytest.mark.asyncio
    async def test_scanner_version_failure(self, installed_prefix, verifier, make_executable):
        make_executable(installed_prefix.bin_dir / "clamscan", "#!/bin/sh\necho broken >&2\nexit 3\n")
        report = await verifier.verify()
        check = _by_name(report)["scanner_version"]
        assert not check.passed
        assert "code 3" in check.message
        assert check.details == ["broken"]

    @pytest.mark.asyncio
    async def test_missing_scanner_counted_once(self, installed_prefix, verifier):
        (installed_prefix.bin_dir / "clamscan").unlink()
        report = await verifier.verify()
        checks = _by_name(report)
        assert not checks["binary:clamscan"].passed
        assert checks["scanner_version"].passed
        assert "skipped" in checks["scanner_version"].message
        assert report.failures == 1

    def test_binary_found_in_sbin(self, installed_prefix, verifier):
        assert verifier.find_binary("clamd") == installed_prefix.sbin_dir / "clamd"
        assert verifier.find_binary("clamconf") is None

    def test_custom_binary_list(self, installed_prefix, system_dirs):
        bin_dir, lib_dir = system_dirs
        verifier = Verifier(
            installed_prefix,
            CommandRunner(),
            expected_binaries=["clamscan"],
            system_bin_dirs=[bin_dir],
            system_lib_dirs=[lib_dir],
        )
        assert [c.name for c in verifier.check_binaries()] == ["binary:clamscan"]


class TestRenderReport:
    @pytest.mark.asyncio
    async def test_success_prints_usage(self, installed_prefix, verifier, capsys):
        report = await verifier.verify()
        render_report(report, installed_prefix)
        out = capsys.readouterr().out
        assert "Installation verified" in out
        assert f"source {installed_prefix.env_script}" in out

    @pytest.mark.asyncio
    async def test_failure_prints_count(self, paths, verifier, capsys):
        report = await verifier.verify()
        render_report(report, paths)
        out = capsys.readouterr().out
        assert f"Found {report.failures} problem(s)" in out

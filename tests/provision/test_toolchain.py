"""Tests for the dependency prober and source validator."""

import logging
import pytest

from clamlocal.provision.errors import MissingDependencyError, SourceTreeError
from clamlocal.provision.toolchain import DependencyProber, SourceValidator


def _which_from(available):
    return lambda name: f"/usr/bin/{name}" if name in available else None


class TestDependencyProber:
    def test_all_present(self):
        prober = DependencyProber(
            which=_which_from({"cmake", "make", "gcc", "g++", "cargo"})
        )
        found = prober.check()
        assert set(found) == {"cmake", "make", "gcc", "g++"}

    def test_reports_every_missing_tool(self):
        prober = DependencyProber(which=_which_from({"make", "cargo"}))
        with pytest.raises(MissingDependencyError) as exc_info:
            prober.check()
        assert exc_info.value.missing == ["cmake", "gcc", "g++"]
        assert "cmake gcc g++" in str(exc_info.value)

    def test_optional_toolchain_absent_only_warns(self, caplog):
        prober = DependencyProber(which=_which_from({"cmake", "make", "gcc", "g++"}))
        with caplog.at_level(logging.WARNING):
            prober.check()
        assert "Rust toolchain not found" in caplog.text

    def test_either_optional_tool_is_enough(self, caplog):
        prober = DependencyProber(
            which=_which_from({"cmake", "make", "gcc", "g++", "rustc"})
        )
        with caplog.at_level(logging.WARNING):
            prober.check()
        assert "Rust toolchain" not in caplog.text

    def test_custom_required_list(self):
        prober = DependencyProber(required=["ninja"], optional=[], which=_which_from(set()))
        with pytest.raises(MissingDependencyError) as exc_info:
            prober.check()
        assert exc_info.value.missing == ["ninja"]


class TestSourceValidator:
    def test_missing_directory_reported_first(self, tmp_path):
        validator = SourceValidator(tmp_path / "clamav")
        with pytest.raises(SourceTreeError, match="source directory not found"):
            validator.check()

    def test_missing_descriptor(self, tmp_path):
        source = tmp_path / "clamav"
        source.mkdir()
        with pytest.raises(SourceTreeError, match="CMakeLists.txt not found"):
            SourceValidator(source).check()

    def test_valid_tree(self, source_tree):
        descriptor = SourceValidator(source_tree).check()
        assert descriptor == source_tree / "CMakeLists.txt"

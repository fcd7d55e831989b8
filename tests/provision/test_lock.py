"""Tests for the provisioning lock file."""

import os
import pytest

from clamlocal.provision import lock as lock_module
from clamlocal.provision.errors import PipelineLockedError
from clamlocal.provision.lock import ProvisionLock


class TestProvisionLock:
    def test_acquire_and_release(self, tmp_path):
        lock_file = tmp_path / ".lock"
        with ProvisionLock(lock_file) as lock:
            assert lock.held
            assert lock_file.read_text() == str(os.getpid())
        assert not lock.held
        assert not lock_file.exists()

    def test_held_lock_blocks(self, tmp_path):
        lock_file = tmp_path / ".lock"
        with ProvisionLock(lock_file):
            with pytest.raises(PipelineLockedError) as exc_info:
                ProvisionLock(lock_file).acquire()
        assert exc_info.value.owner_pid == os.getpid()

    def test_stale_lock_taken_over(self, tmp_path):
        lock_file = tmp_path / ".lock"
        lock_file.write_text("999999")
        lock = ProvisionLock(lock_file)
        lock.acquire()
        assert lock_file.read_text() == str(os.getpid())
        lock.release()

    def test_garbage_lock_taken_over(self, tmp_path):
        lock_file = tmp_path / ".lock"
        lock_file.write_text("not a pid")
        with ProvisionLock(lock_file):
            assert lock_file.read_text() == str(os.getpid())

    def test_stale_lock_has_single_winner(self, tmp_path):
        lock_file = tmp_path / ".lock"
        lock_file.write_text("999999")
        first = ProvisionLock(lock_file)
        second = ProvisionLock(lock_file)

        first.acquire()
        with pytest.raises(PipelineLockedError):
            second.acquire()
        assert first.held and not second.held
        first.release()

    def test_release_between_open_and_lock(self, tmp_path, monkeypatch):
        lock_file = tmp_path / ".lock"
        first = ProvisionLock(lock_file)
        first.acquire()
        third = ProvisionLock(lock_file)
        real_flock = lock_module.fcntl.flock
        interleaved = []

        def flock(fd, operation):
            # First holder leaves and a newcomer locks a fresh file before our flock lands
            if not interleaved:
                interleaved.append(fd)
                first.release()
                third.acquire()
            return real_flock(fd, operation)

        monkeypatch.setattr(lock_module.fcntl, "flock", flock)
        second = ProvisionLock(lock_file)
        with pytest.raises(PipelineLockedError):
            second.acquire()

        assert third.held and not second.held
        assert lock_file.read_text() == str(os.getpid())
        third.release()
        assert not lock_file.exists()

    def test_release_without_acquire_keeps_foreign_lock(self, tmp_path):
        lock_file = tmp_path / ".lock"
        lock_file.write_text("1")
        ProvisionLock(lock_file).release()
        assert lock_file.exists()

"""Tests for the workspace advisory lock."""

import os
import platform
import threading

import pytest

from intentguard.exceptions import LedgerLockTimeout
from intentguard.file_lock import FileLock


@pytest.fixture
def lock_path(tmp_path):
    return tmp_path / "control" / ".lock"


def test_acquire_release(lock_path):
    lock = FileLock(lock_path, timeout=1.0)
    lock.acquire()
    assert lock.is_locked() is True
    assert lock_path.exists()

    lock.release()
    assert lock.is_locked() is False


def test_release_without_acquire_is_safe(lock_path):
    FileLock(lock_path).release()


def test_reentrant_across_instances(lock_path):
    outer = FileLock(lock_path, timeout=1.0)
    inner = FileLock(lock_path, timeout=1.0)

    with outer:
        with inner:
            assert inner.is_locked()
        assert outer.is_locked()

    assert not outer.is_locked()
    # Lock file stays in place after release
    assert lock_path.exists()


def test_other_thread_times_out(lock_path):
    errors = []

    def contend():
        try:
            with FileLock(lock_path, timeout=0.2):
                pass
        except LedgerLockTimeout as e:
            errors.append(e)

    with FileLock(lock_path, timeout=1.0):
        worker = threading.Thread(target=contend)
        worker.start()
        worker.join(timeout=5)

    assert len(errors) == 1


def test_other_thread_acquires_after_release(lock_path):
    acquired = threading.Event()

    def contend():
        with FileLock(lock_path, timeout=5.0):
            acquired.set()

    with FileLock(lock_path, timeout=1.0):
        worker = threading.Thread(target=contend)
        worker.start()
        assert not acquired.wait(timeout=0.1)

    worker.join(timeout=5)
    assert acquired.is_set()


@pytest.mark.skipif(platform.system() == "Windows", reason="flock semantics")
def test_foreign_holder_times_out(lock_path):
    import fcntl

    lock_path.parent.mkdir(parents=True)
    fd = os.open(str(lock_path), os.O_CREAT | os.O_RDWR)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        with pytest.raises(LedgerLockTimeout):
            FileLock(lock_path, timeout=0.2, poll_interval=0.02).acquire()
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)

    # State is clean after the failed attempt
    with FileLock(lock_path, timeout=1.0) as lock:
        assert lock.is_locked()

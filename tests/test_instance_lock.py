import os
import time

import pytest

from catalog_sync.instance_lock import AlreadyRunningError, PidFileLock


def test_lock_writes_and_removes_pid_file(tmp_path) -> None:
    path = tmp_path / ".run" / "catalog_sync.lock"
    with PidFileLock(path) as lock:
        assert lock.held
        assert path.read_text() == str(os.getpid())
    assert not path.exists()


def test_stale_pid_is_taken_over(tmp_path) -> None:
    path = tmp_path / "catalog_sync.lock"
    path.write_text("999999999")

    with PidFileLock(path):
        assert path.read_text() == str(os.getpid())


def test_live_foreign_pid_blocks(tmp_path, monkeypatch) -> None:
    path = tmp_path / "catalog_sync.lock"
    path.write_text("4242")
    monkeypatch.setattr("catalog_sync.instance_lock._pid_alive", lambda pid: True)

    with pytest.raises(AlreadyRunningError) as excinfo:
        PidFileLock(path).acquire()
    assert excinfo.value.pid == 4242
    assert path.read_text() == "4242"


def test_lock_created_by_another_process_mid_acquire_blocks(tmp_path, monkeypatch) -> None:
    path = tmp_path / "catalog_sync.lock"
    real_open = os.open
    calls = []

    def racing_open(target, flags, mode=0o777):
        if not calls:
            # Соседний процесс успел создать файл раньше нас
            path.write_text("4242")
        calls.append(target)
        return real_open(target, flags, mode)

    monkeypatch.setattr("catalog_sync.instance_lock.os.open", racing_open)
    monkeypatch.setattr("catalog_sync.instance_lock._pid_alive", lambda pid: True)

    lock = PidFileLock(path)
    with pytest.raises(AlreadyRunningError) as excinfo:
        lock.acquire()

    assert excinfo.value.pid == 4242
    assert not lock.held
    assert path.read_text() == "4242"


def test_release_leaves_foreign_pid_file(tmp_path, monkeypatch) -> None:
    path = tmp_path / "catalog_sync.lock"
    with PidFileLock(path):
        path.write_text("4242")
        monkeypatch.setattr("catalog_sync.instance_lock._pid_alive", lambda pid: True)
        with pytest.raises(AlreadyRunningError):
            PidFileLock(path).acquire()
    # Чужой PID в файле: release его не трогает
    assert path.read_text() == "4242"


def test_fresh_empty_file_blocks_but_old_one_is_taken_over(tmp_path) -> None:
    path = tmp_path / "catalog_sync.lock"
    path.write_text("")

    with pytest.raises(AlreadyRunningError) as excinfo:
        PidFileLock(path).acquire()
    assert excinfo.value.pid is None

    old = time.time() - 60
    os.utime(path, (old, old))
    with PidFileLock(path):
        assert path.read_text() == str(os.getpid())
    assert not path.exists()

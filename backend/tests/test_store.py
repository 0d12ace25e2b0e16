import threading
import time

import pytest

from dol_server.errors import FatalLockError, SaveError, SaveLockTimeout
from dol_server.extensions.autosync import store as store_mod
from dol_server.extensions.autosync.store import EMPTY_RECORD, SaveRecord, SaveStore


@pytest.fixture()
def save_dir(tmp_path):
    return tmp_path


def make_store(save_dir, timeout=2.0):
    return SaveStore(save_dir, lock_timeout=timeout, lock_poll_interval=0.02)


def test_load_missing_file_returns_empty_record(save_dir):
    store = make_store(save_dir)

    assert store.load() == EMPTY_RECORD
    assert not store.save_file.exists()


def test_merge_outcomes(save_dir):
    store = make_store(save_dir)

    first = store.merge(SaveRecord(100, 'A'))
    assert first.changed and not first.outdated

    stale = store.merge(SaveRecord(50, 'B'))
    assert stale.outdated
    assert stale.server == SaveRecord(100, 'A')

    same = store.merge(SaveRecord(100, 'A'))
    assert not same.changed and not same.outdated

    assert store.load() == SaveRecord(100, 'A')


def test_write_leaves_no_temporary_files(save_dir):
    store = make_store(save_dir)

    store.merge(SaveRecord(1, 'one'))
    store.merge(SaveRecord(2, 'two'))

    assert sorted(p.name for p in save_dir.iterdir()) == sorted([store_mod.LOCK_FILE_NAME, store_mod.SAVE_FILE_NAME])


def test_write_failure_with_stuck_temp_file_is_a_save_error(save_dir, monkeypatch):
    store = make_store(save_dir)

    def fail(*args):
        raise OSError('read-only file system')

    monkeypatch.setattr(store_mod.os, 'replace', fail)
    monkeypatch.setattr(store_mod.os, 'unlink', fail)

    with pytest.raises(SaveError, match='writing save file'):
        store.merge(SaveRecord(1, 'one'))


def test_waiter_observes_the_first_writers_commit(save_dir):
    # Two stores on one directory stand in for two server processes
    first = make_store(save_dir)
    second = make_store(save_dir)
    results = {}

    first.lock.acquire()
    waiter = threading.Thread(target=lambda: results.setdefault('outcome', second.merge(SaveRecord(50, 'B'))))
    waiter.start()

    # Slow critical section: the waiter must not get in before the commit
    time.sleep(0.2)
    assert waiter.is_alive()
    first._write(SaveRecord(100, 'A'))
    first.lock.release()

    waiter.join(timeout=2)
    assert not waiter.is_alive()
    assert results['outcome'].server == SaveRecord(100, 'A')
    assert first.load() == SaveRecord(100, 'A')


def test_concurrent_merges_from_threads_are_serialized(save_dir):
    store = make_store(save_dir)
    barrier = threading.Barrier(8)
    outcomes = []

    def merge(date):
        barrier.wait()
        outcomes.append(store.merge(SaveRecord(date, f'save-{date}')))

    threads = [threading.Thread(target=merge, args=(date,)) for date in range(1, 9)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(outcomes) == 8
    assert store.load() == SaveRecord(8, 'save-8')


def test_lock_times_out(save_dir):
    holder = make_store(save_dir)
    waiter = make_store(save_dir, timeout=0.2)

    with holder.lock.held():
        started = time.monotonic()
        with pytest.raises(SaveLockTimeout):
            waiter.load()
        assert time.monotonic() - started < 2

    assert waiter.load() == EMPTY_RECORD


def test_failed_release_is_fatal(save_dir, monkeypatch):
    store = make_store(save_dir)

    def broken_unlock(f):
        raise OSError('bad file descriptor')

    monkeypatch.setattr(store_mod, '_unlock_file', broken_unlock)

    with pytest.raises(FatalLockError):
        store.load()

    assert not issubclass(FatalLockError, Exception)

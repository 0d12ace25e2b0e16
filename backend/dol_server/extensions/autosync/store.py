"""Save record persistence for autosync.

One save record per directory, guarded by an advisory lock file so that
several server processes sharing the directory never interleave their
read-modify-write sequences.
"""

import json
import os
import sys
import tempfile
import threading
import time
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

from dol_server.errors import FatalLockError, SaveError, SaveLockTimeout

SAVE_FILE_NAME = 'autosync.json'
LOCK_FILE_NAME = 'autosync.lock'
MAX_DATE = 2**64 - 1

# fcntl is Unix-only, msvcrt is Windows-only
try:
    import fcntl

    def _try_lock_file(f) -> bool:
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        return True

    def _unlock_file(f) -> None:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)

except ImportError:
    import msvcrt

    def _try_lock_file(f) -> bool:
        f.seek(0)
        try:
            msvcrt.locking(f.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError:
            return False
        return True

    def _unlock_file(f) -> None:
        f.seek(0)
        msvcrt.locking(f.fileno(), msvcrt.LK_UNLCK, 1)


def user_config_dir() -> Path:
    """Per-user configuration directory, following each platform's convention."""
    if sys.platform == 'win32':
        appdata = os.environ.get('APPDATA')
        if not appdata:
            raise OSError('%APPDATA% is not defined')
        return Path(appdata)
    if sys.platform == 'darwin':
        return Path.home() / 'Library' / 'Application Support'
    xdg = os.environ.get('XDG_CONFIG_HOME')
    if xdg:
        return Path(xdg)
    return Path.home() / '.config'


def default_save_dir() -> Path:
    return user_config_dir() / 'dol-server' / 'autosync'


@dataclass(frozen=True)
class SaveRecord:
    """The game save blob plus the client's logical timestamp of its last change."""

    date: int = 0
    data: str = ''

    @classmethod
    def from_json(cls, obj: Any) -> 'SaveRecord':
        if not isinstance(obj, dict):
            raise ValueError('save record must be a JSON object')
        date = obj.get('date')
        data = obj.get('data')
        if not isinstance(date, int) or isinstance(date, bool):
            raise ValueError('save record "date" must be an integer')
        if not 0 <= date <= MAX_DATE:
            raise ValueError('save record "date" is out of range')
        if not isinstance(data, str):
            raise ValueError('save record "data" must be a string')
        return cls(date=date, data=data)

    def to_json(self) -> dict:
        return {'date': self.date, 'data': self.data}


EMPTY_RECORD = SaveRecord()


@dataclass(frozen=True)
class MergeOutcome:
    changed: bool = False
    # Set when the server record is newer than the submitted one.
    server: Optional[SaveRecord] = None

    @property
    def outdated(self) -> bool:
        return self.server is not None


class SaveLock:
    """Advisory cross-process lock on a file, with a bounded, polled wait.

    A thread lock is taken first: OS file locks belong to the open file, so
    threads of one process have to be serialized separately.
    """

    def __init__(self, path: Path, timeout: float = 5.0, poll_interval: float = 0.25):
        self.path = Path(path)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._thread_lock = threading.Lock()
        self._file = None

    def acquire(self) -> None:
        deadline = time.monotonic() + self.timeout
        if not self._thread_lock.acquire(timeout=self.timeout):
            raise SaveLockTimeout(f'timed out after {self.timeout}s waiting for {self.path}')

        try:
            f = open(self.path, 'a+b')
        except OSError as exc:
            self._thread_lock.release()
            raise SaveError(f'opening lock file: {exc}') from exc

        try:
            while not _try_lock_file(f):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise SaveLockTimeout(f'timed out after {self.timeout}s waiting for {self.path}')
                time.sleep(min(self.poll_interval, remaining))
        except BaseException:
            f.close()
            self._thread_lock.release()
            raise

        self._file = f

    def release(self) -> None:
        f, self._file = self._file, None
        try:
            _unlock_file(f)
            f.close()
        except (OSError, AttributeError) as exc:
            raise FatalLockError(f'releasing save data lock: {exc}') from exc
        finally:
            self._thread_lock.release()

    @contextmanager
    def held(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()


class SaveStore:
    def __init__(self, directory: Path, lock_timeout: float = 5.0, lock_poll_interval: float = 0.25):
        self.directory = Path(directory)
        self.save_file = self.directory / SAVE_FILE_NAME
        self.lock = SaveLock(self.directory / LOCK_FILE_NAME, lock_timeout, lock_poll_interval)

    def load(self) -> SaveRecord:
        with self.lock.held():
            return self._read()

    def merge(self, client: SaveRecord, override: bool = False) -> MergeOutcome:
        """Last-writer-wins merge of ``client`` into the stored record.

        A strictly newer server record is returned untouched as ``server``;
        otherwise the client record is written when the dates differ (or when
        ``override`` is set).
        """
        with self.lock.held():
            if override:
                self._write(client)
                return MergeOutcome(changed=True)

            server = self._read()
            if server.date > client.date:
                return MergeOutcome(server=server)
            if server.date == client.date:
                return MergeOutcome(changed=False)

            self._write(client)
            return MergeOutcome(changed=True)

    def _read(self) -> SaveRecord:
        try:
            with open(self.save_file, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except FileNotFoundError:
            return EMPTY_RECORD
        except OSError as exc:
            raise SaveError(f'reading save file: {exc}') from exc
        except ValueError as exc:
            raise SaveError(f'decoding save file: {exc}') from exc

        try:
            return SaveRecord.from_json(raw)
        except ValueError as exc:
            raise SaveError(f'decoding save file: {exc}') from exc

    def _write(self, record: SaveRecord) -> None:
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                'w', encoding='utf-8', dir=self.directory, prefix='.autosync-', suffix='.tmp', delete=False
            ) as tmp:
                tmp_path = tmp.name
                json.dump(record.to_json(), tmp)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.save_file)
        except OSError as exc:
            if tmp_path is not None:
                with suppress(OSError):
                    os.unlink(tmp_path)
            raise SaveError(f'writing save file: {exc}') from exc

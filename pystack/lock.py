"""Process-wide repository lock."""

import os
import logging
from types import TracebackType
from typing import Optional, Type

import fcntl

from .errors import ConcurrentExecutionError

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = "pystack.lock"


class RepositoryLock:
    """Exclusive advisory lock on a file in the git dir, held for a whole command.

    Only one pystack process may mutate a repository's working tree and
    index at a time; a second one fails straight away.
    """

    def __init__(self, git_dir: str):
        self.path = os.path.join(git_dir, LOCK_FILE_NAME)
        self._fd: Optional[int] = None

    def acquire(self) -> None:
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            raise ConcurrentExecutionError()
        self._fd = fd
        logger.debug(f"Acquired {self.path}")

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug(f"Released {self.path}")

    def __enter__(self) -> "RepositoryLock":
        self.acquire()
        return self

    def __exit__(self, exc_type: Optional[Type[BaseException]],
                 exc: Optional[BaseException], tb: Optional[TracebackType]) -> None:
        self.release()

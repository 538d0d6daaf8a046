"""
Inter-process run lock backed by an advisory file lock.
"""
import os
from typing import IO, Optional

import portalocker
from loguru import logger

from ..models.errors import LockContentionError


class RunLock:
    """
    Exclusive, non-blocking lock on a local file.
    
    The lock file is created if missing and never removed. The operating
    system releases the lock when the holding process exits, so a crashed run
    never leaves a stale lock behind.
    """
    
    def __init__(self, path: str):
        self.path = path
        self._handle: Optional[IO] = None
    
    @property
    def locked(self) -> bool:
        return self._handle is not None
    
    def acquire(self) -> None:
        """
        Take the lock without waiting.
        
        Raises:
            LockContentionError: If another process holds the lock or the
                lock file cannot be opened
        """
        if self._handle is not None:
            raise LockContentionError(f"Lock {self.path} is already held by this run")
        
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            handle = open(self.path, 'a')
        except OSError as e:
            raise LockContentionError(f"Cannot open lock file {self.path}: {e}") from e
        
        try:
            portalocker.lock(handle, portalocker.LOCK_EX | portalocker.LOCK_NB)
        except portalocker.exceptions.LockException as e:
            handle.close()
            raise LockContentionError(f"Another run holds the lock {self.path}") from e
        
        self._handle = handle
        logger.debug(f"Acquired run lock {self.path}")
    
    def release(self) -> None:
        """Release the lock if held."""
        if self._handle is None:
            return
        try:
            portalocker.unlock(self._handle)
        finally:
            self._handle.close()
            self._handle = None
        logger.debug(f"Released run lock {self.path}")
    
    def __enter__(self) -> 'RunLock':
        self.acquire()
        return self
    
    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()

"""File-backed state store with a per-run exclusive lock and atomic writes."""

import json
import os
import tempfile
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional
from filelock import FileLock, Timeout
from pydantic import ValidationError
from ..utils.errors import StateConflict, StateError
from ..utils.logging import get_logger
from .models import ResourceState, StateDocument

logger = get_logger("state.store")

STATE_VERSION = 1


class StateStore:
    """
    Persists last-applied ResourceState records keyed by address.
    
    One process holds the lock for the duration of a run; writes from the
    executor's worker threads are serialized in-process. Every write replaces
    the whole file atomically, so a concurrent reader never sees a partial file.
    """
    
    def __init__(self, path: str, lock_timeout: float = 0):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout
        self._file_lock: Optional[FileLock] = None
        self._write_lock = threading.RLock()
        self._resources: Dict[str, ResourceState] = {}
        self._serial = 0
        self._lineage: Optional[str] = None
        self._loaded = False
    
    def acquire(self) -> None:
        """
        Take the exclusive run lock (re-entrant within this store).
        
        Raises:
            StateConflict: If another run holds the lock past lock_timeout
        """
        if self._file_lock is None:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_lock = FileLock(str(self.lock_path), timeout=self.lock_timeout, thread_local=False)
        try:
            self._file_lock.acquire()
        except Timeout:
            raise StateConflict(
                f"State {self.path} is locked by another run ({self.lock_path}). "
                "Wait for it to finish or remove a stale lock file."
            )
        logger.debug(f"Acquired state lock {self.lock_path}")
    
    def release(self) -> None:
        if self._file_lock is not None and self._file_lock.is_locked:
            self._file_lock.release()
            logger.debug(f"Released state lock {self.lock_path}")
    
    @property
    def is_locked(self) -> bool:
        return self._file_lock is not None and self._file_lock.is_locked
    
    @contextmanager
    def locked(self) -> Iterator["StateStore"]:
        """Hold the run lock and load state for the duration of the block."""
        self.acquire()
        try:
            self.load()
            yield self
        finally:
            self.release()
    
    def load(self) -> Dict[str, ResourceState]:
        """
        Load all records from disk (a missing file is an empty state).
        
        Raises:
            StateError: If the file is unreadable or malformed
        """
        with self._write_lock:
            if not self.path.exists():
                self._resources = {}
                self._serial = 0
                self._lineage = None
                self._loaded = True
                return {}
            
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    document = StateDocument(**json.load(f))
            except json.JSONDecodeError as e:
                raise StateError(f"State file {self.path} is not valid JSON: {e}")
            except (TypeError, ValidationError) as e:
                raise StateError(f"State file {self.path} has an invalid layout: {e}")
            except OSError as e:
                raise StateError(f"Error reading state file {self.path}: {e}")
            
            if document.version != STATE_VERSION:
                raise StateError(f"Unsupported state version {document.version} in {self.path}")
            
            self._resources = dict(document.resources)
            self._serial = document.serial
            self._lineage = document.lineage
            self._loaded = True
            logger.info(f"Loaded {len(self._resources)} resource records from {self.path} (serial {self._serial})")
            return dict(self._resources)
    
    def get(self, address: str) -> Optional[ResourceState]:
        self._ensure_loaded()
        with self._write_lock:
            return self._resources.get(address)
    
    def all(self) -> List[ResourceState]:
        """All records in stored order."""
        self._ensure_loaded()
        with self._write_lock:
            return list(self._resources.values())
    
    def snapshot(self) -> Dict[str, ResourceState]:
        """Copy of the current records keyed by address."""
        self._ensure_loaded()
        with self._write_lock:
            return dict(self._resources)
    
    @property
    def serial(self) -> int:
        return self._serial
    
    def save(self, state: ResourceState) -> None:
        """
        Persist one record atomically.
        
        Raises:
            StateError: If the run lock is not held or the write fails
        """
        self._require_lock()
        with self._write_lock:
            self._resources[state.address] = state
            self._write()
        logger.debug(f"Saved state for {state.address} ({state.status.value})")
    
    def remove(self, address: str) -> Optional[ResourceState]:
        """Drop a record after a confirmed destroy."""
        self._require_lock()
        with self._write_lock:
            removed = self._resources.pop(address, None)
            if removed is not None:
                self._write()
                logger.debug(f"Removed state for {address}")
            return removed
    
    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()
    
    def _require_lock(self) -> None:
        if not self.is_locked:
            raise StateError(f"State {self.path} must be locked before it is written")
        self._ensure_loaded()
    
    def _write(self) -> None:
        if self._lineage is None:
            self._lineage = str(uuid.uuid4())
        self._serial += 1
        document = StateDocument(
            version=STATE_VERSION,
            serial=self._serial,
            lineage=self._lineage,
            resources=self._resources
        )
        
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document.model_dump(mode="json"), f, indent=2, sort_keys=False)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StateError(f"Failed to write state file {self.path}: {e}")

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, Optional
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import quote
import asyncio
import contextlib
import fcntl
import json
import os
import tempfile

import structlog

from agent_memory.config import ONE_HOUR_SECONDS, ONE_WEEK_SECONDS
from agent_memory.domain.errors import ConcurrentMutationConflict
from agent_memory.domain.models import Session

logger = structlog.get_logger(__name__)


class SessionStore(ABC):
    """Loads and persists whole session records by id"""

    @abstractmethod
    async def load(self, session_id: str) -> Optional[Session]:
        """Return the stored session, or None if there is none"""
        pass

    @abstractmethod
    async def save(self, session_id: str, session: Session, expected_revision: Optional[int] = None) -> None:
        """Write the whole record. Bumps session.revision.

        If expected_revision is given and the stored record has moved on,
        raises ConcurrentMutationConflict and writes nothing.
        """
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Delete a session; True if one existed"""
        pass

    async def start(self) -> None:
        """Start background maintenance, if the store has any"""
        pass

    async def close(self) -> None:
        """Stop background maintenance"""
        pass

    @staticmethod
    def _check_revision(session_id: str, current: int, expected: Optional[int]) -> None:
        if expected is not None and current != expected:
            raise ConcurrentMutationConflict(session_id, expected, current)


class InMemorySessionStore(SessionStore):
    """Process-local session table with TTL expiry"""

    def __init__(self, ttl_seconds: int = ONE_WEEK_SECONDS, cleanup_interval_seconds: float = ONE_HOUR_SECONDS):
        self.ttl_seconds = ttl_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._cleanup_task: Optional[asyncio.Task] = None
        self.cache: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _live_entry(self, session_id: str) -> Optional[Dict[str, Any]]:
        entry = self.cache.get(session_id)
        if entry is None:
            return None
        if self._now() > entry["expires_at"]:
            del self.cache[session_id]
            return None
        return entry

    async def load(self, session_id: str) -> Optional[Session]:
        """Get a session if not expired"""

        async with self._lock:
            entry = self._live_entry(session_id)
            if entry is None:
                return None
            # records, not objects: callers never share a live instance
            return Session.from_record(entry["record"])

    async def save(self, session_id: str, session: Session, expected_revision: Optional[int] = None) -> None:
        """Store a session and refresh its TTL"""

        async with self._lock:
            entry = self._live_entry(session_id)
            current = entry["record"].get("revision", 0) if entry else 0
            self._check_revision(session_id, current, expected_revision)

            session.revision = current + 1
            self.cache[session_id] = {
                "record": session.to_record(),
                "expires_at": self._now() + timedelta(seconds=self.ttl_seconds)
            }

    async def delete(self, session_id: str) -> bool:
        """Delete a session from the table"""

        async with self._lock:
            if session_id in self.cache:
                del self.cache[session_id]
                return True
            return False

    async def clear_expired(self) -> int:
        """Clear expired sessions and return count"""

        async with self._lock:
            now = self._now()
            expired_keys = [
                key for key, entry in self.cache.items()
                if now > entry["expires_at"]
            ]

            for key in expired_keys:
                del self.cache[key]

            return len(expired_keys)

    async def get_stats(self) -> Dict[str, Any]:
        """Get table statistics"""

        async with self._lock:
            now = self._now()
            active_count = sum(
                1 for entry in self.cache.values()
                if now <= entry["expires_at"]
            )

            return {
                "total_sessions": len(self.cache),
                "active_sessions": active_count,
                "expired_sessions": len(self.cache) - active_count
            }

    async def run_cleanup(self, interval_seconds: Optional[float] = None):
        """Periodically drop expired sessions. Run as a background task."""

        while True:
            await asyncio.sleep(interval_seconds or self.cleanup_interval_seconds)
            try:
                removed = await self.clear_expired()
                if removed:
                    logger.info("Expired sessions removed", count=removed)
            except Exception as e:
                logger.error("Session cleanup error", error=str(e))

    async def start(self) -> None:
        """Schedule run_cleanup on the running loop; calling it twice keeps one task"""

        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self.run_cleanup())
            logger.info("Session cleanup started", interval_seconds=self.cleanup_interval_seconds)

    async def close(self) -> None:
        """Cancel the cleanup task and wait for it to finish"""

        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


class FileSessionStore(SessionStore):
    """One JSON file per session, replaced atomically on every save.

    The revision check and the write happen under an exclusive ``flock`` on a
    ``<name>.json.lock`` file beside the record, so writers in other
    processes sharing the directory are serialized too (POSIX only).
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, session_id: str) -> Path:
        if not session_id:
            raise ValueError("session_id must not be empty")
        return self.directory / f"{quote(session_id, safe='')}.json"

    @contextlib.contextmanager
    def _file_lock(self, path: Path) -> Iterator[None]:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path.with_name(path.name + ".lock"), "a") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def _read_record(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return json.loads(raw)

    def _write_record(self, path: Path, record: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _save_locked(
        self,
        session_id: str,
        path: Path,
        record: Dict[str, Any],
        expected_revision: Optional[int]
    ) -> int:
        with self._file_lock(path):
            stored = self._read_record(path)
            current = stored.get("revision", 0) if stored else 0
            self._check_revision(session_id, current, expected_revision)
            record["revision"] = current + 1
            self._write_record(path, record)
        return current + 1

    def _delete_locked(self, path: Path) -> bool:
        with self._file_lock(path):
            try:
                path.unlink()
            except FileNotFoundError:
                return False
        return True

    async def load(self, session_id: str) -> Optional[Session]:
        """Read and normalize a session file"""

        path = self.path_for(session_id)
        try:
            record = await asyncio.to_thread(self._read_record, path)
        except json.JSONDecodeError as e:
            logger.error("Corrupt session file", session_id=session_id, path=str(path), error=str(e))
            raise
        if record is None:
            return None
        return Session.from_record(record)

    async def save(self, session_id: str, session: Session, expected_revision: Optional[int] = None) -> None:
        """Check the revision and write the whole session record in a single replace"""

        path = self.path_for(session_id)
        session.revision = await asyncio.to_thread(
            self._save_locked, session_id, path, session.to_record(), expected_revision
        )

    async def delete(self, session_id: str) -> bool:
        """Remove a session file"""

        return await asyncio.to_thread(self._delete_locked, self.path_for(session_id))

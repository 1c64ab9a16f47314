from __future__ import annotations

import secrets
import threading
import time
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Iterable

from asset_register_app.core.defaults import DEFAULT_DRY_RUN_MAX_SESSIONS, DEFAULT_DRY_RUN_TTL_SEC
from asset_register_app.core.errors import TokenNotFoundError
from asset_register_app.imports.models import DryRunSession, EntityType, ImportMode, RawRow, ValidationReport
from asset_register_app.infrastructure.logging import get_logger

LOGGER = get_logger(__name__)

TOKEN_BYTES = 24


class DryRunSessionStore:
    """Thread-safe token -> dry-run session map with TTL and capacity eviction."""

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_DRY_RUN_TTL_SEC,
        max_sessions: int = DEFAULT_DRY_RUN_MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = max(1, int(ttl_seconds))
        self._max_sessions = max(1, int(max_sessions))
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[float, DryRunSession]] = OrderedDict()

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for created, _ in self._entries.values() if not self._is_expired(created, now))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def put(
        self,
        *,
        entity_type: EntityType,
        mode: ImportMode,
        archive_missing: bool,
        vessel_id: str,
        raw_rows: Iterable[RawRow],
        report: ValidationReport,
        original_file_bytes: bytes,
        original_file_name: str,
        created_by: str = "",
    ) -> str:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            token = secrets.token_urlsafe(TOKEN_BYTES)
            while token in self._entries:
                token = secrets.token_urlsafe(TOKEN_BYTES)
            self._entries[token] = (
                now,
                DryRunSession(
                    token=token,
                    entity_type=entity_type,
                    mode=mode,
                    archive_missing=bool(archive_missing),
                    vessel_id=str(vessel_id or ""),
                    raw_rows=tuple(raw_rows),
                    report=report,
                    original_file_bytes=bytes(original_file_bytes),
                    original_file_name=str(original_file_name or ""),
                    created_at=datetime.now(timezone.utc),
                    created_by=str(created_by or ""),
                ),
            )
            self._evict_over_capacity()
        return token

    def get(self, token: str) -> DryRunSession:
        key = str(token or "").strip()
        now = self._clock()
        with self._lock:
            return self._live_entry(key, now)

    def consume(self, token: str) -> DryRunSession:
        """Return and remove the session in one step; a second caller gets TokenNotFoundError."""
        key = str(token or "").strip()
        now = self._clock()
        with self._lock:
            session = self._live_entry(key, now)
            self._entries.pop(key, None)
            return session

    def discard(self, token: str) -> None:
        key = str(token or "").strip()
        if not key:
            return
        with self._lock:
            self._entries.pop(key, None)

    def _is_expired(self, created: float, now: float) -> bool:
        return (now - created) >= self._ttl_seconds

    def _live_entry(self, key: str, now: float) -> DryRunSession:
        entry = self._entries.get(key) if key else None
        if entry is None:
            raise TokenNotFoundError(key)
        created, session = entry
        if self._is_expired(created, now):
            self._entries.pop(key, None)
            raise TokenNotFoundError(key)
        return session

    def _sweep(self, now: float) -> None:
        expired = [token for token, (created, _) in self._entries.items() if self._is_expired(created, now)]
        for token in expired:
            self._entries.pop(token, None)
        if expired:
            LOGGER.debug(
                "Expired %s dry-run session(s).",
                len(expired),
                extra={"event": "dry_run_session_evicted", "reason": "ttl", "count": len(expired)},
            )

    def _evict_over_capacity(self) -> None:
        while len(self._entries) > self._max_sessions:
            self._entries.popitem(last=False)
            LOGGER.info(
                "Evicted oldest dry-run session to stay within capacity.",
                extra={"event": "dry_run_session_evicted", "reason": "capacity", "max_sessions": self._max_sessions},
            )

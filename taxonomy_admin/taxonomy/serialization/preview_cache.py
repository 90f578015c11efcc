"""
Process-local retention of import previews between the preview and commit
requests of the HTTP surface.
"""

from __future__ import annotations

import secrets
import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from .importer import ImportPreview


class ImportPreviewCache:
    """Class-level TTL cache of previews keyed by an opaque token"""

    _cache: Dict[str, Tuple[datetime, ImportPreview]] = {}
    _cache_ttl_seconds = 900  # 15 minutes
    _lock = threading.Lock()

    @classmethod
    def configure(cls, ttl_seconds: int) -> None:
        cls._cache_ttl_seconds = int(ttl_seconds)

    @classmethod
    def _is_cache_valid(cls, cached_time: datetime) -> bool:
        age = datetime.now(timezone.utc) - cached_time
        return age.total_seconds() < cls._cache_ttl_seconds

    @classmethod
    def _purge_expired(cls) -> None:
        # Caller holds _lock.
        expired = [token for token, (cached_time, _) in cls._cache.items() if not cls._is_cache_valid(cached_time)]
        for token in expired:
            del cls._cache[token]

    @classmethod
    def store(cls, preview: ImportPreview) -> str:
        token = secrets.token_urlsafe(16)
        with cls._lock:
            cls._purge_expired()
            cls._cache[token] = (datetime.now(timezone.utc), preview)
        return token

    @classmethod
    def get(cls, token: str) -> Optional[ImportPreview]:
        with cls._lock:
            cls._purge_expired()
            entry = cls._cache.get(token)
        return entry[1] if entry else None

    @classmethod
    def discard(cls, token: str) -> bool:
        with cls._lock:
            return cls._cache.pop(token, None) is not None

    @classmethod
    def clear(cls) -> None:
        with cls._lock:
            cls._cache.clear()

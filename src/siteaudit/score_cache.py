"""
Deterministic score cache.

Maps a WebsiteSignature to previously computed section scores so that
re-auditing unchanged content returns bit-identical scores. A hit requires
exact equality of the content and structure digests and an unexpired entry;
expired entries are evicted lazily on lookup.

Storage is injected through the ScoreStore interface: InMemoryScoreStore
(process-wide dict) by default, SqliteScoreStore when scores must survive
restarts.
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

from siteaudit.constants import CACHE_TTL_DAYS, SCORING_VERSION
from siteaudit.models import ScoreCacheEntry, WebsiteSignature
from siteaudit.scoring import calculate_overall_score

logger = logging.getLogger(__name__)


class ScoreStore(ABC):
    """Key-value storage for score cache entries."""

    @abstractmethod
    def get(self, key: str) -> Optional[ScoreCacheEntry]:
        """Return the entry stored under key, if any."""

    @abstractmethod
    def put(self, key: str, entry: ScoreCacheEntry) -> None:
        """Insert or replace the entry under key."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns True if it existed."""

    @abstractmethod
    def items(self) -> Iterator[tuple[str, ScoreCacheEntry]]:
        """Iterate over a snapshot of all entries."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries."""

    def __len__(self) -> int:
        return sum(1 for _ in self.items())


class InMemoryScoreStore(ScoreStore):
    """Dict-backed store; lives as long as the process."""

    def __init__(self):
        self._entries: dict[str, ScoreCacheEntry] = {}

    def get(self, key: str) -> Optional[ScoreCacheEntry]:
        return self._entries.get(key)

    def put(self, key: str, entry: ScoreCacheEntry) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def items(self) -> Iterator[tuple[str, ScoreCacheEntry]]:
        return iter(list(self._entries.items()))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class SqliteScoreStore(ScoreStore):
    """SQLite-backed store; entries are serialized as JSON."""

    _SCHEMA = """
    CREATE TABLE IF NOT EXISTS score_cache (
        key TEXT PRIMARY KEY,
        content_hash TEXT NOT NULL,
        structure_hash TEXT NOT NULL,
        payload TEXT NOT NULL,
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_score_cache_expires_at ON score_cache(expires_at);
    """

    def __init__(self, db_path: Path):
        """
        Initialize the store.

        Args:
            db_path: SQLite database file (":memory:" for a private in-memory db)
        """
        self.db_path = db_path
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(self._SCHEMA)
        self._conn.commit()

    def get(self, key: str) -> Optional[ScoreCacheEntry]:
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM score_cache WHERE key = ?", (key,)
            ).fetchone()
        if not row:
            return None
        return ScoreCacheEntry.from_dict(json.loads(row["payload"]))

    def put(self, key: str, entry: ScoreCacheEntry) -> None:
        with self._lock:
            self._conn.execute(
                """INSERT OR REPLACE INTO score_cache
                   (key, content_hash, structure_hash, payload, created_at, expires_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    key,
                    entry.signature.content_hash,
                    entry.signature.structure_hash,
                    json.dumps(entry.to_dict()),
                    entry.created_at.isoformat(),
                    entry.expires_at.isoformat(),
                )
            )
            self._conn.commit()

    def delete(self, key: str) -> bool:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM score_cache WHERE key = ?", (key,))
            self._conn.commit()
            return cursor.rowcount > 0

    def items(self) -> Iterator[tuple[str, ScoreCacheEntry]]:
        with self._lock:
            rows = self._conn.execute("SELECT key, payload FROM score_cache").fetchall()
        return iter([
            (row["key"], ScoreCacheEntry.from_dict(json.loads(row["payload"])))
            for row in rows
        ])

    def clear(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM score_cache")
            self._conn.commit()

    def __len__(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM score_cache").fetchone()[0]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()


class ScoreCache:
    """Signature-keyed cache of section scores with a fixed TTL.

    Safe for concurrent use from threads and tasks; entries are independent
    so one lock around each operation is sufficient.
    """

    def __init__(
        self,
        store: Optional[ScoreStore] = None,
        ttl_days: int = CACHE_TTL_DAYS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the cache.

        Args:
            store: Backing store (default: InMemoryScoreStore)
            ttl_days: Days an entry stays valid
            clock: Source of the current time
        """
        self.store = store if store is not None else InMemoryScoreStore()
        self.ttl = timedelta(days=ttl_days)
        self._clock = clock
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, signature: WebsiteSignature) -> Optional[ScoreCacheEntry]:
        """
        Look up scores for a signature.

        Args:
            signature: Signature of the current analysis

        Returns:
            The cached entry, or None on a miss or expiry
        """
        key = signature.cache_key
        with self._lock:
            entry = self.store.get(key)
            if entry is None or not self._matches(entry.signature, signature):
                self._misses += 1
                logger.debug(f"Score cache miss: {key[:16]}...")
                return None

            if entry.is_expired(self._clock()):
                self.store.delete(key)
                self._evictions += 1
                self._misses += 1
                logger.info(f"Score cache entry expired and evicted: {key[:16]}...")
                return None

            self._hits += 1
            logger.info(f"Score cache hit: {key[:16]}... (overall={entry.overall_score})")
            return entry

    def put(
        self,
        signature: WebsiteSignature,
        scores: Sequence[float],
        sections: Optional[list[dict]] = None,
        methodology: str = SCORING_VERSION,
        overall_score: Optional[float] = None,
        evidence: Optional[dict] = None,
    ) -> ScoreCacheEntry:
        """
        Store scores for a signature, replacing any previous entry.

        Args:
            signature: Signature of the scored analysis
            scores: Section scores in standard section order
            sections: Full section details (titles, findings)
            methodology: Scoring methodology version
            overall_score: Overall score; computed from the standard weights when omitted
            evidence: Supporting data to keep alongside the scores

        Returns:
            The stored entry
        """
        if overall_score is None:
            overall_score = calculate_overall_score(scores)

        now = self._clock()
        entry = ScoreCacheEntry(
            signature=signature,
            section_scores=list(scores),
            overall_score=overall_score,
            methodology_version=methodology,
            expires_at=now + self.ttl,
            sections=list(sections or []),
            evidence=dict(evidence or {}),
            created_at=now,
        )
        with self._lock:
            self.store.put(signature.cache_key, entry)
        logger.info(f"Cached scores for {signature.cache_key[:16]}... until {entry.expires_at:%Y-%m-%d}")
        return entry

    def invalidate(self, signature: WebsiteSignature) -> bool:
        """Remove the entry for a signature. Returns True if one existed."""
        with self._lock:
            return self.store.delete(signature.cache_key)

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count removed."""
        now = self._clock()
        removed = 0
        with self._lock:
            for key, entry in self.store.items():
                if entry.is_expired(now):
                    self.store.delete(key)
                    removed += 1
            self._evictions += removed
        if removed:
            logger.info(f"Removed {removed} expired score cache entries")
        return removed

    def clear(self) -> None:
        """Remove every entry and reset statistics."""
        with self._lock:
            self.store.clear()
            self._hits = self._misses = self._evictions = 0

    def stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with entry count, hits, misses, hit rate and entry ages
        """
        now = self._clock()
        with self._lock:
            entries = [entry for _, entry in self.store.items()]
            lookups = self._hits + self._misses
            ages = [(now - entry.created_at).total_seconds() / 86400 for entry in entries]
            return {
                'entries': len(entries),
                'expired_entries': sum(1 for entry in entries if entry.is_expired(now)),
                'hits': self._hits,
                'misses': self._misses,
                'evictions': self._evictions,
                'hit_rate': round(self._hits / lookups * 100, 1) if lookups else 0.0,
                'average_age_days': round(sum(ages) / len(ages), 2) if ages else 0.0,
                'ttl_days': self.ttl.days,
            }

    @staticmethod
    def _matches(cached: WebsiteSignature, current: WebsiteSignature) -> bool:
        return (
            cached.content_hash == current.content_hash
            and cached.structure_hash == current.structure_hash
        )

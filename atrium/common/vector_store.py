"""
Vector Store

Namespaced text index with upsert semantics. Each workspace gets its own
namespace, so a search can never return another tenant's entries.

Interface:
- add(namespace, key, text, filter_tags) -> entry_id   (upsert on key)
- search(namespace, query, filters, limit, score_threshold) -> [VectorHit]
"""

import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .embedding_service import EmbeddingService, batch_cosine_similarity, normalize_rows

logger = logging.getLogger("atrium.common.vector_store")


@dataclass
class VectorHit:
    """A single match from the vector store"""
    entry_id: str
    key: str
    text: str
    score: float
    filter_tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class _StoredEntry:
    entry_id: str
    key: str
    text: str
    filter_tags: Dict[str, str]
    vector: np.ndarray


class VectorStore(ABC):
    """Abstract namespaced vector store."""

    @abstractmethod
    def add(self, namespace: str, key: str, text: str, filter_tags: Dict[str, str]) -> str:
        """Insert or replace the entry stored under (namespace, key)."""

    @abstractmethod
    def search(
        self,
        namespace: str,
        query: str,
        filters: Optional[Dict[str, str]] = None,
        limit: int = 10,
        score_threshold: float = 0.0,
    ) -> List[VectorHit]:
        """Return hits in ``namespace`` matching every filter, best first."""

    @abstractmethod
    def delete(self, namespace: str, key: str) -> bool:
        """Remove an entry. Returns False if it did not exist."""

    @abstractmethod
    def count(self, namespace: str) -> int:
        """Number of entries in a namespace."""


class InMemoryVectorStore(VectorStore):
    """
    Brute-force cosine similarity store backed by numpy.

    Optionally snapshots to a JSON file after every write so the index
    survives restarts. Namespaces are guarded by a lock; embedding and
    scoring run outside it.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        snapshot_path: Optional[Path] = None,
    ):
        """
        Initialize vector store.

        Args:
            embedding_service: Embeds entry text and queries
            snapshot_path: Optional JSON file for persistence
        """
        self._embedding = embedding_service
        self._snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._namespaces: Dict[str, Dict[str, _StoredEntry]] = {}
        self._lock = threading.RLock()
        self._load_snapshot()

    def add(self, namespace: str, key: str, text: str, filter_tags: Dict[str, str]) -> str:
        vector = normalize_rows(np.asarray(self._embedding.embed_single(text), dtype=np.float32))[0]

        with self._lock:
            entries = self._namespaces.setdefault(namespace, {})
            existing = entries.get(key)
            entry_id = existing.entry_id if existing else uuid.uuid4().hex

            entries[key] = _StoredEntry(
                entry_id=entry_id,
                key=key,
                text=text,
                filter_tags=dict(filter_tags),
                vector=vector,
            )
            self._save_snapshot()
        return entry_id

    def search(
        self,
        namespace: str,
        query: str,
        filters: Optional[Dict[str, str]] = None,
        limit: int = 10,
        score_threshold: float = 0.0,
    ) -> List[VectorHit]:
        if limit <= 0:
            return []

        filters = filters or {}
        with self._lock:
            candidates = [
                entry for entry in self._namespaces.get(namespace, {}).values()
                if all(entry.filter_tags.get(name) == value for name, value in filters.items())
            ]
        if not candidates:
            return []

        query_vec = self._embedding.embed_single(query)
        scores = batch_cosine_similarity(query_vec, [entry.vector for entry in candidates])

        hits = [
            VectorHit(
                entry_id=entry.entry_id,
                key=entry.key,
                text=entry.text,
                score=float(score),
                filter_tags=dict(entry.filter_tags),
            )
            for entry, score in zip(candidates, scores)
            if score >= score_threshold
        ]
        hits.sort(key=lambda h: (-h.score, h.key))
        return hits[:limit]

    def delete(self, namespace: str, key: str) -> bool:
        with self._lock:
            entries = self._namespaces.get(namespace, {})
            if key not in entries:
                return False
            del entries[key]
            self._save_snapshot()
        return True

    def count(self, namespace: str) -> int:
        with self._lock:
            return len(self._namespaces.get(namespace, {}))

    def _load_snapshot(self) -> None:
        """Load entries from the snapshot file, if any"""
        if not self._snapshot_path or not self._snapshot_path.exists():
            return

        try:
            with open(self._snapshot_path) as f:
                data = json.load(f)

            for namespace, entries in data.items():
                self._namespaces[namespace] = {
                    item["key"]: _StoredEntry(
                        entry_id=item["entry_id"],
                        key=item["key"],
                        text=item["text"],
                        filter_tags=item.get("filter_tags", {}),
                        vector=np.asarray(item["vector"], dtype=np.float32),
                    )
                    for item in entries
                }
        except (json.JSONDecodeError, IOError, KeyError) as e:
            logger.warning("Failed to load vector snapshot %s: %s", self._snapshot_path, e)
            self._namespaces = {}

    def _save_snapshot(self) -> None:
        """Write all namespaces to the snapshot file. Callers hold the lock."""
        if not self._snapshot_path:
            return

        self._snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            namespace: [
                {
                    "entry_id": entry.entry_id,
                    "key": entry.key,
                    "text": entry.text,
                    "filter_tags": entry.filter_tags,
                    "vector": entry.vector.tolist(),
                }
                for entry in entries.values()
            ]
            for namespace, entries in self._namespaces.items()
        }
        with open(self._snapshot_path, "w") as f:
            json.dump(data, f)

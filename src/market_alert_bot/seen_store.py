"""
Seen Store (bounded in-memory cache + JSON snapshot)

Purpose
-------
Remember entries we've already alerted on so the same article (or a
republished headline) does not produce a second alert.

Design
------
- SeenSet: insertion-ordered ids, capacity N.  When an insert pushes the
  size past N the store keeps only the newest N // 2 ids.  Eviction is a
  bulk halving by insertion order, not LRU; lookups never reorder ids.
- RecentTitles: normalized title -> last-seen epoch seconds.  Titles older
  than the window are dropped lazily while checking similarity.
- Snapshot: the SeenSet only, as a JSON array of strings.  Load and save
  are best-effort; failures are logged and never raised to the caller.

Env
---
CACHE_FILE             (default: ".article_cache.json")
MAX_CACHE_SIZE         (default: "1000")
TITLE_WINDOW_SECONDS   (default: "3600")
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from .logging_utils import get_logger

log = get_logger("seen_store")

PathLike = Union[str, Path]


def normalize_title(title: Optional[str]) -> str:
    return (title or "").lower().strip()


@dataclass
class SeenStoreConfig:
    capacity: int = 1000
    title_window_seconds: float = 3600.0


class SeenStore:
    def __init__(
        self,
        config: Optional[SeenStoreConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cfg = config or SeenStoreConfig()
        if self.cfg.capacity < 2:
            raise ValueError("capacity must be at least 2")
        self._clock = clock
        # dicts preserve insertion order; values unused
        self._seen: Dict[str, None] = {}
        self._titles: Dict[str, float] = {}
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, item_id: str) -> bool:
        return self.has(item_id)

    def has(self, item_id: str) -> bool:
        return item_id in self._seen

    def ids(self) -> list[str]:
        """Seen ids, oldest first."""
        return list(self._seen)

    def is_similar_title(self, title: str) -> bool:
        """True when ``title`` contains, or is contained in, a live recent title.

        Entries whose age exceeds the window are purged during the scan.
        """
        normalized = normalize_title(title)
        now = self._clock()
        window = self.cfg.title_window_seconds
        similar = False
        for cached, ts in list(self._titles.items()):
            if now - ts > window:
                del self._titles[cached]
                continue
            if not normalized:
                continue
            if normalized in cached or cached in normalized:
                similar = True
                break
        return similar

    def record(self, item_id: str, title: str) -> None:
        """Remember an alerted entry by id and by normalized title."""
        if item_id not in self._seen:
            self._seen[item_id] = None
        normalized = normalize_title(title)
        if normalized:
            self._titles[normalized] = self._clock()

        if len(self._seen) > self.cfg.capacity:
            before = len(self._seen)
            keep = self.cfg.capacity // 2
            self._seen = dict.fromkeys(list(self._seen)[-keep:])
            self._evictions += 1
            log.info("seen_store_evicted before=%d after=%d", before, len(self._seen))

    def stats(self) -> dict:
        return {
            "size": len(self._seen),
            "capacity": self.cfg.capacity,
            "recent_titles": len(self._titles),
            "evictions": self._evictions,
        }

    # ------------------------------------------------------------------
    # Snapshot persistence
    # ------------------------------------------------------------------

    def load_snapshot(self, path: PathLike) -> int:
        """Prime the SeenSet from a JSON array file.  Returns ids loaded.

        A missing file is normal on first boot.  Unreadable or malformed
        snapshots are logged and leave the store empty.
        """
        p = Path(path)
        try:
            if not p.exists():
                log.info("snapshot_missing path=%s", p)
                return 0
            with p.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        except (OSError, ValueError) as e:
            log.warning("snapshot_load_failed path=%s err=%s", p, str(e))
            self._seen = {}
            return 0

        ids = [str(x) for x in data if isinstance(x, (str, int)) and str(x)]
        # keep the newest ids when a snapshot outgrew the configured capacity
        if len(ids) > self.cfg.capacity:
            ids = ids[-self.cfg.capacity :]
        self._seen = dict.fromkeys(ids)
        log.info("snapshot_loaded path=%s count=%d", p, len(self._seen))
        return len(self._seen)

    def save_snapshot(self, path: PathLike) -> bool:
        """Write the SeenSet as a JSON array.  Returns False on failure."""
        p = Path(path)
        tmp_name = None
        try:
            if p.parent and not p.parent.exists():
                p.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{p.name}.", suffix=".tmp", dir=str(p.parent or ".")
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(list(self._seen), fh)
            os.replace(tmp_name, p)
            tmp_name = None
            log.info("snapshot_saved path=%s count=%d", p, len(self._seen))
            return True
        except OSError as e:
            log.error("snapshot_save_failed path=%s err=%s", p, str(e))
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

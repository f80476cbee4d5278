"""
On-disk snapshot of the balances cache.

Written after the startup sweep and on shutdown; read at startup so a
restart can serve circulating supply without a cold fetch of every balance.
Restored balances stay stale, so the poll loops still refresh them.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field, ValidationError

from .cache import CacheFeed, CacheStore

logger = logging.getLogger("snapshot")


class Snapshot(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    cache: Dict[str, int] = {}


def take_cache_snapshot(store: CacheStore, path: Path) -> Snapshot:
    """Write the current balances to ``path``."""
    snapshot = Snapshot(cache=dict(store.read(CacheFeed.BALANCES)))
    path = Path(path)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(snapshot.model_dump_json(), encoding="utf-8")
    tmp_path.replace(path)
    logger.info(f"Wrote snapshot of {len(snapshot.cache)} balances to {path}")
    return snapshot


def try_load_snapshot(store: CacheStore, path: Path) -> bool:
    """
    Restore balances from ``path`` if it exists.

    Returns:
        True if a snapshot was loaded
    """
    path = Path(path)
    if not path.exists():
        return False

    try:
        snapshot = Snapshot.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable snapshot {path}: {e}")
        return False

    store.seed(CacheFeed.BALANCES, snapshot.cache)
    logger.info(
        f"Loaded {len(snapshot.cache)} balances from snapshot taken at "
        f"{snapshot.timestamp.isoformat()}"
    )
    return True

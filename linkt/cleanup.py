"""
Reclamation of expired shares.

`sweep` is the unit of work behind the cleanup endpoint; `cleanup_loop`
optionally repeats it from inside the app.
"""
import asyncio
import logging
from dataclasses import dataclass

import aiosqlite

from linkt.expiry import TTL, is_expired
from linkt.store import ShareStore

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    deleted: int = 0
    total: int = 0


async def sweep(store: ShareStore) -> SweepResult:
    """
    Delete every artifact older than the TTL.

    Best-effort: an artifact that fails for any reason (vanished,
    permission error, unreadable index row) is logged and skipped, and
    the counts cover what did succeed. `total` counts every artifact
    enumerated, deleted or not.
    """
    result = SweepResult()
    now = store.now()

    for artifact in store.list_entries():
        result.total += 1
        try:
            created = await store.created_at(artifact)
            if is_expired(created, now):
                if await store.delete(artifact):
                    result.deleted += 1
        except Exception as e:
            logger.warning(f"Error processing {artifact.filename}: {e}", exc_info=True)

    try:
        pruned = await store.prune_index(now - TTL)
        if pruned:
            logger.debug(f"Pruned {pruned} dangling index rows")
    except aiosqlite.Error as e:
        logger.warning(f"Index prune failed: {e}")

    logger.info(f"Cleanup completed. Deleted {result.deleted} of {result.total} files.")
    return result


async def cleanup_loop(store: ShareStore, interval: float):
    """Run sweep every `interval` seconds until cancelled."""
    while True:
        try:
            await sweep(store)
        except Exception:
            logger.exception("Cleanup error")
        await asyncio.sleep(interval)

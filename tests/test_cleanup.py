import asyncio
import os

from conftest import make_store, stored_files
import linkt.cleanup
from linkt.cleanup import SweepResult, cleanup_loop, sweep
from linkt.database import get_db


def _seed(store, clock):
    asyncio.run(store.put_file("AAAAAA", b"old file", "image/png"))
    asyncio.run(store.put_text("BBBBBB", "old text", "text"))
    clock.advance(hours=23)
    asyncio.run(store.put_file("CCCCCC", b"new file", "application/pdf"))
    clock.advance(hours=2)


def test_sweep_deletes_only_expired_entries(store, clock):
    _seed(store, clock)

    result = asyncio.run(sweep(store))

    assert result == SweepResult(deleted=2, total=3)
    assert stored_files(store) == ["files/CCCCCC.pdf"]


def test_sweep_is_idempotent(store, clock):
    _seed(store, clock)

    first = asyncio.run(sweep(store))
    second = asyncio.run(sweep(store))

    assert first.deleted == 2
    assert second == SweepResult(deleted=0, total=1)


def test_sweep_with_absent_backing_location(store):
    assert not store.root.exists()
    assert asyncio.run(sweep(store)) == SweepResult(deleted=0, total=0)


def test_sweep_continues_past_per_entry_failures(store, clock, monkeypatch):
    _seed(store, clock)
    original_delete = store.delete

    async def flaky_delete(artifact):
        if artifact.code == "AAAAAA":
            raise PermissionError("read-only")
        return await original_delete(artifact)

    monkeypatch.setattr(store, "delete", flaky_delete)

    result = asyncio.run(sweep(store))

    assert result == SweepResult(deleted=1, total=3)
    assert stored_files(store) == ["files/AAAAAA.png", "files/CCCCCC.pdf"]


def test_sweep_does_not_count_concurrently_removed_entries(store, clock, monkeypatch):
    _seed(store, clock)
    original_delete = store.delete

    async def racing_delete(artifact):
        artifact.path.unlink()
        return await original_delete(artifact)

    monkeypatch.setattr(store, "delete", racing_delete)

    result = asyncio.run(sweep(store))
    assert result == SweepResult(deleted=0, total=3)


def test_sweep_ages_unindexed_artifacts_by_mtime(tmp_path):
    store = make_store(tmp_path)
    store.files_dir.mkdir(parents=True)
    stale = store.files_dir / "ABC123.bin"
    fresh = store.files_dir / "DEF456.bin"
    stale.write_bytes(b"x")
    fresh.write_bytes(b"y")
    two_days_ago = stale.stat().st_mtime - 2 * 24 * 3600
    os.utime(stale, (two_days_ago, two_days_ago))

    result = asyncio.run(sweep(store))

    assert result == SweepResult(deleted=1, total=2)
    assert stored_files(store) == ["files/DEF456.bin"]


def test_sweep_prunes_dangling_index_rows(store, clock):
    asyncio.run(store.put_text("ABC123", "hello", "text"))
    (store.text_dir / "ABC123.txt").unlink()
    clock.advance(hours=25)

    asyncio.run(sweep(store))

    assert asyncio.run(store.exists("ABC123")) is False


async def _corrupt_created_at(store, code):
    db = await get_db(store.database_path)
    try:
        await db.execute("UPDATE shares SET created_at = 'garbage' WHERE code = ?", (code,))
        await db.commit()
    finally:
        await db.close()


def test_sweep_skips_entry_with_unreadable_index_row(store, clock):
    asyncio.run(store.put_file("AAAAAA", b"old file", "image/png"))
    asyncio.run(store.put_text("BBBBBB", "old text", "text"))
    asyncio.run(_corrupt_created_at(store, "AAAAAA"))
    clock.advance(hours=25)

    result = asyncio.run(sweep(store))

    assert result == SweepResult(deleted=1, total=2)
    assert stored_files(store) == ["files/AAAAAA.png"]


def test_cleanup_loop_repeats_sweep_until_cancelled(store, monkeypatch):
    calls = []

    async def run():
        ran_twice = asyncio.Event()

        async def counting_sweep(target):
            calls.append(target)
            if len(calls) == 1:
                raise OSError("transient")
            ran_twice.set()
            return SweepResult()

        monkeypatch.setattr(linkt.cleanup, "sweep", counting_sweep)
        task = asyncio.create_task(cleanup_loop(store, 0))
        await asyncio.wait_for(ran_twice.wait(), timeout=5)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return task

    task = asyncio.run(run())
    assert task.cancelled()
    assert calls[:2] == [store, store]

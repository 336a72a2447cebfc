"""Tests for the SQLite cache store."""

import sqlite3

import aiosqlite
import pytest

from price_monitor.cache.store import (
    LAST_UPDATE_KEY,
    CacheStore,
    SqliteCacheStore,
    record_id,
)
from price_monitor.core.exceptions import CacheError
from price_monitor.core.models import SYNTHETIC_SOURCE, Period, PricePoint


class TestSchema:
    async def test_initialize_creates_collections(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "cache.db"
        store = SqliteCacheStore(str(path))
        await store.initialize()

        assert path.exists()
        with sqlite3.connect(path) as conn:
            tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
            indexes = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")}
        assert {"historical_data", "metadata", "refresh_cycles"} <= tables
        assert {"idx_historical_period", "idx_historical_timestamp"} <= indexes

    async def test_initialize_is_idempotent(self, store):
        await store.initialize()
        assert await store.get_series(Period.MONTH) == []

    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(SqliteCacheStore(str(tmp_path / "x.db")), CacheStore)

    def test_record_id(self):
        assert record_id(Period.WEEK, 1700000000000) == "week_1700000000000"


class TestSeries:
    async def test_empty_period_returns_empty_list(self, store):
        assert await store.get_series(Period.INTRADAY) == []

    async def test_put_then_get_returns_sorted(self, store, make_points):
        points = make_points(5)
        written = await store.put_series(Period.WEEK, list(reversed(points)))
        assert written == 5
        assert await store.get_series(Period.WEEK) == points

    async def test_put_replaces_not_merges(self, store, make_points):
        older = make_points(10, start_price=400.0)
        newer = make_points(3, start_price=600.0)
        await store.put_series(Period.MONTH, older)
        await store.put_series(Period.MONTH, newer)

        stored = await store.get_series(Period.MONTH)
        assert stored == newer
        assert all(p.price >= 600.0 for p in stored)

    async def test_put_is_idempotent(self, store, make_points):
        points = make_points(7)
        await store.put_series(Period.WEEK, points)
        first = await store.get_series(Period.WEEK)
        await store.put_series(Period.WEEK, points)
        second = await store.get_series(Period.WEEK)
        assert first == second
        assert len(second) == 7

    async def test_periods_are_independent(self, store, make_points):
        await store.put_series(Period.WEEK, make_points(7))
        await store.put_series(Period.MONTH, make_points(30))
        await store.put_series(Period.WEEK, make_points(2))

        assert len(await store.get_series(Period.WEEK)) == 2
        assert len(await store.get_series(Period.MONTH)) == 30

    async def test_same_timestamp_in_two_periods(self, store, make_points):
        points = make_points(3)
        await store.put_series(Period.WEEK, points)
        await store.put_series(Period.MONTH, points)
        assert await store.get_series(Period.WEEK) == points
        assert await store.get_series(Period.MONTH) == points

    async def test_source_is_preserved(self, store, make_points):
        await store.put_series(Period.WEEK, make_points(2, source="polygon"))
        assert {p.source for p in await store.get_series(Period.WEEK)} == {"polygon"}

    async def test_empty_put_clears_period(self, store, make_points):
        await store.put_series(Period.WEEK, make_points(4))
        assert await store.put_series(Period.WEEK, []) == 0
        assert await store.get_series(Period.WEEK) == []

    async def test_refuses_synthetic_points(self, store, make_points):
        await store.put_series(Period.WEEK, make_points(4))
        with pytest.raises(CacheError, match="synthetic") as exc_info:
            await store.put_series(Period.WEEK, make_points(7, source=SYNTHETIC_SOURCE))
        assert exc_info.value.context["operation"] == "put_series"
        # existing real data is untouched
        assert len(await store.get_series(Period.WEEK)) == 4

    async def test_failed_write_rolls_back(self, store, make_points, monkeypatch):
        original = make_points(4)
        await store.put_series(Period.MONTH, original)

        async def boom(self, *args, **kwargs):
            raise aiosqlite.OperationalError("disk I/O error")

        monkeypatch.setattr(aiosqlite.Connection, "executemany", boom)
        with pytest.raises(CacheError) as exc_info:
            await store.put_series(Period.MONTH, make_points(9))
        assert exc_info.value.context == {"operation": "put_series", "table": "historical_data"}

        monkeypatch.undo()
        assert await store.get_series(Period.MONTH) == original

    async def test_count_by_period(self, store, make_points):
        await store.put_series(Period.INTRADAY, make_points(5))
        await store.put_series(Period.MONTH, make_points(30))
        counts = await store.count_by_period()
        assert counts == {Period.INTRADAY: 5, Period.WEEK: 0, Period.MONTH: 30}


class TestMetadata:
    async def test_absent_last_update(self, store):
        assert await store.get_last_update_time() is None

    async def test_set_then_get(self, store):
        await store.set_last_update_time(1_700_000_000_000)
        assert await store.get_last_update_time() == 1_700_000_000_000

    async def test_set_overwrites(self, store, tmp_path):
        await store.set_last_update_time(1)
        await store.set_last_update_time(2)
        assert await store.get_last_update_time() == 2
        with sqlite3.connect(store.path) as conn:
            rows = conn.execute(
                "SELECT COUNT(*) FROM metadata WHERE key = ?", (LAST_UPDATE_KEY,)
            ).fetchone()
        assert rows[0] == 1

    async def test_non_numeric_last_update_raises_cache_error(self, store):
        await store.initialize()
        with sqlite3.connect(store.path) as conn:
            conn.execute(
                "INSERT INTO metadata (key, value) VALUES (?, ?)", (LAST_UPDATE_KEY, "yesterday")
            )
        with pytest.raises(CacheError) as exc_info:
            await store.get_last_update_time()
        assert exc_info.value.context["operation"] == "get_last_update_time"


class TestRefreshCycles:
    DAY_MS = 24 * 60 * 60 * 1000

    async def test_empty_ledger(self, store):
        assert await store.count_cycles_since(0) == 0

    async def test_counts_strictly_after(self, store):
        for started in (1_000, 2_000, 3_000):
            await store.record_cycle(started)
        assert await store.count_cycles_since(0) == 3
        assert await store.count_cycles_since(1_000) == 2
        assert await store.count_cycles_since(3_000) == 0

    async def test_old_entries_are_pruned(self, store):
        now = 10 * self.DAY_MS
        await store.record_cycle(now - 3 * self.DAY_MS)
        await store.record_cycle(now)
        with sqlite3.connect(store.path) as conn:
            rows = conn.execute("SELECT started_at FROM refresh_cycles").fetchall()
        assert rows == [(now,)]

    async def test_survives_clear(self, store):
        await store.record_cycle(5_000)
        await store.clear()
        assert await store.count_cycles_since(0) == 1

    async def test_shared_between_store_instances(self, store):
        await store.record_cycle(5_000)
        other = SqliteCacheStore(store.path)
        assert await other.count_cycles_since(0) == 1


class TestMaintenance:
    async def test_clear(self, store, make_points):
        await store.put_series(Period.WEEK, make_points(3))
        await store.set_last_update_time(123)
        await store.clear()
        assert await store.get_series(Period.WEEK) == []
        assert await store.get_last_update_time() is None

    async def test_health_check(self, store):
        assert await store.health_check() is True

    async def test_unwritable_path_raises_cache_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = SqliteCacheStore(str(blocker / "cache.db"))
        with pytest.raises(CacheError) as exc_info:
            await store.initialize()
        assert exc_info.value.context["operation"] == "initialize"

    async def test_health_check_false_when_unusable(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = SqliteCacheStore(str(blocker / "cache.db"))
        assert await store.health_check() is False

    async def test_corrupt_file_raises_cache_error(self, tmp_path):
        path = tmp_path / "corrupt.db"
        path.write_bytes(b"this is not a sqlite database" * 100)
        store = SqliteCacheStore(str(path))
        with pytest.raises(CacheError):
            await store.get_series(Period.WEEK)

    async def test_corrupt_row_raises_cache_error(self, store):
        await store.initialize()
        async with aiosqlite.connect(store.path) as db:
            await db.execute(
                "INSERT INTO historical_data (id, period, timestamp, price, date, source) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                ("month_1", "month", 1, -5.0, "x", "yahoo"),
            )
            await db.commit()

        with pytest.raises(CacheError, match="corrupt row") as exc_info:
            await store.get_series(Period.MONTH)
        assert exc_info.value.context == {
            "operation": "get_series",
            "table": "historical_data",
            "period": "month",
        }
        # other periods stay readable
        assert await store.get_series(Period.WEEK) == []

    async def test_point_roundtrip_types(self, store):
        point = PricePoint(timestamp=1_700_000_000_000, price=451.23, date="2023-11-14", source="iex")
        await store.put_series(Period.INTRADAY, [point])
        [loaded] = await store.get_series(Period.INTRADAY)
        assert loaded == point

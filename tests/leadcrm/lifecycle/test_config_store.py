"""Tests for leadcrm.lifecycle.config_store — TTL cache over remind config."""
import threading
from unittest.mock import MagicMock

import pytest

from leadcrm.lifecycle.config_store import ConfigStore, load_remind_config
from leadcrm.models.remind_config import FollowupRemindConfig


class FakeClock:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestSnapshot:

    def test_loads_on_first_read(self, clock):
        loader = MagicMock(return_value={'High': 3})
        store = ConfigStore(loader=loader, ttl=300, clock=clock)
        assert store.snapshot() == {'High': 3}
        loader.assert_called_once()

    def test_cached_within_ttl(self, clock):
        loader = MagicMock(return_value={'High': 3})
        store = ConfigStore(loader=loader, ttl=300, clock=clock)
        store.snapshot()
        clock.advance(299)
        store.snapshot()
        assert loader.call_count == 1

    def test_reloads_after_ttl(self, clock):
        loader = MagicMock(side_effect=[{'High': 3}, {'High': 5}])
        store = ConfigStore(loader=loader, ttl=300, clock=clock)
        assert store.snapshot() == {'High': 3}
        clock.advance(300)
        assert store.snapshot() == {'High': 5}
        assert loader.call_count == 2

    def test_snapshot_is_a_copy(self, clock):
        store = ConfigStore(loader=lambda: {'High': 3}, clock=clock)
        snap = store.snapshot()
        snap['High'] = 99
        assert store.snapshot() == {'High': 3}


class TestInvalidate:

    def test_forces_reload(self, clock):
        loader = MagicMock(side_effect=[{'Low': 14}, {'Low': 10}])
        store = ConfigStore(loader=loader, ttl=300, clock=clock)
        store.snapshot()
        store.invalidate()
        assert store.snapshot() == {'Low': 10}

    def test_invalidate_before_first_load_is_harmless(self, clock):
        store = ConfigStore(loader=lambda: {'Low': 14}, clock=clock)
        store.invalidate()
        assert store.snapshot() == {'Low': 14}

    def test_invalidate_during_reload_discards_loaded_rows(self, clock):
        rows = [{'Low': 14}, {'Low': 10}]

        def loader():
            values = rows.pop(0)
            # An admin write commits and invalidates while this read is in flight
            if not rows:
                return values
            store.invalidate()
            return values

        store = ConfigStore(loader=loader, ttl=300, clock=clock)
        assert store.snapshot() == {'Low': 14}
        assert store.snapshot() == {'Low': 10}
        assert rows == []


class TestLoaderFailures:

    def test_failure_without_cache_returns_empty(self, clock):
        store = ConfigStore(loader=MagicMock(side_effect=RuntimeError('db down')), clock=clock)
        assert store.snapshot() == {}

    def test_failure_is_not_cached(self, clock):
        loader = MagicMock(side_effect=[RuntimeError('db down'), {'High': 4}])
        store = ConfigStore(loader=loader, clock=clock)
        assert store.snapshot() == {}
        assert store.snapshot() == {'High': 4}

    def test_failure_with_cache_serves_stale(self, clock):
        loader = MagicMock(side_effect=[{'High': 3}, RuntimeError('db down')])
        store = ConfigStore(loader=loader, ttl=300, clock=clock)
        store.snapshot()
        clock.advance(600)
        assert store.snapshot() == {'High': 3}


class TestGetMaxIdleDays:

    def test_configured(self, clock):
        store = ConfigStore(loader=lambda: {'High': 2, 'Medium': 7}, clock=clock)
        assert store.get_max_idle_days('Medium') == 7

    def test_missing_level_falls_back(self, clock):
        store = ConfigStore(loader=lambda: {'High': 2}, clock=clock)
        assert store.get_max_idle_days('Medium') == 3


class TestConcurrentRefresh:

    def test_stale_readers_do_not_wait_for_refresh(self, clock):
        """While one thread reloads, others get the previous snapshot."""
        started = threading.Event()
        release = threading.Event()
        calls = []

        def loader():
            calls.append(1)
            if len(calls) == 2:
                started.set()
                release.wait(5)
                return {'High': 9}
            return {'High': 3}

        store = ConfigStore(loader=loader, ttl=300, clock=clock)
        store.snapshot()
        clock.advance(301)

        refresher = threading.Thread(target=store.snapshot)
        refresher.start()
        assert started.wait(5)
        assert store.snapshot() == {'High': 3}
        release.set()
        refresher.join(5)
        assert store.snapshot() == {'High': 9}
        assert len(calls) == 2


class TestLoadRemindConfig:

    def test_reads_rows_into_map(self, db_session, session_factory):
        db_session.add_all([
            FollowupRemindConfig(intention_level='High', interval_days=3),
            FollowupRemindConfig(intention_level='Low', interval_days=14),
        ])
        db_session.commit()
        assert load_remind_config(session_factory) == {'High': 3, 'Low': 14}

    def test_empty_table(self, session_factory):
        assert load_remind_config(session_factory) == {}

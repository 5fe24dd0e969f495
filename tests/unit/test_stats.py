#!/usr/bin/env python3
"""
Unit tests for cache statistics and event reporting
"""

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from model_cache.stats import CacheEvent, StatsCollector


class TestStatsCollector:

    @pytest.fixture
    def events(self):
        return []

    @pytest.fixture
    def delegate(self, events):
        def _delegate(event, details):
            events.append((event, details))
        return _delegate

    def test_counters_always_increment(self, events, delegate):
        stats = StatsCollector(verbose=False, delegate=delegate)

        stats.record("hit")
        stats.record("miss")
        stats.record(CacheEvent.LOAD)
        stats.record("purge")
        stats.record("hit")

        assert stats.counters == {"hit": 2, "miss": 1, "load": 1, "purge": 1}
        assert events == []

    def test_verbose_reports_every_event(self, events, delegate):
        stats = StatsCollector(verbose=True, delegate=delegate, sizes=lambda: {"User": 3})

        stats.record("hit", {"hash": "abc"})
        stats.record("init", {"type": "User"})

        assert [event for event, _ in events] == ["hit", "init"]
        details = events[0][1]
        assert details["hash"] == "abc"
        assert details["hit"] == 1
        assert details["ratio"] == 1.0
        assert details["size"] == {"User": 3}
        assert "init" not in stats.counters

    def test_ops_heartbeat_always_reported(self, events, delegate):
        stats = StatsCollector(verbose=False, delegate=delegate)

        stats.record("ops")

        assert [event for event, _ in events] == ["ops"]

    def test_ratio(self):
        stats = StatsCollector()
        assert stats.ratio == 0.0

        stats.record("hit")
        stats.record("hit")
        stats.record("hit")
        stats.record("miss")

        assert stats.ratio == 0.75
        assert stats.snapshot()["ratio"] == 0.75

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError):
            StatsCollector().record("bogus")

    def test_default_delegate_logs(self, caplog):
        stats = StatsCollector(verbose=True)

        with caplog.at_level(logging.DEBUG, logger="model_cache"):
            stats.record("miss", {"hash": "abc"})

        assert "CACHE MISS" in caplog.text

"""Shared fixtures for model cache tests."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest


class Clock:
    """Mutable wall clock patched over ``time.time``."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock(monkeypatch):
    fake = Clock()
    monkeypatch.setattr("time.time", fake)
    return fake


@pytest.fixture
def make_model():
    """Build a fake model whose operations are AsyncMocks."""

    def _make(name, associations=None, **members):
        model = SimpleNamespace(name=name, associations=associations or {})
        model.find_one = AsyncMock(return_value={"model": name, "id": 1})
        model.find_all = AsyncMock(return_value=[{"model": name, "id": 1}])
        model.count = AsyncMock(return_value=1)
        model.create = AsyncMock(return_value={"model": name, "id": 2})
        model.update = AsyncMock(return_value=[1])
        model.destroy = AsyncMock(return_value=1)
        model.associate = MagicMock(return_value=None)
        model.table_name = name.lower() + "s"
        for attr, value in members.items():
            setattr(model, attr, value)
        return model

    return _make

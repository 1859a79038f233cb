"""Shared fixtures for batchline tests."""

import pytest

from batchline import Source, register_source
from batchline.adapters import InMemoryAdapter


@pytest.fixture
def adapter():
    return InMemoryAdapter()


@pytest.fixture
def orders_source(adapter):
    """An in-memory source registered as "orders", owned by the "shop" app."""
    return register_source(Source(name="orders", adapter=adapter, otp_app="shop"))

"""
Pytest configuration for aggregator tests.

This module provides:
1. Async test support without pytest-asyncio
2. Collection fixtures for the organization-role scenarios
3. A controllable clock for timer tests
"""

import asyncio
import functools
from datetime import datetime, timedelta

import pytest

from aggregator.collection_store import Collection, CollectionStore
from aggregator.view_catalog import ORGANIZATION_ROLE_COLLECTIONS


# -----------------------------------------------------------------------------
# Async Test Support
# -----------------------------------------------------------------------------
def async_test(func):
    """
    Decorator to run async tests without pytest-asyncio.

    Usage:
        @async_test
        async def test_something(self):
            result = await some_async_function()
            assert result is not None
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return asyncio.run(func(*args, **kwargs))
    return wrapper


# -----------------------------------------------------------------------------
# Fake Clock
# -----------------------------------------------------------------------------
class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def fake_clock():
    """Clock starting at Sunday 2026-10-18 10:15:30."""
    return FakeClock(datetime(2026, 10, 18, 10, 15, 30))


# -----------------------------------------------------------------------------
# Collection Fixtures
# -----------------------------------------------------------------------------
def organization_role_collections(**overrides):
    """
    The Org A / alice scenario with every organization-role source connected.

    Keyword arguments replace individual collections.
    """
    collections = {
        "organizations": Collection.from_items([
            {"id": 1, "guid": "org-a", "name": "Org A"},
        ]),
        "users_cc": Collection.from_items([
            {"id": 10, "guid": "user-x"},
        ]),
        "users_uaa": Collection.from_items([
            {"id": "user-x", "username": "alice"},
        ]),
    }
    for name in ORGANIZATION_ROLE_COLLECTIONS:
        collections[name] = Collection.from_items([])
    collections["organizations_managers"] = Collection.from_items([
        {"organization_id": 1, "user_id": 10},
    ])
    collections.update(overrides)
    return collections


@pytest.fixture
def org_collections():
    return organization_role_collections()


@pytest.fixture
def platform_store():
    """Store holding a small but complete platform."""
    store = CollectionStore()
    store.publish("organizations", Collection.from_items([
        {"id": 1, "guid": "org-a", "name": "Org A"},
        {"id": 2, "guid": "org-b", "name": "Org B"},
    ]))
    store.publish("spaces", Collection.from_items([
        {"id": 100, "guid": "space-dev", "name": "dev", "organization_id": 1},
        {"id": 101, "guid": "space-prod", "name": "prod", "organization_id": 2},
    ]))
    store.publish("applications", Collection.from_items([
        {"id": 1000, "guid": "app-1", "name": "web", "state": "STARTED", "instances": 3, "space_id": 100},
        {"id": 1001, "guid": "app-2", "name": "worker", "state": "STOPPED", "instances": 2, "space_id": 101},
        {"id": 1002, "guid": "app-3", "name": "orphan", "state": "STARTED", "instances": 1, "space_id": 999},
    ]))
    store.publish("users_cc", Collection.from_items([
        {"id": 10, "guid": "user-x"},
        {"id": 11, "guid": "user-y"},
    ]))
    store.publish("users_uaa", Collection.from_items([
        {"id": "user-x", "username": "alice"},
        {"id": "user-y", "username": "bob"},
    ]))
    for name in ORGANIZATION_ROLE_COLLECTIONS:
        store.publish(name, Collection.from_items([]))
    store.publish("organizations_managers", Collection.from_items([
        {"organization_id": 1, "user_id": 10},
    ]))
    store.publish("organizations_users", Collection.from_items([
        {"organization_id": 1, "user_id": 10},
        {"organization_id": 2, "user_id": 11},
    ]))
    store.publish("spaces_auditors", Collection.from_items([]))
    store.publish("spaces_developers", Collection.from_items([
        {"space_id": 100, "user_id": 11},
    ]))
    store.publish("spaces_managers", Collection.from_items([
        {"space_id": 101, "user_id": 10},
    ]))
    return store

# tests/conftest.py
from __future__ import annotations
import os
import tempfile

# keep import-time logging out of the source tree
os.environ.setdefault("ASSET_DATA_ROOT", tempfile.mkdtemp(prefix="asset-intake-tests-"))

import pytest

from asset_intake.errors import PersistenceIOError
from asset_intake.models import SerialPatternIn
from asset_intake.services import (
    AssetRecordService, BatchIntakePipeline, BindingStore, CustomOptionsService,
    PatternRegistry, SkuPatternService,
)
from asset_intake.store import JsonFileStore


class FlakyCollection:
    """
    Wraps a collection and fails selected calls with PersistenceIOError.

    fail_queries: values for which query_by_field() fails
    fail_creates: values of `key` for which create() fails
    """

    def __init__(self, inner, key: str = "serial_number"):
        self.inner = inner
        self.key = key
        self.fail_queries = set()
        self.fail_creates = set()
        self.created = []

    def __getattr__(self, name):
        return getattr(self.inner, name)

    async def query_by_field(self, field, value):
        if value in self.fail_queries:
            raise PersistenceIOError(f"query {field}")
        return await self.inner.query_by_field(field, value)

    async def create(self, fields):
        self.created.append(fields.get(self.key))
        if fields.get(self.key) in self.fail_creates:
            raise PersistenceIOError("create")
        return await self.inner.create(fields)


class FlakyStore:
    """Document store whose collections can be swapped for FlakyCollection."""

    def __init__(self, inner):
        self.inner = inner
        self.overrides = {}

    def flaky(self, name: str, key: str = "serial_number") -> FlakyCollection:
        col = FlakyCollection(self.inner.collection(name), key)
        self.overrides[name] = col
        return col

    def collection(self, name):
        return self.overrides.get(name) or self.inner.collection(name)


@pytest.fixture
def json_store(tmp_path):
    return JsonFileStore(tmp_path / "store")


@pytest.fixture
def store(json_store):
    return FlakyStore(json_store)


@pytest.fixture
def registry(store):
    return PatternRegistry(store, CustomOptionsService(store))


@pytest.fixture
def sku_patterns(store):
    return SkuPatternService(store)


@pytest.fixture
def bindings(store, sku_patterns):
    return BindingStore(store, sku_patterns, max_attempts=3, backoff_seconds=0)


@pytest.fixture
def pipeline(registry, bindings, store):
    return BatchIntakePipeline(registry, bindings, store, concurrency=4)


@pytest.fixture
def assets(store, bindings):
    return AssetRecordService(store, bindings)


def pattern_in(prefix="PB3", type="SMARTPOS", model="SUNMI P2", acquirer="PAGSEGURO", **kw) -> SerialPatternIn:
    return SerialPatternIn(prefix=prefix, type=type, model=model, acquirer=acquirer, **kw)

"""
测试启动流程：拉取矿池列表 + 首轮采集
"""

import asyncio

import httpx
import pytest

from pool_monitor import main
from pool_monitor.collector import create_pool_client
from pool_monitor.config import CollectorConfig
from pool_monitor.exceptions import ParseError
from pool_monitor.models import SnapshotStore

from test_extract import FORKNOTE_BODY


def test_initialize_collects_before_serving(monkeypatch, make_descriptor, pool_response):
    async def _fetch(url, timeout):
        return [make_descriptor("a.example"), make_descriptor("b.example", type="unknown")]

    monkeypatch.setattr(main, "fetch_descriptors", _fetch)

    def handler(request):
        return pool_response(FORKNOTE_BODY)

    async def _run(store):
        transport = httpx.MockTransport(handler)
        async with create_pool_client(CollectorConfig(), transport=transport) as client:
            return await main.initialize(store, client)

    store = SnapshotStore()
    snapshot = asyncio.run(_run(store))

    assert store.current is snapshot
    assert [r.name for r in snapshot.pools] == ["a.example", "b.example"]
    assert [r.height for r in snapshot.pools] == [500, 0]


def test_initialize_propagates_descriptor_failure(monkeypatch):
    async def _fetch(url, timeout):
        raise ParseError("bad document")

    monkeypatch.setattr(main, "fetch_descriptors", _fetch)

    async def _run(store):
        async with create_pool_client(CollectorConfig()) as client:
            return await main.initialize(store, client)

    store = SnapshotStore()
    with pytest.raises(ParseError):
        asyncio.run(_run(store))
    assert store.current.pools == ()

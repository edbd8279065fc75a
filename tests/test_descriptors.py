"""
测试矿池列表拉取与解析
"""

import asyncio
import json
import logging

import httpx
import pytest

from pool_monitor.descriptors import fetch_descriptors, normalize_pool_name, parse_descriptors
from pool_monitor.exceptions import NetworkError, ParseError


POOLS_URL = "https://example.com/v2/pools.json"

POOLS_DOCUMENT = {
    "pools": [
        {"name": "Pool A", "url": "https://pool-a.example/", "api": "https://pool-a.example:8119/", "type": "forknote"},
        {"name": "Pool B", "url": "http://pool-b.example", "api": "https://api.pool-b.example/", "type": "node.js"},
        {"name": "Pool C", "url": "pool-c.example/", "api": "https://pool-c.example/api", "type": "something-new"},
    ]
}


@pytest.mark.parametrize("url, expected", [
    ("https://pool.example/", "pool.example"),
    ("http://pool.example", "pool.example"),
    ("pool.example/", "pool.example"),
    ("https://pool.example/path/", "pool.example/path"),
])
def test_normalize_pool_name(url, expected):
    assert normalize_pool_name(url) == expected


def test_parse_descriptors():
    descriptors = parse_descriptors(json.dumps(POOLS_DOCUMENT))

    assert [d.name for d in descriptors] == ["pool-a.example", "pool-b.example", "pool-c.example"]
    assert descriptors[0].api == "https://pool-a.example:8119/"
    assert descriptors[0].type == "forknote"
    assert descriptors[1].type == "node.js"


def test_parse_keeps_unknown_type():
    descriptors = parse_descriptors(json.dumps(POOLS_DOCUMENT))
    assert descriptors[2].type == "something-new"


def test_parse_warns_once_for_unknown_type(caplog):
    with caplog.at_level(logging.WARNING, logger="pool_monitor.descriptors"):
        parse_descriptors(json.dumps(POOLS_DOCUMENT))

    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "pool-c.example" in warnings[0]
    assert "something-new" in warnings[0]


def test_parse_adds_trailing_slash_to_api():
    descriptors = parse_descriptors(json.dumps(POOLS_DOCUMENT))
    assert descriptors[2].api == "https://pool-c.example/api/"


def test_parse_duplicate_names_keep_first():
    document = {"pools": [
        {"url": "https://dup.example/", "api": "https://first/", "type": "forknote"},
        {"url": "http://dup.example", "api": "https://second/", "type": "forknote"},
    ]}

    descriptors = parse_descriptors(json.dumps(document))

    assert len(descriptors) == 1
    assert descriptors[0].api == "https://first/"


def test_parse_invalid_json():
    with pytest.raises(ParseError):
        parse_descriptors(b"<html>not json</html>")


def test_parse_unexpected_shape():
    with pytest.raises(ParseError):
        parse_descriptors(json.dumps({"pool-a.example": {"url": "https://pool-a.example/api/"}}))


def test_parse_missing_field():
    with pytest.raises(ParseError):
        parse_descriptors(json.dumps({"pools": [{"url": "https://pool.example/"}]}))


def test_fetch_descriptors():
    def handler(request: httpx.Request):
        assert str(request.url) == POOLS_URL
        return httpx.Response(200, json=POOLS_DOCUMENT)

    descriptors = asyncio.run(
        fetch_descriptors(POOLS_URL, transport=httpx.MockTransport(handler))
    )

    assert len(descriptors) == 3


def test_fetch_descriptors_http_error():
    def handler(request: httpx.Request):
        return httpx.Response(404, text="not found")

    with pytest.raises(NetworkError):
        asyncio.run(fetch_descriptors(POOLS_URL, transport=httpx.MockTransport(handler)))


def test_fetch_descriptors_transport_error():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(fetch_descriptors(POOLS_URL, transport=httpx.MockTransport(handler)))


def test_fetch_descriptors_bad_body():
    def handler(request: httpx.Request):
        return httpx.Response(200, text="{ truncated")

    with pytest.raises(ParseError):
        asyncio.run(fetch_descriptors(POOLS_URL, transport=httpx.MockTransport(handler)))

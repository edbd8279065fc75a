"""
测试公共 fixture
"""

import sys
from pathlib import Path
from typing import Dict, Optional, Union

import httpx
import pytest

# 添加项目路径到 sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pool_monitor.config import reset_config
from pool_monitor.models import PoolDescriptor, PoolRecord


@pytest.fixture(autouse=True)
def _fresh_config():
    """每个测试使用默认配置"""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def make_descriptor():
    def _make(name: str, type: str = "forknote", api: Optional[str] = None) -> PoolDescriptor:
        return PoolDescriptor(
            name=name,
            api=api or f"https://{name}/api/",
            type=type,
        )
    return _make


@pytest.fixture
def make_record(make_descriptor):
    def _make(
        name: str,
        height: int = 0,
        last_block_found: Optional[int] = None,
        hashrate: int = 0,
        difficulty: int = 0,
        type: str = "forknote",
    ) -> PoolRecord:
        return PoolRecord(
            descriptor=make_descriptor(name, type=type),
            height=height,
            last_block_found=last_block_found,
            hashrate=hashrate,
            difficulty=difficulty,
        )
    return _make


@pytest.fixture
def pool_response():
    """
    构造矿池响应

    使用 stream=ByteStream，避免 httpx 在构造时按 Content-Encoding 预先解码。
    """
    def _make(
        body: Union[bytes, str],
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        if isinstance(body, str):
            body = body.encode("utf-8")
        return httpx.Response(
            status_code,
            headers=headers or {},
            stream=httpx.ByteStream(body),
        )
    return _make

"""
矿池列表拉取

从远端版本化 JSON 文档拉取矿池列表：{"pools": [{"url", "api", "type"}]}
"""

import json
import logging
from typing import List, Optional, Union

import httpx
from pydantic import BaseModel, ValidationError

from .exceptions import NetworkError, ParseError
from .models import PoolDescriptor, PoolType

logger = logging.getLogger(__name__)


class RawPoolEntry(BaseModel):
    """矿池列表中的单个条目"""
    url: str
    api: str
    type: str


class DescriptorDocument(BaseModel):
    """矿池列表文档"""
    pools: List[RawPoolEntry]


def normalize_pool_name(url: str) -> str:
    """去掉 https:// 或 http:// 前缀以及末尾的 /"""
    for prefix in ("https://", "http://"):
        if url.startswith(prefix):
            url = url[len(prefix):]
            break
    if url.endswith("/"):
        url = url[:-1]
    return url


_KNOWN_TYPES = {pool_type.value for pool_type in PoolType}


def _normalize_api(api: str) -> str:
    return api if api.endswith("/") else api + "/"


def parse_descriptors(payload: Union[bytes, str]) -> List[PoolDescriptor]:
    """
    解析矿池列表文档

    未知的 type 原样保留并告警一次，采集器在轮询时跳过。

    Raises:
        ParseError: 不是合法 JSON 或结构不符
    """
    try:
        document = DescriptorDocument.model_validate(json.loads(payload))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"Pools document is not valid JSON: {e}") from e
    except ValidationError as e:
        raise ParseError(f"Pools document has unexpected shape: {e}") from e

    descriptors = []
    seen = set()
    for entry in document.pools:
        name = normalize_pool_name(entry.url)
        if name in seen:
            logger.warning(f"Duplicate pool {name} in pools document, keeping first entry")
            continue
        seen.add(name)
        if entry.type not in _KNOWN_TYPES:
            logger.warning(f"Pool {name} has unsupported type {entry.type!r}, it will not be polled")
        descriptors.append(PoolDescriptor(
            name=name,
            api=_normalize_api(entry.api),
            type=entry.type,
        ))
    return descriptors


async def fetch_descriptors(
    url: str,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[PoolDescriptor]:
    """
    拉取并解析矿池列表

    Args:
        url: 矿池列表地址
        timeout: 超时时间（秒）
        transport: 自定义传输层（测试用）

    Raises:
        NetworkError: 传输、TLS、超时或非 2xx 响应
        ParseError: 响应内容不符合预期
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, transport=transport
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            body = response.content
    except httpx.HTTPError as e:
        raise NetworkError(f"Failed to download pools json from {url}: {e}") from e

    descriptors = parse_descriptors(body)
    logger.info(f"Loaded {len(descriptors)} pools from {url}")
    return descriptors

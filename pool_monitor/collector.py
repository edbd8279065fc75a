"""
矿池采集循环

每 interval 秒并发拉取所有矿池的统计接口，归一化为 PoolRecord，
整体重算并发布全局快照。
"""

import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from .aggregator import publish_records
from .config import CollectorConfig, get_config
from .exceptions import NetworkError, PoolMonitorError, UnsupportedPoolType
from .extract import (
    body_text,
    content_encodings,
    decode_body,
    extract_forknote_stats,
    extract_nodejs_stats,
)
from .models import PoolDescriptor, PoolRecord, PoolStats, PoolType, SnapshotStore

logger = logging.getLogger(__name__)


def create_pool_client(
    config: Optional[CollectorConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    创建矿池采集用的共享 HTTP 客户端

    verify_tls=False 时不校验矿池证书：只读的低风险遥测数据，
    而很多矿池运营者使用自签名或配置错误的证书。
    """
    config = config or get_config().collector
    return httpx.AsyncClient(
        timeout=config.timeout,
        verify=config.verify_tls,
        follow_redirects=True,
        headers={"User-Agent": config.user_agent},
        transport=transport,
    )


async def fetch_text(client: httpx.AsyncClient, url: str) -> str:
    """
    拉取 URL 并返回解压后的文本

    读取原始响应体，根据响应头（而不是请求的 Accept-Encoding）自行解压。

    Raises:
        NetworkError: 传输、TLS、超时或非 2xx 响应
        DecodeError: 解压失败
    """
    try:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            raw = b"".join([chunk async for chunk in response.aiter_raw()])
            encodings = content_encodings(response.headers)
    except httpx.HTTPError as e:
        raise NetworkError(f"Failed to download stats from {url}: {e}") from e

    return body_text(decode_body(raw, encodings))


async def fetch_forknote_stats(client: httpx.AsyncClient, descriptor: PoolDescriptor) -> PoolStats:
    """forknote：GET <api>stats"""
    body = await fetch_text(client, descriptor.api + "stats")
    return extract_forknote_stats(body)


async def fetch_nodejs_stats(client: httpx.AsyncClient, descriptor: PoolDescriptor) -> PoolStats:
    """node.js：GET <api>network/stats + <api>pool/stats"""
    network_body, pool_body = await asyncio.gather(
        fetch_text(client, descriptor.api + "network/stats"),
        fetch_text(client, descriptor.api + "pool/stats"),
    )
    return extract_nodejs_stats(network_body, pool_body)


_FETCHERS = {
    PoolType.LEGACY_FORKNOTE.value: fetch_forknote_stats,
    PoolType.NODEJS.value: fetch_nodejs_stats,
}


async def collect_pool(
    descriptor: PoolDescriptor,
    client: httpx.AsyncClient,
    timeout: Optional[float] = None,
) -> PoolRecord:
    """
    采集单个矿池

    timeout 限制整个采集过程（含 node.js 的两次请求）的总耗时；httpx 自身的超时
    只作用于单个读写阶段，逐字节返回的响应可以绕过它。
    采集失败时返回零状态记录（不保留上一次的数据），让调用方能看到数据已过期。
    不支持的类型已在解析矿池列表时告警，这里只记 DEBUG。
    """
    if timeout is None:
        timeout = get_config().collector.timeout

    try:
        fetcher = _FETCHERS.get(descriptor.type)
        if fetcher is None:
            raise UnsupportedPoolType(descriptor.type)
        try:
            stats = await asyncio.wait_for(fetcher(client, descriptor), timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Timed out after {timeout}s") from e
    except UnsupportedPoolType as e:
        logger.debug(f"Skipping pool {descriptor.name}: {e}")
        return PoolRecord.zero(descriptor)
    except PoolMonitorError as e:
        logger.warning(f"Failed to collect pool {descriptor.name}: {e}")
        return PoolRecord.zero(descriptor)

    logger.debug(f"Pool {descriptor.name}: height={stats.height} hashrate={stats.hashrate}")
    return PoolRecord.from_stats(descriptor, stats)


async def collect_all(
    descriptors: List[PoolDescriptor],
    client: httpx.AsyncClient,
    timeout: Optional[float] = None,
) -> List[PoolRecord]:
    """并发采集所有矿池，结果顺序与 descriptors 一致"""
    results = await asyncio.gather(
        *[collect_pool(descriptor, client, timeout=timeout) for descriptor in descriptors],
        return_exceptions=True,
    )

    records = []
    for descriptor, result in zip(descriptors, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.error(f"Unexpected error collecting pool {descriptor.name}: {result!r}")
            result = PoolRecord.zero(descriptor)
        records.append(result)
    return records


def apply_results(
    current: List[PoolRecord],
    collected: List[PoolRecord],
) -> List[PoolRecord]:
    """
    将本轮采集结果应用到当前记录上

    采集期间矿池列表可能已被刷新：只更新仍存在的矿池（按名称匹配，沿用当前的
    描述），新加入的矿池保持现状，等待下一轮采集。
    """
    by_name: Dict[str, PoolRecord] = {record.name: record for record in collected}
    updated = []
    for record in current:
        fresh = by_name.get(record.name)
        if fresh is None or fresh.descriptor != record.descriptor:
            updated.append(record)
        else:
            updated.append(fresh)
    return updated


async def refresh_stats(snapshot_store: SnapshotStore, client: httpx.AsyncClient):
    """执行一轮采集并发布新快照"""
    descriptors = snapshot_store.current.descriptors
    if not descriptors:
        return snapshot_store.current

    collected = await collect_all(descriptors, client)

    async with snapshot_store.write_lock:
        records = apply_results(list(snapshot_store.current.pools), collected)
        snapshot = publish_records(snapshot_store, records)

    reachable = sum(1 for record in snapshot.pools if not record.unreachable)
    logger.debug(
        f"Collected {reachable}/{len(snapshot.pools)} pools, "
        f"consensus height={snapshot.consensus_height}"
    )
    return snapshot


async def run_collector(snapshot_store: SnapshotStore, client: httpx.AsyncClient):
    """
    运行采集循环

    每隔 interval 秒拉取所有矿池。
    """
    config = get_config()
    interval = config.collector.interval
    timeout = config.collector.timeout

    logger.info(f"Starting collector loop (interval={interval}s, timeout={timeout}s)")

    while True:
        await asyncio.sleep(interval)

        try:
            await refresh_stats(snapshot_store, client)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Collector loop error: {e}", exc_info=True)

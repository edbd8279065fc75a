"""
共识计算与矿池列表刷新

- 以众数计算共识高度 / 难度，并在高度变化时推进更新时间
- 分叉检测、预计出块时间
- 每小时刷新矿池列表，合并已有记录
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .config import get_config
from .descriptors import fetch_descriptors
from .exceptions import PoolMonitorError
from .models import (
    INFINITE_SECONDS,
    ForkedPool,
    GlobalSnapshot,
    PoolDescriptor,
    PoolRecord,
    SnapshotStore,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mode(values: Iterable[int]) -> int:
    """
    众数

    出现次数相同时取输入顺序中最先出现的值；空输入返回 0。
    """
    counts = Counter(values)
    if not counts:
        return 0
    # most_common 对计数相同的元素保持首次出现顺序
    return counts.most_common(1)[0][0]


def recompute(
    records: Iterable[PoolRecord],
    previous: Optional[GlobalSnapshot] = None,
    now: Optional[datetime] = None,
) -> GlobalSnapshot:
    """
    根据矿池记录重新计算全局快照

    不可达矿池（高度 0）同样计入众数统计。consensus_updated_at 只在共识高度
    变化时推进。
    """
    pools = tuple(records)
    height = mode(record.height for record in pools)
    difficulty = mode(record.difficulty for record in pools)

    if previous is not None and previous.consensus_height == height:
        updated_at = previous.consensus_updated_at
    else:
        updated_at = now or _utcnow()
        if previous is not None:
            logger.info(f"Consensus height changed: {previous.consensus_height} -> {height}")

    return GlobalSnapshot(
        pools=pools,
        consensus_height=height,
        consensus_difficulty=difficulty,
        consensus_updated_at=updated_at,
    )


def publish_records(
    snapshot_store: SnapshotStore,
    records: Iterable[PoolRecord],
    now: Optional[datetime] = None,
) -> GlobalSnapshot:
    """重算并发布快照（调用方需持有 write_lock）"""
    snapshot = recompute(records, previous=snapshot_store.current, now=now)
    snapshot_store.publish(snapshot)
    return snapshot


def forked_pools(snapshot: GlobalSnapshot, max_divergence: int = 5) -> List[ForkedPool]:
    """
    分叉检测

    - 高度为 0：reason="api"（不可达）
    - 高度与共识相差超过 max_divergence：reason="forked"
    """
    mode_height = snapshot.consensus_height
    result = []
    for record in snapshot.pools:
        if record.unreachable:
            reason = "api"
        elif abs(record.height - mode_height) > max_divergence:
            reason = "forked"
        else:
            continue
        result.append(ForkedPool(
            pool=record.name,
            reason=reason,
            height=record.height,
            mode=mode_height,
        ))
    return result


def estimated_solve_time(difficulty: int, hashrate: int) -> int:
    """预计出块时间（秒），算力为 0 时返回 INFINITE_SECONDS"""
    if hashrate <= 0:
        return INFINITE_SECONDS
    return difficulty // hashrate


def seconds_since_last_found(record: PoolRecord, now: Optional[datetime] = None) -> int:
    """距该矿池上次出块的秒数，未知时返回 INFINITE_SECONDS"""
    if record.last_block_found is None:
        return INFINITE_SECONDS
    now = now or _utcnow()
    return max(0, int(now.timestamp()) - record.last_block_found)


def minutes_since_update(snapshot: GlobalSnapshot, now: Optional[datetime] = None) -> int:
    """距共识高度上次变化的分钟数"""
    now = now or _utcnow()
    elapsed = (now - snapshot.consensus_updated_at).total_seconds()
    return max(0, int(elapsed // 60))


def merge_descriptors(
    descriptors: List[PoolDescriptor],
    records: Iterable[PoolRecord],
) -> List[PoolRecord]:
    """
    合并新的矿池列表与已有记录

    按矿池名匹配：已知矿池保留高度、最后出块时间、算力、难度；新矿池从零状态
    开始；不在新列表中的矿池被移除。
    """
    existing: Dict[str, PoolRecord] = {record.name: record for record in records}
    merged = []
    for descriptor in descriptors:
        previous = existing.get(descriptor.name)
        if previous is None:
            merged.append(PoolRecord.zero(descriptor))
        else:
            merged.append(previous.model_copy(update={"descriptor": descriptor}))
    return merged


async def refresh_descriptors(
    snapshot_store: SnapshotStore,
    descriptors: List[PoolDescriptor],
    now: Optional[datetime] = None,
) -> GlobalSnapshot:
    """在写者锁内合并矿池列表并发布新快照"""
    async with snapshot_store.write_lock:
        old = snapshot_store.current.pools
        merged = merge_descriptors(descriptors, old)

        old_names = {record.name for record in old}
        new_names = {record.name for record in merged}
        added = new_names - old_names
        removed = old_names - new_names
        if added or removed:
            logger.info(f"Pool list changed: +{sorted(added)} -{sorted(removed)}")

        return publish_records(snapshot_store, merged, now=now)


async def run_pool_refresher(snapshot_store: SnapshotStore):
    """
    运行矿池列表刷新任务

    每隔 refresh_interval 秒重新拉取矿池列表并合并。拉取失败时：
    - retry_on_failure=False（默认）：记录日志后停止刷新，已有数据继续提供服务
    - retry_on_failure=True：等待下一个周期重试
    """
    config = get_config()
    interval = config.descriptors.refresh_interval

    logger.info(f"Starting pool list refresher (interval={interval}s)")

    while True:
        await asyncio.sleep(interval)

        try:
            descriptors = await fetch_descriptors(
                config.descriptors.url,
                timeout=config.descriptors.timeout,
            )
        except PoolMonitorError as e:
            logger.error(f"Failed to update pools info: {e}")
            if config.descriptors.retry_on_failure:
                continue
            logger.error("Pool list refresher stopped, serving the last known pool list")
            return

        await refresh_descriptors(snapshot_store, descriptors)

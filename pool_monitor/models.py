"""
数据模型定义

包括：
- 矿池描述 / 矿池记录 / 全局快照（不可变）
- Pydantic 响应模型（用于 API）
- 快照存储（全局状态管理）
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple, Literal

from pydantic import BaseModel, ConfigDict, Field


# "无穷大"哨兵值（int64 最大值）
INFINITE_SECONDS = 2 ** 63 - 1


class PoolType(str, Enum):
    """已知的矿池 API 响应类型"""
    LEGACY_FORKNOTE = "forknote"
    NODEJS = "node.js"


# =============================================================================
# 核心数据模型
# =============================================================================

class PoolDescriptor(BaseModel):
    """矿池描述（来自矿池列表，解析后不可变）"""
    model_config = ConfigDict(frozen=True)

    name: str
    api: str
    type: str


class PoolStats(BaseModel):
    """单次采集从响应体中提取出的指标"""
    height: int
    last_block_found: Optional[int] = None
    hashrate: int = 0
    difficulty: int = 0


class PoolRecord(BaseModel):
    """
    矿池记录

    height == 0 且 last_block_found 为 None 表示"当前不可达或无法解析"，
    而不是真实高度 0。
    """
    model_config = ConfigDict(frozen=True)

    descriptor: PoolDescriptor
    height: int = 0
    last_block_found: Optional[int] = None  # unix 秒
    hashrate: int = 0
    difficulty: int = 0

    @classmethod
    def zero(cls, descriptor: PoolDescriptor) -> "PoolRecord":
        """零状态记录"""
        return cls(descriptor=descriptor)

    @classmethod
    def from_stats(cls, descriptor: PoolDescriptor, stats: PoolStats) -> "PoolRecord":
        return cls(
            descriptor=descriptor,
            height=stats.height,
            last_block_found=stats.last_block_found,
            hashrate=stats.hashrate,
            difficulty=stats.difficulty,
        )

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def unreachable(self) -> bool:
        return self.height == 0


class GlobalSnapshot(BaseModel):
    """全局共识快照（整体发布，读者只持有引用）"""
    model_config = ConfigDict(frozen=True)

    pools: Tuple[PoolRecord, ...] = ()
    consensus_height: int = 0
    consensus_difficulty: int = 0
    consensus_updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def descriptors(self) -> List[PoolDescriptor]:
        return [record.descriptor for record in self.pools]


# =============================================================================
# Pydantic 响应模型（用于 API）
# =============================================================================

class _AliasedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HeightResponse(BaseModel):
    """GET /api/height"""
    height: int


class DifficultyResponse(BaseModel):
    """GET /api/difficulty"""
    difficulty: int


class PoolHeightInfo(_AliasedModel):
    """单个矿池的高度信息"""
    pool: str = Field(alias="Pool")
    height: int = Field(alias="Height")
    mode: int = Field(alias="Mode")
    last_found: int = Field(alias="LastFound")
    estimated_solve_time: int = Field(alias="EstimatedSolveTime")


class HeightsResponse(_AliasedModel):
    """GET /api/heights"""
    pools: List[PoolHeightInfo] = Field(default_factory=list, alias="Pools")


class LastFoundResponse(_AliasedModel):
    """GET /api/lastfound"""
    mins_since_last_block: int = Field(alias="mins-since-last-block")


class ForkedPool(_AliasedModel):
    """分叉或 API 不可达的矿池"""
    pool: str = Field(alias="Pool")
    reason: Literal["forked", "api"] = Field(alias="Reason")
    height: int = Field(alias="Height")
    mode: int = Field(alias="Mode")


class ForkedResponse(_AliasedModel):
    """GET /api/forked"""
    pools: List[ForkedPool] = Field(default_factory=list, alias="Pools")


# =============================================================================
# 快照存储（全局状态）
# =============================================================================

class SnapshotStore:
    """
    快照存储

    - current: 当前快照（不可变对象，读者直接读取引用）
    - write_lock: 写者锁，串行化快速/慢速两个刷新循环的"合并 + 重算 + 发布"
    """

    def __init__(self, snapshot: Optional[GlobalSnapshot] = None):
        self._snapshot = snapshot if snapshot is not None else GlobalSnapshot()
        self._write_lock = asyncio.Lock()

    @property
    def current(self) -> GlobalSnapshot:
        """获取当前快照"""
        return self._snapshot

    @property
    def write_lock(self) -> asyncio.Lock:
        return self._write_lock

    def publish(self, snapshot: GlobalSnapshot):
        """整体替换当前快照（调用方需持有 write_lock）"""
        self._snapshot = snapshot


# 全局快照存储实例
store = SnapshotStore()

"""
依赖注入模块

提供 FastAPI 依赖项。
"""

from ..config import ConsensusConfig, get_config
from ..models import SnapshotStore, store


async def get_snapshot_store() -> SnapshotStore:
    """获取快照存储实例"""
    return store


async def get_consensus_config() -> ConsensusConfig:
    """获取共识判定配置"""
    return get_config().consensus

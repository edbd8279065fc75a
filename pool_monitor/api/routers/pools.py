"""
矿池查询 API

只读接口，渲染当前快照；快照过期或仍是启动时的零状态时同样正常返回。
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from ...aggregator import (
    estimated_solve_time,
    forked_pools,
    minutes_since_update,
    seconds_since_last_found,
)
from ...config import ConsensusConfig
from ...models import (
    DifficultyResponse,
    ForkedResponse,
    HeightResponse,
    HeightsResponse,
    LastFoundResponse,
    PoolHeightInfo,
    SnapshotStore,
)
from ..dependencies import get_consensus_config, get_snapshot_store

router = APIRouter(prefix="/api", tags=["pools"])

HELP_TEXT = (
    "Supported methods:\n\n"
    "/api/height - Get consensus (mode) height\n"
    "/api/heights - Get heights of all pools\n"
    "/api/difficulty - Get consensus (mode) difficulty\n"
    "/api/lastfound - Get minutes since the consensus height last changed\n"
    "/api/forked - Get pools which are forked or whose api is down"
)


@router.get("", response_class=PlainTextResponse)
async def help_text():
    """接口说明"""
    return HELP_TEXT


@router.get("/height", response_model=HeightResponse)
async def get_height(snapshot_store: SnapshotStore = Depends(get_snapshot_store)):
    """获取共识高度"""
    return HeightResponse(height=snapshot_store.current.consensus_height)


@router.get("/difficulty", response_model=DifficultyResponse)
async def get_difficulty(snapshot_store: SnapshotStore = Depends(get_snapshot_store)):
    """获取共识难度"""
    return DifficultyResponse(difficulty=snapshot_store.current.consensus_difficulty)


@router.get("/heights", response_model=HeightsResponse)
async def get_heights(snapshot_store: SnapshotStore = Depends(get_snapshot_store)):
    """
    获取所有矿池高度

    LastFound / EstimatedSolveTime 未知或算力为 0 时为 int64 最大值。
    """
    snapshot = snapshot_store.current

    return HeightsResponse(pools=[
        PoolHeightInfo(
            pool=record.name,
            height=record.height,
            mode=snapshot.consensus_height,
            last_found=seconds_since_last_found(record),
            estimated_solve_time=estimated_solve_time(
                snapshot.consensus_difficulty, record.hashrate
            ),
        )
        for record in snapshot.pools
    ])


@router.get("/lastfound", response_model=LastFoundResponse)
async def get_last_found(snapshot_store: SnapshotStore = Depends(get_snapshot_store)):
    """距共识高度上次变化的分钟数"""
    return LastFoundResponse(
        mins_since_last_block=minutes_since_update(snapshot_store.current)
    )


@router.get("/forked", response_model=ForkedResponse)
async def get_forked(
    snapshot_store: SnapshotStore = Depends(get_snapshot_store),
    consensus: ConsensusConfig = Depends(get_consensus_config),
):
    """获取分叉或 API 不可达的矿池"""
    return ForkedResponse(
        pools=forked_pools(snapshot_store.current, consensus.max_divergence)
    )

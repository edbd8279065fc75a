"""
主程序入口

启动流程：
1. 拉取矿池列表（失败则直接退出）
2. 同步执行一次完整采集，保证第一个查询不为空
3. 并发运行采集循环、矿池列表刷新任务和 REST API 服务
"""

import asyncio
import logging
import sys
from pathlib import Path

import httpx
import uvicorn

from .aggregator import publish_records, run_pool_refresher
from .collector import create_pool_client, refresh_stats, run_collector
from .config import get_config
from .descriptors import fetch_descriptors
from .exceptions import PoolMonitorError
from .models import PoolRecord, SnapshotStore, store


def setup_logging():
    """配置日志"""
    config = get_config()

    # 日志格式
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 获取日志级别
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    # 配置根日志
    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # 如果配置了文件日志
    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


async def run_api_server():
    """运行 API 服务器"""
    from .api.app import create_app

    config = get_config()
    app = create_app()

    server_config = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def initialize(snapshot_store: SnapshotStore, client: httpx.AsyncClient):
    """
    拉取矿池列表并完成首轮采集

    Raises:
        NetworkError / ParseError: 矿池列表拉取失败
    """
    config = get_config()
    descriptors = await fetch_descriptors(
        config.descriptors.url,
        timeout=config.descriptors.timeout,
    )

    async with snapshot_store.write_lock:
        publish_records(snapshot_store, [PoolRecord.zero(d) for d in descriptors])

    snapshot = await refresh_stats(snapshot_store, client)
    return snapshot


async def main() -> int:
    """主函数：启动所有任务"""
    logger = logging.getLogger(__name__)

    setup_logging()
    logger.info("=" * 60)
    logger.info("Pool Monitor v1.0.0")
    logger.info("=" * 60)

    config = get_config()
    logger.info(f"Config loaded: API={config.api.host}:{config.api.port}")
    logger.info(f"Pools document: {config.descriptors.url}")

    if not config.collector.verify_tls:
        logger.warning("TLS certificate verification is disabled for pool endpoints")

    async with create_pool_client(config.collector) as client:
        try:
            snapshot = await initialize(store, client)
        except PoolMonitorError as e:
            logger.error(f"Failed to load pools: {e}")
            return 1

        logger.info(
            f"Got initial heights: {len(snapshot.pools)} pools, "
            f"consensus height={snapshot.consensus_height}"
        )
        logger.info("Starting concurrent tasks...")

        try:
            await asyncio.gather(
                run_collector(store, client),   # 矿池采集循环
                run_pool_refresher(store),      # 矿池列表刷新
                run_api_server()                # REST API 服务
            )
        except asyncio.CancelledError:
            logger.info("Tasks cancelled, shutting down...")
        except Exception as e:
            logger.error(f"Fatal error: {e}", exc_info=True)
            raise

    return 0


def cli():
    """命令行入口"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli()

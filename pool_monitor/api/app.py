"""
FastAPI 应用配置

配置 CORS、路由注册。
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import get_config
from .routers import pools

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    创建 FastAPI 应用实例

    配置：
    - CORS 中间件（只读接口，供看板跨域读取）
    - API 路由
    """
    config = get_config()

    app = FastAPI(
        title="Pool Monitor",
        description="矿池高度共识与分叉检测",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(pools.router)

    return app


# 默认应用实例
app = create_app()

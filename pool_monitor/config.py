"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖。
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_POOLS_URL = (
    "https://raw.githubusercontent.com/turtlecoin/"
    "turtlecoin-pools-json/master/v2/turtlecoin-pools.json"
)


class DescriptorConfig(BaseModel):
    """矿池列表配置"""
    url: str = DEFAULT_POOLS_URL
    timeout: int = 10
    refresh_interval: int = 3600
    # 拉取失败后是否在下个周期重试（默认与旧行为一致：停止刷新）
    retry_on_failure: bool = False


class CollectorConfig(BaseModel):
    """采集配置"""
    interval: int = 30
    timeout: int = 5
    # 矿池大多使用自签名或配置错误的证书，默认不校验
    verify_tls: bool = False
    user_agent: str = "pool-monitor/1.0.0"


class ConsensusConfig(BaseModel):
    """共识判定配置"""
    max_divergence: int = 5


class APIConfig(BaseModel):
    """API 服务配置"""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: List[str] = ["*"]


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseSettings):
    """应用配置（完整配置）"""
    model_config = SettingsConfigDict(
        env_prefix="POOL_MONITOR_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    descriptors: DescriptorConfig = Field(default_factory=DescriptorConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
    consensus: ConsensusConfig = Field(default_factory=ConsensusConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 POOL_MONITOR_CONFIG_PATH
    3. 默认路径 config.yaml
    """
    if config_path is None:
        config_path = os.environ.get("POOL_MONITOR_CONFIG_PATH", "config.yaml")

    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
            if raw_config:
                # 日志文件路径相对于配置文件所在目录
                log_file = (raw_config.get("logging") or {}).get("file")
                if log_file and not Path(log_file).is_absolute():
                    raw_config["logging"]["file"] = str(
                        (config_file.resolve().parent / log_file).resolve()
                    )
                return AppConfig(**raw_config)

    # 配置文件不存在时使用默认配置
    return AppConfig()


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None

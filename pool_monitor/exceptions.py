"""
异常定义

采集链路上的四类错误都在采集器边界被捕获并转换为零高度记录；
矿池列表拉取失败则向调用方传播。
"""


class PoolMonitorError(Exception):
    """所有采集/解析错误的基类"""


class NetworkError(PoolMonitorError):
    """连接、TLS、超时或非 2xx 响应"""


class DecodeError(PoolMonitorError):
    """响应体解压失败"""


class ParseError(PoolMonitorError):
    """JSON 格式错误或缺少必需字段"""


class UnsupportedPoolType(PoolMonitorError):
    """矿池列表中声明了采集器不支持的响应类型"""

    def __init__(self, pool_type: str):
        super().__init__(f"Unsupported pool type: {pool_type!r}")
        self.pool_type = pool_type

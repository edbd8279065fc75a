"""
Pool Monitor - 矿池高度共识服务

负责：
- 拉取矿池列表并每小时刷新
- 每 30s 并发拉取所有矿池的统计接口
- 以众数计算共识高度 / 难度，检测分叉和不可达的矿池
- 提供只读 REST API
"""

__version__ = "1.0.0"

"""
Pool Monitor 主程序入口

使用方式:
    python -m pool_monitor
    或
    pool-monitor
"""

from pool_monitor.main import cli


if __name__ == "__main__":
    cli()

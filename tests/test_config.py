"""
测试配置加载
"""

from pool_monitor.config import DEFAULT_POOLS_URL, AppConfig, get_config, load_config, reset_config


def test_defaults(tmp_path):
    config = load_config(str(tmp_path / "missing.yaml"))

    assert config.descriptors.url == DEFAULT_POOLS_URL
    assert config.descriptors.refresh_interval == 3600
    assert config.descriptors.retry_on_failure is False
    assert config.collector.interval == 30
    assert config.collector.verify_tls is False
    assert config.consensus.max_divergence == 5
    assert config.api.port == 8080


def test_load_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "collector:\n"
        "  interval: 15\n"
        "consensus:\n"
        "  max_divergence: 3\n"
        "logging:\n"
        "  level: DEBUG\n"
        "  file: logs/pool-monitor.log\n",
        encoding="utf-8",
    )

    config = load_config(str(config_file))

    assert config.collector.interval == 15
    assert config.collector.timeout == 5
    assert config.consensus.max_divergence == 3
    assert config.logging.level == "DEBUG"
    assert config.logging.file == str((tmp_path / "logs" / "pool-monitor.log").resolve())


def test_empty_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("", encoding="utf-8")

    assert load_config(str(config_file)).api.port == 8080


def test_env_override(monkeypatch):
    monkeypatch.setenv("POOL_MONITOR_API__PORT", "9000")

    assert AppConfig().api.port == 9000


def test_config_path_from_env(tmp_path, monkeypatch):
    config_file = tmp_path / "custom.yaml"
    config_file.write_text("api:\n  port: 9100\n", encoding="utf-8")
    monkeypatch.setenv("POOL_MONITOR_CONFIG_PATH", str(config_file))
    reset_config()

    assert get_config().api.port == 9100

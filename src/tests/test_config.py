import pytest

from skylight.config import Config
from skylight.exceptions import ConfigError


def test_defaults():
    config = Config()

    assert config.agent.strategy in ("embedded", "standalone")
    assert config.agent.max_queue_size > 0
    assert config.hidden_categories == ["skip"]
    assert config.gc.enabled is False
    assert config.report.ssl is True


def test_report_url():
    config = Config.build(report={"host": "localhost", "port": 8080, "ssl": False})
    assert config.report.url == "http://localhost:8080/report"

    config = Config.build(report={"host": "collector.example", "port": 443})
    assert config.report.url == "https://collector.example:443/report"


def test_invalid_strategy_raises_config_error():
    with pytest.raises(ConfigError):
        Config.build(agent={"strategy": "sideways"})


def test_invalid_interval_raises_config_error():
    with pytest.raises(ConfigError):
        Config.build(agent={"interval": 0})


def test_invalid_log_level_raises_config_error():
    with pytest.raises(ConfigError):
        Config.build(log_level="chatty")


def test_from_env():
    environ = {
        "SKYLIGHT_AUTHENTICATION": "secret",
        "SKYLIGHT_LOG_LEVEL": "DEBUG",
        "SKYLIGHT_AGENT_STRATEGY": "standalone",
        "SKYLIGHT_AGENT_INTERVAL": "2.5",
        "SKYLIGHT_AGENT_SOCKFILE_PATH": "/var/run/skylight",
        "SKYLIGHT_REPORT__PORT": "8443",
        "SKYLIGHT_REPORT_SSL": "false",
        "SKYLIGHT_GC_ENABLED": "true",
        "SKYLIGHT_HIDDEN_CATEGORIES": "skip, noise.internal",
        "SKYLIGHT_UNKNOWN_THING": "ignored",
        "PATH": "/usr/bin",
    }

    config = Config.from_env(environ)

    assert config.authentication == "secret"
    assert config.log_level == "debug"
    assert config.agent.strategy == "standalone"
    assert config.agent.interval == 2.5
    assert config.agent.sockfile_path == "/var/run/skylight"
    assert config.report.port == 8443
    assert config.report.ssl is False
    assert config.gc.enabled is True
    assert config.hidden_categories == ["skip", "noise.internal"]


def test_from_env_overrides():
    config = Config.from_env({"SKYLIGHT_AGENT_INTERVAL": "3"}, agent={"strategy": "embedded"})

    assert config.agent.interval == 3
    assert config.agent.strategy == "embedded"


def test_from_yaml(tmp_path):
    path = tmp_path / "skylight.yml"
    path.write_text(
        "authentication: lulz\n"
        "agent:\n"
        "  strategy: embedded\n"
        "  interval: 1\n"
        "report:\n"
        "  host: localhost\n"
        "  port: 9000\n"
        "  ssl: false\n"
        "  deflate: false\n"
    )

    config = Config.from_yaml(str(path), report={"port": 9001})

    assert config.authentication == "lulz"
    assert config.agent.interval == 1
    assert config.report.host == "localhost"
    assert config.report.port == 9001
    assert config.report.deflate is False


def test_from_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config.from_yaml(str(tmp_path / "nope.yml"))


def test_from_yaml_empty_file(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    with pytest.raises(ConfigError):
        Config.from_yaml(str(path))


def test_from_yaml_invalid_file(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("agent: [unclosed")
    with pytest.raises(ConfigError):
        Config.from_yaml(str(path))


def test_hidden_predicate():
    is_hidden = Config.build(hidden_categories=["skip", "noise"]).hidden_predicate()

    assert is_hidden("skip", None, None)
    assert is_hidden("noise", "title", None)
    assert not is_hidden("app.method", None, None)

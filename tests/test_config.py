import pytest

from vhost_audit.config import AuditConfig, clean_list, parse_duration, split_csv
from vhost_audit.errors import ConfigError


@pytest.mark.parametrize("text,seconds", [
    ("5s", 5.0),
    ("750ms", 0.75),
    ("1m30s", 90.0),
    ("1.5h", 5400.0),
    ("0", 0.0),
])
def test_parse_duration(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "5", "five seconds", "5x", "s"])
def test_parse_duration_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_clean_list():
    assert clean_list(["a", "", " b ", "a"]) == ["a", "b"]
    assert split_csv("x.example.com,,y.example.com,x.example.com") == ["x.example.com", "y.example.com"]
    assert split_csv(None) == []


def test_defaults():
    cfg = AuditConfig.build(config_path="nginx.conf")
    assert cfg.state_path == "vhost-audit.state.json"
    assert cfg.concurrency == 10
    assert cfg.timeout == 5.0
    assert cfg.verify_hash is True
    assert cfg.ignore_servers == []


def test_timeout_string_and_ignore_csv():
    cfg = AuditConfig.build(config_path="-", timeout="250ms", ignore_servers="a,b")
    assert cfg.timeout == pytest.approx(0.25)
    assert cfg.ignore_servers == ["a", "b"]


@pytest.mark.parametrize("bad", [{"timeout": "soon"}, {"timeout": "-1s"}, {"concurrency": 0}])
def test_invalid_values_raise_config_error(bad):
    with pytest.raises(ConfigError):
        AuditConfig.build(config_path="nginx.conf", **bad)

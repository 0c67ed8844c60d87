import json
import logging

import pytest
import requests

from vhost_audit.auditor import VhostAuditor
from vhost_audit.config import AuditConfig
from vhost_audit.differ import fingerprint
from vhost_audit.errors import FingerprintMismatchError, RegressionsFound
from vhost_audit.models import StatusMessage
from vhost_audit.prober import ProbeEngine


def _auditor(network, nginx_conf, tmp_path, **overrides):
    values = {"config_path": str(nginx_conf), "state_path": str(tmp_path / "state.json")}
    values.update(overrides)
    config = AuditConfig.build(**values)
    engine = ProbeEngine(timeout=config.timeout, concurrency=config.concurrency, session_factory=network.session)
    return VhostAuditor(config, engine=engine)


def test_index_writes_baseline(network, nginx_conf, tmp_path):
    network.outcomes["http://example.com:80"] = 301
    baseline = _auditor(network, nginx_conf, tmp_path).index()

    assert baseline.config_hash == fingerprint(nginx_conf.read_text(encoding="utf-8"))
    pairs = {r.pair: r.status_code for r in baseline.server_statuses}
    assert pairs == {("www.example.com", 80): 200, ("example.com", 80): 301, ("www.example.com", 443): 200}
    doc = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
    assert len(doc["server_statuses"]) == 3


def test_index_then_diff_without_changes(network, nginx_conf, tmp_path):
    auditor = _auditor(network, nginx_conf, tmp_path)
    auditor.index()
    assert auditor.diff() == []


def test_diff_raises_with_every_regression(network, nginx_conf, tmp_path):
    auditor = _auditor(network, nginx_conf, tmp_path, report_path=str(tmp_path / "report.json"))
    auditor.index()
    network.outcomes["https://www.example.com:443"] = 502
    network.outcomes["http://example.com:80"] = requests.exceptions.ConnectTimeout("timed out")

    with pytest.raises(RegressionsFound) as exc:
        auditor.diff()
    regs = {(r.server_name, r.port): r for r in exc.value.regressions}
    assert set(regs) == {("www.example.com", 443), ("example.com", 80)}
    assert regs[("www.example.com", 443)].new_status_code == 502
    assert regs[("example.com", 80)].status_message == StatusMessage.TIMEOUT

    report = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert report["count"] == 2


def test_config_change_fails_before_probing(network, nginx_conf, tmp_path):
    auditor = _auditor(network, nginx_conf, tmp_path)
    auditor.index()
    probes_after_index = len(network.calls)

    nginx_conf.write_text(nginx_conf.read_text(encoding="utf-8") + "\n# edited\n", encoding="utf-8")
    with pytest.raises(FingerprintMismatchError):
        auditor.diff()
    assert len(network.calls) == probes_after_index


def test_config_change_allowed_without_verification(network, nginx_conf, tmp_path, caplog):
    _auditor(network, nginx_conf, tmp_path).index()
    nginx_conf.write_text(nginx_conf.read_text(encoding="utf-8") + "\n# edited\n", encoding="utf-8")

    auditor = _auditor(network, nginx_conf, tmp_path, verify_hash=False)
    with caplog.at_level(logging.WARNING):
        assert auditor.diff() == []
    assert "skipping config hash verification" in caplog.text


def test_ignored_servers_are_not_probed(network, nginx_conf, tmp_path):
    auditor = _auditor(network, nginx_conf, tmp_path, ignore_servers="example.com, ")
    baseline = auditor.index()
    assert {r.server_name for r in baseline.server_statuses} == {"www.example.com"}


def test_missing_config_file(network, tmp_path):
    auditor = _auditor(network, str(tmp_path / "nope.conf"), tmp_path)
    with pytest.raises(OSError):
        auditor.index()


def test_non_hex_baseline_hash(network, nginx_conf, tmp_path):
    baseline = _auditor(network, nginx_conf, tmp_path).index()
    doc = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
    doc["config_hash"] = "edited-by-hand"
    (tmp_path / "state.json").write_text(json.dumps(doc), encoding="utf-8")

    with pytest.raises(FingerprintMismatchError):
        _auditor(network, nginx_conf, tmp_path).diff()
    assert _auditor(network, nginx_conf, tmp_path, verify_hash=False).diff() == []
    assert len(baseline.server_statuses) == 3

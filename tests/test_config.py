"""Tests for service configuration and request models."""

import pytest
from pydantic import ValidationError

from host_sweep._types import ProbeMethod
from host_sweep.config import SweepConfig, load_config
from host_sweep.exceptions import InvalidRequest
from host_sweep.models import ScanRequest


class TestSweepConfig:
    """Tests for SweepConfig validation."""

    def test_defaults(self):
        config = SweepConfig()
        assert config.api_port == 8000
        assert config.default_method == ProbeMethod.ICMP
        assert config.default_timeout == 2.0
        assert config.default_concurrency == 10
        assert config.inventory_db_path is None

    def test_log_level_normalized(self):
        assert SweepConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            SweepConfig(log_level="LOUD")

    def test_default_timeout_above_limit(self):
        with pytest.raises(ValidationError):
            SweepConfig(default_timeout=60, max_timeout=30)

    def test_default_concurrency_above_limit(self):
        with pytest.raises(ValidationError):
            SweepConfig(default_concurrency=500, max_concurrency=256)


class TestLoadConfig:
    """Tests for environment loading."""

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("API_PORT", "9100")
        monkeypatch.setenv("PROBE_METHOD", "TCP")
        monkeypatch.setenv("TCP_PORT", "443")
        monkeypatch.setenv("BATCH_SIZE", "32")
        monkeypatch.setenv("INVENTORY_DB_PATH", "/tmp/sweep/inventory.db")

        config = load_config()

        assert config.api_port == 9100
        assert config.default_method == ProbeMethod.TCP
        assert config.tcp_port == 443
        assert config.default_concurrency == 32
        assert str(config.inventory_db_path) == "/tmp/sweep/inventory.db"

    def test_env_defaults(self, monkeypatch):
        for name in ["API_PORT", "PROBE_METHOD", "BATCH_SIZE", "INVENTORY_DB_PATH", "LOG_LEVEL"]:
            monkeypatch.delenv(name, raising=False)

        config = load_config()

        assert config.default_method == ProbeMethod.ICMP
        assert config.inventory_db_path is None


class TestYamlConfig:
    """Tests for YAML loading."""

    def test_sections(self, tmp_path):
        path = tmp_path / "sweep.yaml"
        path.write_text(
            "api:\n"
            "  host: 0.0.0.0\n"
            "  port: 8100\n"
            "probe:\n"
            "  method: tcp\n"
            "  tcp_port: 22\n"
            "  timeout: 1.5\n"
            "  batch_size: 20\n"
            "limits:\n"
            "  max_addresses: 1024\n"
            "stream:\n"
            "  buffer_size: 64\n"
            "inventory:\n"
            f"  db: {tmp_path / 'inv.db'}\n"
            "log_level: warning\n"
        )

        config = SweepConfig.from_yaml(path)

        assert config.api_host == "0.0.0.0"
        assert config.api_port == 8100
        assert config.default_method == ProbeMethod.TCP
        assert config.tcp_port == 22
        assert config.default_timeout == 1.5
        assert config.default_concurrency == 20
        assert config.max_addresses == 1024
        assert config.stream_buffer_size == 64
        assert config.inventory_db_path == tmp_path / "inv.db"
        assert config.log_level == "WARNING"

    def test_missing_file_uses_defaults(self, tmp_path):
        config = SweepConfig.from_yaml(tmp_path / "absent.yaml")
        assert config == SweepConfig()

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert SweepConfig.from_yaml(path).api_port == 8000


class TestScanRequest:
    """Tests for ScanRequest parsing."""

    def test_wire_names(self):
        request = ScanRequest.parse({"target": "10.0.0.1", "timeout": "3", "batchSize": "5"})

        assert request.target == "10.0.0.1"
        assert request.timeout == 3.0
        assert request.batch_size == 5

    def test_concurrency_limit_alias(self):
        request = ScanRequest.parse({"target": "10.0.0.1", "concurrencyLimit": 7})
        assert request.to_options(SweepConfig()).concurrency_limit == 7

    def test_target_stripped(self):
        assert ScanRequest.parse({"target": " 10.0.0.1 "}).target == "10.0.0.1"

    @pytest.mark.parametrize("data", [{}, {"target": ""}, {"target": None}])
    def test_missing_target(self, data):
        with pytest.raises(InvalidRequest, match="Target required"):
            ScanRequest.parse(data)

    def test_blank_target(self):
        with pytest.raises(InvalidRequest):
            ScanRequest.parse({"target": "   "})

    @pytest.mark.parametrize("data", [
        {"target": "10.0.0.1", "timeout": "0"},
        {"target": "10.0.0.1", "timeout": "soon"},
        {"target": "10.0.0.1", "batchSize": "0"},
        {"target": "10.0.0.1", "method": "udp"},
        {"target": "10.0.0.1", "port": "70000"},
    ])
    def test_invalid_fields(self, data):
        with pytest.raises(InvalidRequest):
            ScanRequest.parse(data)

    def test_defaults_from_config(self):
        config = SweepConfig(default_timeout=1.0, default_concurrency=4)

        options = ScanRequest.parse({"target": "10.0.0.1"}).to_options(config)

        assert options.timeout == 1.0
        assert options.concurrency_limit == 4

    def test_limits_from_config(self):
        config = SweepConfig(max_timeout=5, max_concurrency=16)

        with pytest.raises(InvalidRequest):
            ScanRequest.parse({"target": "10.0.0.1", "timeout": 10}).to_options(config)
        with pytest.raises(InvalidRequest):
            ScanRequest.parse({"target": "10.0.0.1", "batchSize": 17}).to_options(config)

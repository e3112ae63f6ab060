"""Tests for govtally configuration."""

import pytest

from govtally.config import (
    TREASURY_ACTIVATION_HEIGHT,
    GovTallyConfig,
    LedgerConfig,
    TreasuryConfig,
)
from govtally.errors import ConfigurationError
from govtally.logging import LogLevel


class TestLedgerConfig:
    """Test LedgerConfig."""

    def test_defaults(self):
        """Test default connection settings."""
        config = LedgerConfig()

        assert config.rpc_host == "localhost"
        assert config.rpc_port == 9109
        assert config.use_tls is True
        assert config.url == "https://localhost:9109"

    def test_plain_http_url(self):
        """Test URL without TLS."""
        config = LedgerConfig(rpc_host="10.0.0.5", rpc_port=19109, use_tls=False)
        assert config.url == "http://10.0.0.5:19109"

    def test_environment_overrides(self, monkeypatch):
        """Test GOVTALLY_RPC_* overrides."""
        monkeypatch.setenv("GOVTALLY_RPC_HOST", "dcrd.internal")
        monkeypatch.setenv("GOVTALLY_RPC_PORT", "19556")
        monkeypatch.setenv("GOVTALLY_RPC_TLS", "false")

        config = LedgerConfig()

        assert config.rpc_host == "dcrd.internal"
        assert config.rpc_port == 19556
        assert config.use_tls is False
        assert config.environment_overrides["GOVTALLY_RPC_PORT"] == 19556

    def test_invalid_environment_value_is_ignored(self, monkeypatch):
        """Test an unparsable override keeps the default."""
        monkeypatch.setenv("GOVTALLY_RPC_PORT", "not-a-port")

        config = LedgerConfig()

        assert config.rpc_port == 9109
        assert "GOVTALLY_RPC_PORT" not in config.environment_overrides

    def test_validate(self):
        """Test validation rejects bad values."""
        LedgerConfig().validate()

        with pytest.raises(ConfigurationError):
            LedgerConfig(rpc_port=0).validate()
        with pytest.raises(ConfigurationError):
            LedgerConfig(rpc_host="").validate()
        with pytest.raises(ConfigurationError):
            LedgerConfig(rpc_timeout=0).validate()


class TestTreasuryConfig:
    """Test TreasuryConfig."""

    def test_protocol_defaults(self):
        """Test protocol constants."""
        config = TreasuryConfig()

        assert config.activation_height == TREASURY_ACTIVATION_HEIGHT == 552448
        assert config.voting_interval == 2880
        assert config.max_scan_span == 3000
        assert config.progress_interval == 50
        assert config.votes_per_block == 5
        assert config.quorum_divisor == 5
        assert config.cache_max_entries == 10000
        assert config.cache_ttl_seconds is None

    def test_cache_ttl_override(self, monkeypatch):
        """Test optional float override."""
        monkeypatch.setenv("GOVTALLY_CACHE_TTL", "3600")
        assert TreasuryConfig().cache_ttl_seconds == 3600.0

    def test_validate(self):
        """Test validation."""
        TreasuryConfig().validate()

        with pytest.raises(ConfigurationError) as exc_info:
            TreasuryConfig(max_scan_span=0).validate()
        assert exc_info.value.config_key == "max_scan_span"

        with pytest.raises(ConfigurationError):
            TreasuryConfig(cache_ttl_seconds=-1).validate()
        with pytest.raises(ConfigurationError):
            TreasuryConfig(activation_height=-5).validate()


class TestGovTallyConfig:
    """Test GovTallyConfig."""

    def test_from_dict(self):
        """Test nested construction."""
        config = GovTallyConfig.from_dict(
            {
                "ledger": {"rpc_host": "node", "rpc_user": "user"},
                "treasury": {"max_scan_span": 500},
                "log_level": "debug",
            }
        )

        assert config.ledger.rpc_host == "node"
        assert config.ledger.rpc_user == "user"
        assert config.treasury.max_scan_span == 500
        assert config.log_level == "debug"
        config.validate()

    def test_log_config(self):
        """Test logging configuration derivation."""
        config = GovTallyConfig(log_level="warning", log_format="json")
        log_config = config.log_config()

        assert log_config.level == LogLevel.WARNING
        assert log_config.format_type == "json"

    def test_unknown_log_level(self):
        """Test unknown log level is a configuration error."""
        with pytest.raises(ConfigurationError):
            GovTallyConfig(log_level="loud").log_config()

    def test_unknown_log_format(self):
        """Test unknown log format is rejected."""
        with pytest.raises(ConfigurationError):
            GovTallyConfig(log_format="xml").validate()

    def test_log_level_environment_override(self, monkeypatch):
        """Test GOVTALLY_LOG_LEVEL override."""
        monkeypatch.setenv("GOVTALLY_LOG_LEVEL", "DEBUG")
        assert GovTallyConfig().log_level == "debug"

"""
Configuration for govtally.

Ledger connection settings and the treasury protocol constants used by the
scanner and the vote tally engine. Every field can be overridden through a
``GOVTALLY_*`` environment variable.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import ConfigurationError
from .logging import LogConfig, LogLevel, get_logger

logger = get_logger(__name__)

# Block where the treasury agenda activated on mainnet (May 2021)
TREASURY_ACTIVATION_HEIGHT = 552448
# Treasury vote interval, in blocks
VOTING_INTERVAL = 2880
MAX_SCAN_SPAN = 3000
PROGRESS_INTERVAL = 50
VOTES_PER_BLOCK = 5
QUORUM_DIVISOR = 5
ATOMS_PER_COIN = 100_000_000


def _apply_env_overrides(
    target: Any, env_mappings: Dict[str, tuple], overrides: Dict[str, Any]
) -> None:
    for env_var, (attr_name, attr_type) in env_mappings.items():
        env_value = os.getenv(env_var)
        if env_value is None:
            continue
        try:
            if attr_type == bool:
                value = env_value.lower() in ("true", "1", "yes", "on")
            elif attr_type == "optional_float":
                value = float(env_value) if env_value.strip() else None
            else:
                value = attr_type(env_value)
            setattr(target, attr_name, value)
            overrides[env_var] = value
        except (ValueError, TypeError) as e:
            logger.warning(
                f"Ignoring invalid environment variable {env_var}={env_value}: {e}"
            )


@dataclass
class LedgerConfig:
    """Connection settings for the dcrd JSON-RPC endpoint."""

    rpc_host: str = "localhost"
    rpc_port: int = 9109
    rpc_user: str = ""
    rpc_password: str = ""
    rpc_timeout: int = 30
    use_tls: bool = True
    rpc_cert: Optional[str] = None
    verify_tls: bool = True

    environment_overrides: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _apply_env_overrides(
            self,
            {
                "GOVTALLY_RPC_HOST": ("rpc_host", str),
                "GOVTALLY_RPC_PORT": ("rpc_port", int),
                "GOVTALLY_RPC_USER": ("rpc_user", str),
                "GOVTALLY_RPC_PASSWORD": ("rpc_password", str),
                "GOVTALLY_RPC_TIMEOUT": ("rpc_timeout", int),
                "GOVTALLY_RPC_TLS": ("use_tls", bool),
                "GOVTALLY_RPC_CERT": ("rpc_cert", str),
                "GOVTALLY_RPC_VERIFY_TLS": ("verify_tls", bool),
            },
            self.environment_overrides,
        )

    @property
    def url(self) -> str:
        scheme = "https" if self.use_tls else "http"
        return f"{scheme}://{self.rpc_host}:{self.rpc_port}"

    def validate(self) -> None:
        """Raise `ConfigurationError` for unusable settings."""
        if not self.rpc_host:
            raise ConfigurationError("rpc_host must not be empty", config_key="rpc_host")
        if not 0 < self.rpc_port < 65536:
            raise ConfigurationError(
                "rpc_port out of range", config_key="rpc_port", config_value=self.rpc_port
            )
        if self.rpc_timeout <= 0:
            raise ConfigurationError(
                "rpc_timeout must be positive",
                config_key="rpc_timeout",
                config_value=self.rpc_timeout,
            )


@dataclass
class TreasuryConfig:
    """Protocol constants and limits for scanning and vote tallying."""

    activation_height: int = TREASURY_ACTIVATION_HEIGHT
    voting_interval: int = VOTING_INTERVAL
    max_scan_span: int = MAX_SCAN_SPAN
    progress_interval: int = PROGRESS_INTERVAL
    votes_per_block: int = VOTES_PER_BLOCK
    quorum_divisor: int = QUORUM_DIVISOR

    # Result cache bounds; ttl None keeps entries until evicted by capacity
    cache_max_entries: int = 10000
    cache_ttl_seconds: Optional[float] = None

    environment_overrides: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _apply_env_overrides(
            self,
            {
                "GOVTALLY_ACTIVATION_HEIGHT": ("activation_height", int),
                "GOVTALLY_VOTING_INTERVAL": ("voting_interval", int),
                "GOVTALLY_MAX_SCAN_SPAN": ("max_scan_span", int),
                "GOVTALLY_PROGRESS_INTERVAL": ("progress_interval", int),
                "GOVTALLY_VOTES_PER_BLOCK": ("votes_per_block", int),
                "GOVTALLY_QUORUM_DIVISOR": ("quorum_divisor", int),
                "GOVTALLY_CACHE_MAX_ENTRIES": ("cache_max_entries", int),
                "GOVTALLY_CACHE_TTL": ("cache_ttl_seconds", "optional_float"),
            },
            self.environment_overrides,
        )

    def validate(self) -> None:
        """Raise `ConfigurationError` for unusable settings."""
        for name in (
            "voting_interval",
            "max_scan_span",
            "progress_interval",
            "votes_per_block",
            "quorum_divisor",
            "cache_max_entries",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(
                    f"{name} must be positive", config_key=name, config_value=value
                )
        if self.activation_height < 0:
            raise ConfigurationError(
                "activation_height must not be negative",
                config_key="activation_height",
                config_value=self.activation_height,
            )
        if self.cache_ttl_seconds is not None and self.cache_ttl_seconds <= 0:
            raise ConfigurationError(
                "cache_ttl_seconds must be positive or None",
                config_key="cache_ttl_seconds",
                config_value=self.cache_ttl_seconds,
            )


@dataclass
class GovTallyConfig:
    """Top-level configuration."""

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    treasury: TreasuryConfig = field(default_factory=TreasuryConfig)
    log_level: str = "info"
    log_format: str = "text"

    def __post_init__(self):
        level = os.getenv("GOVTALLY_LOG_LEVEL")
        if level:
            self.log_level = level.lower()
        log_format = os.getenv("GOVTALLY_LOG_FORMAT")
        if log_format:
            self.log_format = log_format.lower()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovTallyConfig":
        """Create configuration from a nested dictionary."""
        return cls(
            ledger=LedgerConfig(**data.get("ledger", {})),
            treasury=TreasuryConfig(**data.get("treasury", {})),
            log_level=data.get("log_level", "info"),
            log_format=data.get("log_format", "text"),
        )

    def log_config(self) -> LogConfig:
        """Build the logging configuration for `setup_logging`."""
        try:
            level = LogLevel(self.log_level)
        except ValueError:
            raise ConfigurationError(
                f"Unknown log level '{self.log_level}'",
                config_key="log_level",
                config_value=self.log_level,
            )
        return LogConfig(level=level, format_type=self.log_format)

    def validate(self) -> None:
        """Validate every section."""
        self.ledger.validate()
        self.treasury.validate()
        self.log_config()
        if self.log_format not in ("text", "json"):
            raise ConfigurationError(
                "log_format must be 'text' or 'json'",
                config_key="log_format",
                config_value=self.log_format,
            )

"""
govledger TOML Configuration Loader

Loads governance deployment parameters from a TOML file with environment
variable overrides (dataclass + from_dict + from_file).

Environment variable mapping:
    [governor] quorum_votes   → GOVLEDGER_QUORUM_VOTES
    [governor] min_delay      → GOVLEDGER_MIN_DELAY
    [reservoir] drip_rate     → GOVLEDGER_DRIP_RATE
    ...

Token amounts are given in base units (``10 ** decimals`` per token).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ..constants import (
    GOVERNOR_MIN_DELAY,
    GOVERNOR_PROPOSAL_THRESHOLD,
    GOVERNOR_QUORUM_VOTES,
    GOVERNOR_VOTING_DELAY_BLOCKS,
    GOVERNOR_VOTING_PERIOD_BLOCKS,
    MAX_VOTES,
    RESERVOIR_DRIP_RATE,
    TOKEN_DECIMALS,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    TOKEN_UNIT,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger, set_log_level

logger = get_logger(__name__)

ENV_PREFIX = "GOVLEDGER_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from e


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class GovernorConfig:
    """[governor] section."""
    quorum_votes: int = GOVERNOR_QUORUM_VOTES
    proposal_threshold: int = GOVERNOR_PROPOSAL_THRESHOLD
    voting_delay_blocks: int = GOVERNOR_VOTING_DELAY_BLOCKS
    voting_period_blocks: int = GOVERNOR_VOTING_PERIOD_BLOCKS
    min_delay: int = GOVERNOR_MIN_DELAY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernorConfig":
        return cls(
            quorum_votes=data.get("quorum_votes", GOVERNOR_QUORUM_VOTES),
            proposal_threshold=data.get("proposal_threshold", GOVERNOR_PROPOSAL_THRESHOLD),
            voting_delay_blocks=data.get("voting_delay_blocks", GOVERNOR_VOTING_DELAY_BLOCKS),
            voting_period_blocks=data.get("voting_period_blocks", GOVERNOR_VOTING_PERIOD_BLOCKS),
            min_delay=data.get("min_delay", GOVERNOR_MIN_DELAY),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if (v := _env_int("QUORUM_VOTES")) is not None:
            self.quorum_votes = v
        if (v := _env_int("PROPOSAL_THRESHOLD")) is not None:
            self.proposal_threshold = v
        if (v := _env_int("VOTING_DELAY_BLOCKS")) is not None:
            self.voting_delay_blocks = v
        if (v := _env_int("VOTING_PERIOD_BLOCKS")) is not None:
            self.voting_period_blocks = v
        if (v := _env_int("MIN_DELAY")) is not None:
            self.min_delay = v

    def validate(self) -> None:
        if self.quorum_votes < 0:
            raise ConfigurationError("quorum_votes must be >= 0")
        if self.proposal_threshold < 0:
            raise ConfigurationError("proposal_threshold must be >= 0")
        if self.voting_delay_blocks < 0:
            raise ConfigurationError("voting_delay_blocks must be >= 0")
        if self.voting_period_blocks < 1:
            raise ConfigurationError("voting_period_blocks must be >= 1")
        if self.min_delay < 0:
            raise ConfigurationError("min_delay must be >= 0")


def _default_balances() -> Dict[str, int]:
    return {
        "DAO": 55_000_000 * TOKEN_UNIT,
        "MULTISIG": 10_000_000 * TOKEN_UNIT,
        "TREASURY": 35_000_000 * TOKEN_UNIT,
    }


@dataclass
class TokenConfig:
    """[token] section; [token.initial_balances] maps a holder role to its grant."""
    name: str = TOKEN_NAME
    symbol: str = TOKEN_SYMBOL
    decimals: int = TOKEN_DECIMALS
    initial_balances: Dict[str, int] = field(default_factory=_default_balances)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenConfig":
        return cls(
            name=data.get("name", TOKEN_NAME),
            symbol=data.get("symbol", TOKEN_SYMBOL),
            decimals=data.get("decimals", TOKEN_DECIMALS),
            initial_balances=dict(data.get("initial_balances", _default_balances())),
        )

    def apply_env(self) -> None:
        if v := os.environ.get(ENV_PREFIX + "TOKEN_NAME"):
            self.name = v
        if v := os.environ.get(ENV_PREFIX + "TOKEN_SYMBOL"):
            self.symbol = v

    @property
    def total_supply(self) -> int:
        return sum(self.initial_balances.values())

    def validate(self) -> None:
        if not self.name or not self.symbol:
            raise ConfigurationError("Token name and symbol are required")
        if not 0 <= self.decimals <= 18:
            raise ConfigurationError(f"decimals must be 0-18, got {self.decimals}")
        if not self.initial_balances:
            raise ConfigurationError("At least one initial balance is required")
        for role, amount in self.initial_balances.items():
            if amount < 0:
                raise ConfigurationError(f"Initial balance for {role} cannot be negative")
        if self.total_supply > MAX_VOTES:
            raise ConfigurationError(f"Total supply {self.total_supply} exceeds uint96")


@dataclass
class ReservoirConfig:
    """[reservoir] section."""
    drip_rate: int = RESERVOIR_DRIP_RATE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReservoirConfig":
        return cls(drip_rate=data.get("drip_rate", RESERVOIR_DRIP_RATE))

    def apply_env(self) -> None:
        if (v := _env_int("DRIP_RATE")) is not None:
            self.drip_rate = v

    def validate(self) -> None:
        if self.drip_rate <= 0:
            raise ConfigurationError("drip_rate must be > 0")


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class GovernanceConfig:
    """Complete deployment configuration."""
    governor: GovernorConfig = field(default_factory=GovernorConfig)
    token: TokenConfig = field(default_factory=TokenConfig)
    reservoir: ReservoirConfig = field(default_factory=ReservoirConfig)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        return cls(
            governor=GovernorConfig.from_dict(data.get("governor", {})),
            token=TokenConfig.from_dict(data.get("token", {})),
            reservoir=ReservoirConfig.from_dict(data.get("reservoir", {})),
            log_level=data.get("log_level", "INFO"),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "GovernanceConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults; environment overrides apply
        either way.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        logger.debug(f"Loaded configuration from {config_path}")
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.governor.apply_env()
        self.token.apply_env()
        self.reservoir.apply_env()
        if v := os.environ.get(ENV_PREFIX + "LOG_LEVEL"):
            self.log_level = v.upper()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log_level: {self.log_level}")
        self.governor.validate()
        self.token.validate()
        self.reservoir.validate()
        if self.governor.proposal_threshold > self.token.total_supply:
            raise ConfigurationError("proposal_threshold exceeds total token supply")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "governor": {
                "quorum_votes": self.governor.quorum_votes,
                "proposal_threshold": self.governor.proposal_threshold,
                "voting_delay_blocks": self.governor.voting_delay_blocks,
                "voting_period_blocks": self.governor.voting_period_blocks,
                "min_delay": self.governor.min_delay,
            },
            "token": {
                "name": self.token.name,
                "symbol": self.token.symbol,
                "decimals": self.token.decimals,
                "initial_balances": dict(self.token.initial_balances),
            },
            "reservoir": {
                "drip_rate": self.reservoir.drip_rate,
            },
            "log_level": self.log_level,
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> GovernanceConfig:
    """
    Load and validate governance configuration.

    Resolution order:
        1. Explicit *path* argument
        2. GOVLEDGER_CONFIG env var
        3. ./govledger.toml in current directory
        4. Defaults (with env overrides)

    The configured log_level is applied to the root logger.
    """
    if path is None:
        path = os.environ.get(ENV_PREFIX + "CONFIG", "govledger.toml")

    cfg = GovernanceConfig.from_file(path)
    cfg.validate()
    set_log_level(cfg.log_level)
    return cfg

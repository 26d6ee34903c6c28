"""
govledger Configuration

Loads deployment parameters from a TOML file.
Environment variables override TOML values.
"""

from .loader import (
    GovernanceConfig,
    GovernorConfig,
    ReservoirConfig,
    TokenConfig,
    load_config,
)

__all__ = [
    "GovernanceConfig",
    "GovernorConfig",
    "ReservoirConfig",
    "TokenConfig",
    "load_config",
]

"""
zkgov Unified Configuration

Loads all sections of zkgov.toml.
Environment variables override TOML values.
"""

from .loader import (
    FreezeConfig,
    GovernanceConfig,
    NetworkConfig,
    TimingConfig,
    load_config,
)

__all__ = [
    "FreezeConfig",
    "GovernanceConfig",
    "NetworkConfig",
    "TimingConfig",
    "load_config",
]

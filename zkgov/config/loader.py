"""
zkgov Unified TOML Configuration Loader

Loads all sections of zkgov.toml with environment variable overrides.
Every section is a dataclass with from_dict / apply_env.

Environment variable mapping:
    [timing] pending_delay           → ZKGOV_PENDING_DELAY
    [freeze] soft_freeze_period      → ZKGOV_SOFT_FREEZE_PERIOD
    [freeze] execution_blocked_while_frozen → ZKGOV_EXECUTION_BLOCKED_WHILE_FROZEN
    ...

Durations are integer seconds.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import (
    DOMAIN_NAME,
    DOMAIN_VERSION,
    EXTENDED_LEGAL_VETO_PERIOD,
    GUARDIANS_APPROVAL_DELAY,
    HARD_FREEZE_PERIOD,
    LEGAL_VETO_PERIOD,
    MAX_SOFT_FREEZE_THRESHOLD,
    MIN_SOFT_FREEZE_THRESHOLD,
    RECOMMENDED_SOFT_FREEZE_THRESHOLD,
    SOFT_FREEZE_PERIOD,
    UPGRADE_APPROVAL_WINDOW,
    UPGRADE_PENDING_DELAY,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)


def _env_bool(value: str) -> bool:
    return value.strip().casefold() in ("1", "true", "yes", "on")


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


# ---------------------------------------------------------------------------
# Section dataclasses: mirror every [section] of zkgov.example.toml
# ---------------------------------------------------------------------------


@dataclass
class TimingConfig:
    """[timing] section."""
    legal_veto_period: int = LEGAL_VETO_PERIOD
    extended_legal_veto_period: int = EXTENDED_LEGAL_VETO_PERIOD
    guardians_approval_delay: int = GUARDIANS_APPROVAL_DELAY
    approval_window: int = UPGRADE_APPROVAL_WINDOW
    pending_delay: int = UPGRADE_PENDING_DELAY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimingConfig":
        return cls(
            legal_veto_period=data.get("legal_veto_period", LEGAL_VETO_PERIOD),
            extended_legal_veto_period=data.get(
                "extended_legal_veto_period", EXTENDED_LEGAL_VETO_PERIOD
            ),
            guardians_approval_delay=data.get(
                "guardians_approval_delay", GUARDIANS_APPROVAL_DELAY
            ),
            approval_window=data.get("approval_window", UPGRADE_APPROVAL_WINDOW),
            pending_delay=data.get("pending_delay", UPGRADE_PENDING_DELAY),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("ZKGOV_LEGAL_VETO_PERIOD"):
            self.legal_veto_period = _env_int("ZKGOV_LEGAL_VETO_PERIOD", v)
        if v := os.environ.get("ZKGOV_EXTENDED_LEGAL_VETO_PERIOD"):
            self.extended_legal_veto_period = _env_int("ZKGOV_EXTENDED_LEGAL_VETO_PERIOD", v)
        if v := os.environ.get("ZKGOV_GUARDIANS_APPROVAL_DELAY"):
            self.guardians_approval_delay = _env_int("ZKGOV_GUARDIANS_APPROVAL_DELAY", v)
        if v := os.environ.get("ZKGOV_APPROVAL_WINDOW"):
            self.approval_window = _env_int("ZKGOV_APPROVAL_WINDOW", v)
        if v := os.environ.get("ZKGOV_PENDING_DELAY"):
            self.pending_delay = _env_int("ZKGOV_PENDING_DELAY", v)


@dataclass
class FreezeConfig:
    """[freeze] section."""
    soft_freeze_period: int = SOFT_FREEZE_PERIOD
    hard_freeze_period: Optional[int] = HARD_FREEZE_PERIOD
    recommended_soft_freeze_threshold: int = RECOMMENDED_SOFT_FREEZE_THRESHOLD
    # Freezing never pauses upgrade timers; this only gates execute_upgrade
    execution_blocked_while_frozen: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FreezeConfig":
        return cls(
            soft_freeze_period=data.get("soft_freeze_period", SOFT_FREEZE_PERIOD),
            hard_freeze_period=data.get("hard_freeze_period", HARD_FREEZE_PERIOD),
            recommended_soft_freeze_threshold=data.get(
                "recommended_soft_freeze_threshold", RECOMMENDED_SOFT_FREEZE_THRESHOLD
            ),
            execution_blocked_while_frozen=data.get("execution_blocked_while_frozen", False),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ZKGOV_SOFT_FREEZE_PERIOD"):
            self.soft_freeze_period = _env_int("ZKGOV_SOFT_FREEZE_PERIOD", v)
        if v := os.environ.get("ZKGOV_HARD_FREEZE_PERIOD"):
            self.hard_freeze_period = _env_int("ZKGOV_HARD_FREEZE_PERIOD", v)
        if v := os.environ.get("ZKGOV_EXECUTION_BLOCKED_WHILE_FROZEN"):
            self.execution_blocked_while_frozen = _env_bool(v)


@dataclass
class NetworkConfig:
    """[network] section. Feeds the domain of every signed digest."""
    domain_name: str = DOMAIN_NAME
    domain_version: str = DOMAIN_VERSION
    chain_id: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkConfig":
        return cls(
            domain_name=data.get("domain_name", DOMAIN_NAME),
            domain_version=data.get("domain_version", DOMAIN_VERSION),
            chain_id=data.get("chain_id", 1),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ZKGOV_CHAIN_ID"):
            self.chain_id = _env_int("ZKGOV_CHAIN_ID", v)


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class GovernanceConfig:
    """
    Unified governance configuration.

    Single source of truth for every delay, freeze duration and signing
    domain used by the engines.
    """
    timing: TimingConfig = field(default_factory=TimingConfig)
    freeze: FreezeConfig = field(default_factory=FreezeConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        """Create GovernanceConfig from a parsed TOML dict."""
        return cls(
            timing=TimingConfig.from_dict(data.get("timing", {})),
            freeze=FreezeConfig.from_dict(data.get("freeze", {})),
            network=NetworkConfig.from_dict(data.get("network", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "GovernanceConfig":
        """
        Load configuration from a TOML file.

        A missing file falls back to defaults (with env overrides).

        Raises:
            ConfigurationError: If the file is not valid TOML
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}")

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.timing.apply_env()
        self.freeze.apply_env()
        self.network.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all valid

        Raises:
            ConfigurationError: on invalid config
        """
        t = self.timing
        for name in (
            "legal_veto_period",
            "extended_legal_veto_period",
            "guardians_approval_delay",
            "approval_window",
            "pending_delay",
        ):
            if getattr(t, name) < 0:
                raise ConfigurationError(f"timing.{name} must be >= 0")
        if t.extended_legal_veto_period < t.legal_veto_period:
            raise ConfigurationError(
                "timing.extended_legal_veto_period must be >= timing.legal_veto_period"
            )
        if self.freeze.soft_freeze_period <= 0:
            raise ConfigurationError("freeze.soft_freeze_period must be > 0")
        if self.freeze.hard_freeze_period is not None and self.freeze.hard_freeze_period <= 0:
            raise ConfigurationError("freeze.hard_freeze_period must be > 0 when set")
        if not (
            MIN_SOFT_FREEZE_THRESHOLD
            <= self.freeze.recommended_soft_freeze_threshold
            <= MAX_SOFT_FREEZE_THRESHOLD
        ):
            raise ConfigurationError(
                f"freeze.recommended_soft_freeze_threshold must be in "
                f"{MIN_SOFT_FREEZE_THRESHOLD}..{MAX_SOFT_FREEZE_THRESHOLD}"
            )
        if self.network.chain_id < 1:
            raise ConfigurationError("network.chain_id must be >= 1")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            "timing": {
                "legal_veto_period": self.timing.legal_veto_period,
                "extended_legal_veto_period": self.timing.extended_legal_veto_period,
                "guardians_approval_delay": self.timing.guardians_approval_delay,
                "approval_window": self.timing.approval_window,
                "pending_delay": self.timing.pending_delay,
            },
            "freeze": {
                "soft_freeze_period": self.freeze.soft_freeze_period,
                "hard_freeze_period": self.freeze.hard_freeze_period,
                "recommended_soft_freeze_threshold": self.freeze.recommended_soft_freeze_threshold,
                "execution_blocked_while_frozen": self.freeze.execution_blocked_while_frozen,
            },
            "network": {
                "domain_name": self.network.domain_name,
                "domain_version": self.network.domain_version,
                "chain_id": self.network.chain_id,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> GovernanceConfig:
    """
    Load governance configuration.

    Resolution order:
        1. Explicit *path* argument
        2. ZKGOV_CONFIG env var
        3. ./zkgov.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("ZKGOV_CONFIG", "zkgov.toml")

    cfg = GovernanceConfig.from_file(path)
    cfg.validate()
    return cfg

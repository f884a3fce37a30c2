"""
zkgov Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE GOVERNANCE VALUES BELOW ARE THE PROTOCOL DEFAULTS. DEPLOYMENTS OVERRIDE
# THEM THROUGH zkgov.toml / ZKGOV_* ENVIRONMENT VARIABLES (see zkgov.config), NEVER BY
# EDITING THIS FILE.

# ==================================================================================
# TIME UNITS
# ==================================================================================
HOUR = 60 * 60
DAY = 24 * HOUR


# ==================================================================================
# UPGRADE LIFECYCLE
# ==================================================================================
# Initial legal veto window, counted from upgrade creation
LEGAL_VETO_PERIOD = 3 * DAY

# Hard cap of the legal veto window once Guardians extend it
EXTENDED_LEGAL_VETO_PERIOD = 7 * DAY

# Guardians approval becomes effective this long after the legal veto ends
GUARDIANS_APPROVAL_DELAY = 30 * DAY

# An upgrade with no approval expires this long after the legal veto ends
UPGRADE_APPROVAL_WINDOW = 30 * DAY

# Mandatory delay between the effective approval and execution
UPGRADE_PENDING_DELAY = 1 * DAY


# ==================================================================================
# EMERGENCY FREEZE
# ==================================================================================
SOFT_FREEZE_PERIOD = 12 * HOUR

# None = hard freeze holds until an explicit unfreeze
HARD_FREEZE_PERIOD = None

# Upper bound and post-freeze reset value of the soft freeze threshold
RECOMMENDED_SOFT_FREEZE_THRESHOLD = 9
MAX_SOFT_FREEZE_THRESHOLD = 9
MIN_SOFT_FREEZE_THRESHOLD = 1


# ==================================================================================
# SIGNED MESSAGE DOMAINS
# ==================================================================================
DOMAIN_NAME = "zkgov"
DOMAIN_VERSION = "1"


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)

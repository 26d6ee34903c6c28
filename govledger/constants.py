"""
govledger Constants

This module consolidates global constants and environment configuration
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
    'LOG_FILE':                        '',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# LEDGER ENVIRONMENT
# ==================================================================================
ZERO_ADDRESS = '0x' + '00' * 20
GENESIS_TIMESTAMP = 1_600_000_000
ACCOUNT_SEED = b'govledger.account'
SELECTOR_SIZE = 4


# ==================================================================================
# VOTING TOKEN
# ==================================================================================
TOKEN_NAME = 'Governance Token'
TOKEN_SYMBOL = 'GOV'
TOKEN_DECIMALS = 8
TOKEN_UNIT = 10 ** TOKEN_DECIMALS
TOKEN_TOTAL_SUPPLY = 100_000_000 * TOKEN_UNIT
MAX_VOTES = 2 ** 96 - 1  # checkpoint votes are stored as uint96


# ==================================================================================
# GOVERNOR DEFAULTS
# ==================================================================================
GOVERNOR_QUORUM_VOTES = 4_000_000 * TOKEN_UNIT
GOVERNOR_PROPOSAL_THRESHOLD = 1_000_000 * TOKEN_UNIT
GOVERNOR_VOTING_DELAY_BLOCKS = 1
GOVERNOR_VOTING_PERIOD_BLOCKS = 10
GOVERNOR_MIN_DELAY = 2 * 86400  # 2 days


# ==================================================================================
# RESERVOIR
# ==================================================================================
RESERVOIR_DRIP_RATE = 1 * TOKEN_UNIT  # tokens per second


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

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
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

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)

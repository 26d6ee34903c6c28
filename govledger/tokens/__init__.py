"""
govledger Token Module

Provides:
  - Checkpoint / CheckpointLedger  (checkpoints.py)
  - VotingToken                    (voting_token.py)
  - Reservoir                      (reservoir.py)
"""

from .checkpoints import Checkpoint, CheckpointLedger
from .reservoir import Reservoir, ReservoirEmptyError
from .voting_token import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    TokenError,
    VotingToken,
)

__all__ = [
    "Checkpoint",
    "CheckpointLedger",
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "Reservoir",
    "ReservoirEmptyError",
    "TokenError",
    "VotingToken",
]

"""
govledger Ledger Environment

Provides:
  - Chain / Frame / TransactionReceipt      (chain.py)
  - Contract / Event / EventLog / external / view  (base.py)
"""

from .base import Contract, Event, EventLog, external, view
from .chain import CallFailedError, Chain, Frame, TransactionReceipt

__all__ = [
    "CallFailedError",
    "Chain",
    "Contract",
    "Event",
    "EventLog",
    "Frame",
    "TransactionReceipt",
    "external",
    "view",
]

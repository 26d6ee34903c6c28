"""
govledger On-Chain Governance

Provides:
  - ProposalState / Proposal                       (proposals.py)
  - VoteReceipt / record_vote / tally_outcome      (voting.py)
  - TimelockController / ScheduledOperation        (execution.py)
  - Governor                                       (governor.py)
"""

from .proposals import (
    GovernanceError,
    InvalidProposalError,
    PayloadMismatchError,
    Proposal,
    ProposalState,
    ThresholdNotMetError,
    normalize_actions,
)
from .voting import (
    AlreadyVotedError,
    VoteReceipt,
    record_vote,
    tally_outcome,
)
from .execution import (
    AlreadyQueuedError,
    DelayTooShortError,
    OperationNotReadyError,
    ProposalNotQueuedError,
    ScheduledOperation,
    TimelockController,
    TimelockError,
    TimelockNotReadyError,
    UnknownOperationError,
)
from .governor import Governor

__all__ = [
    # Proposals
    "GovernanceError",
    "InvalidProposalError",
    "PayloadMismatchError",
    "Proposal",
    "ProposalState",
    "ThresholdNotMetError",
    "normalize_actions",
    # Voting
    "AlreadyVotedError",
    "VoteReceipt",
    "record_vote",
    "tally_outcome",
    # Execution
    "AlreadyQueuedError",
    "DelayTooShortError",
    "OperationNotReadyError",
    "ProposalNotQueuedError",
    "ScheduledOperation",
    "TimelockController",
    "TimelockError",
    "TimelockNotReadyError",
    "UnknownOperationError",
    # Governor
    "Governor",
]

"""
Governance Proposals

Lifecycle states and the Proposal record tracked by the Governor from
creation to execution or cancellation.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional, Sequence

from ..crypto.address import normalize_address
from ..exceptions import RevertError


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class GovernanceError(RevertError):
    """Base governance exception."""


class InvalidProposalError(GovernanceError):
    """Raised when proposal actions are malformed."""


class ThresholdNotMetError(GovernanceError):
    """Proposer's voting power is below the proposal threshold."""


class PayloadMismatchError(GovernanceError):
    """Supplied actions differ from the ones stored with the proposal."""


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalState(IntEnum):
    """Lifecycle stage. Values are part of the external interface."""
    Pending = 0     # Voting has not started
    Active = 1      # Voting open
    Canceled = 2    # Withdrawn before execution
    Defeated = 3    # Voting closed without passing
    Succeeded = 4   # Voting closed and passed, not yet queued
    Queued = 5      # Scheduled in the timelock
    Expired = 6     # Reserved; never produced
    Executed = 7    # All actions ran


# ══════════════════════════════════════════════════════════════════════
#  ACTIONS
# ══════════════════════════════════════════════════════════════════════

def normalize_actions(
    targets: Sequence[str],
    values: Sequence[int],
    payloads: Sequence[bytes],
) -> tuple:
    """
    Validate a batch of ``(target, value, payload)`` actions given as
    parallel arrays and return them as normalized lists.
    """
    if not targets:
        raise InvalidProposalError("Must provide at least one action")
    if not len(targets) == len(values) == len(payloads):
        raise InvalidProposalError(
            f"Action arrays differ in length: {len(targets)} targets, "
            f"{len(values)} values, {len(payloads)} payloads"
        )
    for value in values:
        if value < 0:
            raise InvalidProposalError(f"Action value cannot be negative: {value}")
    try:
        targets = [normalize_address(t) for t in targets]
    except ValueError as e:
        raise InvalidProposalError(str(e)) from e
    return targets, [int(v) for v in values], [bytes(p) for p in payloads]


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    A bundle of actions submitted for a vote.

    Fields:
        id:              Monotonic identifier, starting at 1
        proposer:        Account that created the proposal
        targets:         Destination of each action
        values:          Native value sent with each action
        payloads:        Opaque call data of each action
        start_block:     Snapshot block; votes are weighed as of this block
        end_block:       Last block in which votes are accepted
        proposer_votes:  Proposer's voting power when the proposal was made
        eta:             Earliest execution time; set when queued, and from then
                         on the proposal is Queued until executed or canceled
        operation_id:    Timelock operation identity, set when queued
    """
    id: int
    proposer: str
    targets: List[str]
    values: List[int]
    payloads: List[bytes]
    start_block: int
    end_block: int
    proposer_votes: int
    for_votes: int = 0
    against_votes: int = 0
    canceled: bool = False
    executed: bool = False
    eta: Optional[int] = None
    operation_id: Optional[bytes] = None

    def matches(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
    ) -> bool:
        """Do the supplied actions equal the stored ones exactly?"""
        try:
            supplied = normalize_actions(targets, values, payloads)
        except InvalidProposalError:
            return False
        return supplied == (self.targets, self.values, self.payloads)

    @property
    def actions(self) -> tuple:
        return list(self.targets), list(self.values), list(self.payloads)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "targets": self.targets,
            "values": self.values,
            "payloads": ["0x" + p.hex() for p in self.payloads],
            "startBlock": self.start_block,
            "endBlock": self.end_block,
            "proposerVotes": self.proposer_votes,
            "forVotes": self.for_votes,
            "againstVotes": self.against_votes,
            "canceled": self.canceled,
            "executed": self.executed,
            "eta": self.eta,
            "operationId": ("0x" + self.operation_id.hex()) if self.operation_id else None,
        }

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} by {self.proposer} "
            f"for={self.for_votes} against={self.against_votes}>"
        )

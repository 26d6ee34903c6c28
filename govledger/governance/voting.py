"""
Snapshot Voting

Implements:
  - One vote per (proposal, account), weighed at the proposal's snapshot block
  - For / Against tallies on the proposal
  - The pass rule: for > against, for ≥ quorum, proposer still meets threshold
"""

from dataclasses import dataclass
from typing import Any, Dict

from ..exceptions import InvalidStateError
from ..logger import get_logger
from .proposals import Proposal

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class AlreadyVotedError(InvalidStateError):
    """Voter already cast a vote on this proposal."""


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VoteReceipt:
    """An individual vote cast by a voter."""
    proposal_id: int
    voter: str
    support: bool
    votes: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "support": self.support,
            "votes": self.votes,
            "blockNumber": self.block_number,
        }


def record_vote(
    proposal: Proposal,
    receipts: Dict[str, VoteReceipt],
    voter: str,
    support: bool,
    votes: int,
    block_number: int,
) -> VoteReceipt:
    """
    Count *votes* for or against *proposal* and store the receipt.

    *receipts* holds the proposal's existing receipts keyed by voter.
    """
    if voter in receipts:
        raise AlreadyVotedError(f"{voter} already voted on Proposal #{proposal.id}")

    receipt = VoteReceipt(
        proposal_id=proposal.id,
        voter=voter,
        support=bool(support),
        votes=votes,
        block_number=block_number,
    )
    receipts[voter] = receipt
    if receipt.support:
        proposal.for_votes += votes
    else:
        proposal.against_votes += votes

    logger.info(
        f"Vote on Proposal #{proposal.id}: {voter} {'FOR' if receipt.support else 'AGAINST'} "
        f"weight={votes}"
    )
    return receipt


def tally_outcome(
    for_votes: int,
    against_votes: int,
    quorum_votes: int,
    proposer_votes: int,
    proposal_threshold: int,
) -> bool:
    """Has a closed vote passed?"""
    return (
        for_votes > against_votes
        and for_votes >= quorum_votes
        and proposer_votes >= proposal_threshold
    )
